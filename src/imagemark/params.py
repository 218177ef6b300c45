from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Tuple, Union

from .errors import InvalidEncodedString, InvalidNumericValue, MalformedToken


TOKEN_SEPARATOR = "_"

_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass
class WatermarkParams:
	"""Flat record of one watermark request, built by :func:`parse_params`."""

	DEFAULT_GRAVITY = "se"
	DEFAULT_OPACITY = 100
	DEFAULT_FONT_FAMILY = "OPPOSans R"
	DEFAULT_FONT_SIZE = 0

	offset_x: int = 0
	offset_y: int = 0
	gravity: str = DEFAULT_GRAVITY
	opacity: int = DEFAULT_OPACITY

	# image watermark
	image: str = ""
	scale_percent: int = 0

	# text watermark
	text: str = ""
	font_family: str = ""
	font_color: str = ""
	font_size: int = DEFAULT_FONT_SIZE
	shadow: int = 0
	rotate: int = 0
	fill: int = 0

	@property
	def is_empty(self) -> bool:
		return not self.image and not self.text


def _decode_int(token: str, raw: str) -> int:
	if not _INT_RE.fullmatch(raw):
		raise InvalidNumericValue(token, "invalid integer value")
	return int(raw)


def _decode_verbatim(token: str, raw: str) -> str:
	return raw


def _decode_base64url(token: str, raw: str) -> str:
	padded = raw + "=" * (-len(raw) % 4)
	try:
		data = base64.b64decode(padded, altchars=b"-_", validate=True)
		return data.decode("utf-8")
	except (binascii.Error, ValueError) as exc:
		raise InvalidEncodedString(token, "invalid base64url value") from exc


_Decoder = Callable[[str, str], Union[int, str]]

# token key -> (WatermarkParams field, decoder); keys not listed are ignored
TOKEN_FIELDS: Dict[str, Tuple[str, _Decoder]] = {
	"x": ("offset_x", _decode_int),
	"y": ("offset_y", _decode_int),
	"g": ("gravity", _decode_verbatim),
	"t": ("opacity", _decode_int),
	"image": ("image", _decode_base64url),
	"P": ("scale_percent", _decode_int),
	"text": ("text", _decode_base64url),
	"type": ("font_family", _decode_base64url),
	"color": ("font_color", _decode_verbatim),
	"size": ("font_size", _decode_int),
	"shadow": ("shadow", _decode_int),
	"rotate": ("rotate", _decode_int),
	"fill": ("fill", _decode_int),
}


def decode_token(token: str) -> Tuple[str, Union[int, str]] | None:
	"""Decode one ``key_value`` token.

	Returns ``(field_name, value)`` for a recognized key, ``None`` for an
	unknown key. Raises a subclass of :class:`InvalidParams` otherwise.
	"""
	parts = token.split(TOKEN_SEPARATOR)
	if len(parts) != 2:
		raise MalformedToken(token, "invalid watermark param")

	key, raw = parts
	entry = TOKEN_FIELDS.get(key)
	if entry is None:
		return None
	field, decoder = entry
	return field, decoder(token, raw)


def parse_params(tokens: Iterable[str]) -> WatermarkParams:
	"""Fold tokens, in order, into a fresh :class:`WatermarkParams`.

	A later token overwrites an earlier one for the same key. The first bad
	token aborts the fold and its error propagates.
	"""
	params = WatermarkParams()
	for token in tokens:
		decoded = decode_token(token)
		if decoded is None:
			continue
		field, value = decoded
		setattr(params, field, value)
	return params


def encode_value(value: str) -> str:
	"""URL-safe base64 encoding (unpadded) for string-valued tokens."""
	return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")
