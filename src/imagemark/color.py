from __future__ import annotations

import re
from typing import NamedTuple

from .errors import InvalidColor


_HEX_RE = re.compile(r"[0-9a-fA-F]+")

MAX_PACKED = 0xFFFFFFFF


class RGB(NamedTuple):
	r: int
	g: int
	b: int


def parse_hex_color(value: str) -> RGB:
	"""Parse packed 24-bit hex (``ff8800``) into an :class:`RGB`.

	Bits above 23 are ignored; short strings parse as small integers, so
	``"00ff"`` is ``RGB(0, 0, 255)``.
	"""
	if not _HEX_RE.fullmatch(value or ""):
		raise InvalidColor(f"invalid hex color: {value!r}")
	packed = int(value, 16)
	if packed > MAX_PACKED:
		raise InvalidColor(f"hex color out of range: {value!r}")
	return RGB((packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF)
