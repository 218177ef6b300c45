from __future__ import annotations

import logging
from typing import Callable, Iterable

from .blend import select_blend_mode
from .color import parse_hex_color
from .engine import BackgroundImage, ImageMetadata, Kernel, LabelParams, OverlayImage, load_from_path
from .errors import InvalidColor, OverlayResizeFailed
from .geometry import resolve
from .params import WatermarkParams, parse_params


logger = logging.getLogger(__name__)

# nominal text label box; height follows the requested font size
LABEL_BOX_WIDTH = 200
LABEL_HEIGHT_RATIO = 0.75
LABEL_ALIGNMENT = "center"


def process(
	background: BackgroundImage,
	tokens: Iterable[str],
	object_prefix: str = "",
	loader: Callable[[str], OverlayImage] = load_from_path,
) -> None:
	"""Apply the watermark described by ``tokens`` to ``background`` in place.

	An image watermark is used when an ``image`` token is present, otherwise a
	text watermark when a ``text`` token is present. With neither, nothing
	happens. Any failure raises a :class:`~imagemark.errors.WatermarkError`;
	nothing is drawn if it happens before the rendering call.
	"""
	apply_params(background, parse_params(tokens), object_prefix=object_prefix, loader=loader)


def apply_params(
	background: BackgroundImage,
	params: WatermarkParams,
	object_prefix: str = "",
	loader: Callable[[str], OverlayImage] = load_from_path,
) -> None:
	"""Like :func:`process`, for an already parsed :class:`WatermarkParams`."""
	if params.is_empty:
		return

	bg_info = background.metadata()
	logger.debug("background is %dx%d", bg_info.width, bg_info.height)

	if params.image:
		_composite(background, bg_info, params, object_prefix, loader)
	elif params.text:
		_label(background, bg_info, params)


def _composite(
	background: BackgroundImage,
	bg_info: ImageMetadata,
	params: WatermarkParams,
	object_prefix: str,
	loader: Callable[[str], OverlayImage],
) -> None:
	path = params.image
	if not path.startswith("/"):
		path = "/" + path

	overlay = loader(object_prefix + path)
	try:
		if params.scale_percent > 0:
			try:
				overlay.resize(params.scale_percent / 100, Kernel.AUTO)
			except OverlayResizeFailed as exc:
				logger.error("resize watermark image failed: %s", exc)
				raise

		info = overlay.metadata()
		x, y = resolve(
			bg_info.width, bg_info.height,
			params.offset_x, params.offset_y, params.gravity,
			info.width, info.height,
		)
		mode = select_blend_mode(params.opacity)

		logger.debug("composite with x=%d, y=%d, mode=%s", x, y, mode.value)
		background.composite(overlay, mode, x, y)
	finally:
		overlay.release()


def _label(background: BackgroundImage, bg_info: ImageMetadata, params: WatermarkParams) -> None:
	label = LabelParams(
		text=params.text,
		font=params.font_family or WatermarkParams.DEFAULT_FONT_FAMILY,
		width=LABEL_BOX_WIDTH,
		height=params.font_size * LABEL_HEIGHT_RATIO,
		alignment=LABEL_ALIGNMENT,
		shadow=params.shadow,
		rotate=params.rotate,
		fill=params.fill,
	)

	if params.font_color:
		try:
			label.color = parse_hex_color(params.font_color)
		except InvalidColor as exc:
			logger.error("parse font color failed: %s", exc)
			raise

	x, y = resolve(
		bg_info.width, bg_info.height,
		params.offset_x, params.offset_y, params.gravity,
		int(label.width), int(label.height),
	)
	label.offset_x = float(x)
	label.offset_y = float(y)

	if params.opacity > 0:
		label.opacity = params.opacity / 100

	logger.debug("label with %r", label)
	background.label(label)
