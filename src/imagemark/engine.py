from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import NamedTuple

import requests
from PIL import Image, ImageChops, ImageDraw, ImageFont

from .blend import BlendMode
from .color import RGB
from .errors import CompositeFailed, LabelRenderFailed, OverlayLoadFailed, OverlayResizeFailed


logger = logging.getLogger(__name__)

LOAD_TIMEOUT_SECONDS = 30
SHADOW_OFFSET = (2, 2)
# glyph size for labels whose nominal height is zero; placement keeps the nominal box
FALLBACK_LABEL_HEIGHT = 30


class ImageMetadata(NamedTuple):
	width: int
	height: int


class Kernel(Enum):
	AUTO = "auto"
	NEAREST = "nearest"
	BICUBIC = "bicubic"
	LANCZOS = "lanczos"

	def resample(self, shrinking: bool) -> int:
		if self is Kernel.AUTO:
			return Image.LANCZOS if shrinking else Image.BICUBIC
		return {
			Kernel.NEAREST: Image.NEAREST,
			Kernel.BICUBIC: Image.BICUBIC,
			Kernel.LANCZOS: Image.LANCZOS,
		}[self]


@dataclass
class LabelParams:
	text: str
	font: str
	width: float
	height: float
	alignment: str = "center"  # left|center|right inside the nominal box
	color: RGB = RGB(255, 255, 255)
	opacity: float = 1.0
	offset_x: float = 0.0
	offset_y: float = 0.0
	shadow: int = 0
	rotate: int = 0
	fill: int = 0


class OverlayImage:
	"""Handle on a loaded watermark image. Call :meth:`release` when done."""

	def __init__(self, image: Image.Image):
		self.image = image

	def metadata(self) -> ImageMetadata:
		return ImageMetadata(self.image.width, self.image.height)

	def resize(self, scale: float, kernel: Kernel = Kernel.AUTO) -> None:
		new_w = int(round(self.image.width * scale))
		new_h = int(round(self.image.height * scale))
		if new_w < 1 or new_h < 1:
			raise OverlayResizeFailed(f"scale {scale} gives empty overlay {new_w}x{new_h}")
		try:
			resized = self.image.resize((new_w, new_h), kernel.resample(shrinking=scale < 1))
		except (ValueError, OSError) as exc:
			raise OverlayResizeFailed(f"cannot resize overlay: {exc}") from exc
		self.image.close()
		self.image = resized

	def release(self) -> None:
		self.image.close()


def load_from_path(full_path: str) -> OverlayImage:
	"""Load an overlay from an http(s) URL or a local file path."""
	logger.debug("loading overlay from %s", full_path)
	try:
		if full_path.startswith(("http://", "https://")):
			response = requests.get(full_path, timeout=LOAD_TIMEOUT_SECONDS)
			response.raise_for_status()
			image = Image.open(BytesIO(response.content))
		else:
			image = Image.open(full_path)
		image.load()
	except (requests.RequestException, OSError) as exc:
		raise OverlayLoadFailed(f"cannot load overlay {full_path}: {exc}") from exc
	return OverlayImage(image)


def _load_font(family: str, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
	candidates = [family, f"{family}.ttf", f"{family}.ttc"] if family else []
	for candidate in candidates + ["DejaVuSans.ttf"]:
		try:
			return ImageFont.truetype(candidate, size)
		except OSError:
			continue
	return ImageFont.load_default(size=size)


def _blend_layer(base: Image.Image, layer: Image.Image, mode: BlendMode) -> Image.Image:
	# base and layer are RGBA and the same size
	if mode is BlendMode.SCREEN:
		screened = ImageChops.screen(base.convert("RGB"), layer.convert("RGB"))
		out = base.copy()
		out.paste(screened, (0, 0), layer.getchannel("A"))
		return out
	return Image.alpha_composite(base, layer)


def _render_label_tile(params: LabelParams) -> Image.Image:
	box_w = max(1, int(params.width))
	box_h = int(params.height)
	if box_h < 1:
		box_h = FALLBACK_LABEL_HEIGHT
	tile = Image.new("RGBA", (box_w, box_h), (0, 0, 0, 0))
	draw = ImageDraw.Draw(tile)

	font = _load_font(params.font, box_h)
	bbox = draw.textbbox((0, 0), params.text, font=font)
	text_w = bbox[2] - bbox[0]
	if text_w > box_w:
		# shrink once so the text fits the box width
		font = _load_font(params.font, max(1, box_h * box_w // text_w))
		bbox = draw.textbbox((0, 0), params.text, font=font)
		text_w = bbox[2] - bbox[0]
	text_h = bbox[3] - bbox[1]

	if params.alignment == "left":
		tx = 0
	elif params.alignment == "right":
		tx = box_w - text_w
	else:
		tx = (box_w - text_w) // 2
	tx -= bbox[0]
	ty = (box_h - text_h) // 2 - bbox[1]

	opacity = max(0.0, min(1.0, params.opacity))
	if params.shadow > 0:
		shadow_alpha = int(round(255 * min(params.shadow, 100) / 100 * opacity))
		draw.text((tx + SHADOW_OFFSET[0], ty + SHADOW_OFFSET[1]), params.text, font=font, fill=(0, 0, 0, shadow_alpha))
	r, g, b = params.color
	draw.text((tx, ty), params.text, font=font, fill=(r, g, b, int(round(255 * opacity))))

	if params.rotate % 360 != 0:
		# PIL rotates counter-clockwise
		tile = tile.rotate(-params.rotate, resample=Image.BICUBIC)
	return tile


class BackgroundImage:
	"""Mutable wrapper around the image being watermarked.

	:meth:`composite` and :meth:`label` replace :attr:`image` with the result,
	keeping RGBA images in RGBA and converting everything else to RGB.
	"""

	def __init__(self, image: Image.Image):
		self.image = image

	def metadata(self) -> ImageMetadata:
		return ImageMetadata(self.image.width, self.image.height)

	def _apply(self, layer: Image.Image, mode: BlendMode) -> None:
		base_mode = self.image.mode
		composited = _blend_layer(self.image.convert("RGBA"), layer, mode)
		self.image = composited if base_mode == "RGBA" else composited.convert("RGB")

	def composite(self, overlay: OverlayImage, mode: BlendMode, x: int, y: int) -> None:
		try:
			wm = overlay.image.convert("RGBA")
			layer = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
			layer.paste(wm, (x, y))
			self._apply(layer, mode)
		except (ValueError, OSError) as exc:
			raise CompositeFailed(f"cannot composite overlay at ({x}, {y}): {exc}") from exc

	def label(self, params: LabelParams) -> None:
		try:
			tile = _render_label_tile(params)
			layer = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
			x, y = int(params.offset_x), int(params.offset_y)
			if params.fill == 1:
				step_x, step_y = tile.width, tile.height
				for ty in range(y % step_y - step_y, layer.height, step_y):
					for tx in range(x % step_x - step_x, layer.width, step_x):
						layer.paste(tile, (tx, ty))
			else:
				layer.paste(tile, (x, y))
			self._apply(layer, BlendMode.OVER)
		except (ValueError, OSError) as exc:
			raise LabelRenderFailed(f"cannot render label {params.text!r}: {exc}") from exc
