from io import BytesIO

import pytest
import requests
from PIL import Image

from imagemark import engine
from imagemark.blend import BlendMode
from imagemark.color import RGB
from imagemark.engine import BackgroundImage, Kernel, LabelParams, OverlayImage, load_from_path
from imagemark.errors import LabelRenderFailed, OverlayLoadFailed, OverlayResizeFailed
from imagemark.params import encode_value
from imagemark.watermark import process


def _overlay(size=(20, 10), color=(255, 0, 0, 255)):
	return OverlayImage(Image.new("RGBA", size, color))


def test_composite_over_places_overlay():
	bg = BackgroundImage(Image.new("RGB", (100, 50), (0, 0, 0)))
	bg.composite(_overlay(), BlendMode.OVER, 5, 5)
	assert bg.image.mode == "RGB"
	assert bg.image.getpixel((5, 5)) == (255, 0, 0)
	assert bg.image.getpixel((24, 14)) == (255, 0, 0)
	assert bg.image.getpixel((4, 4)) == (0, 0, 0)
	assert bg.image.getpixel((25, 15)) == (0, 0, 0)


def test_composite_clips_overlay_outside_background():
	bg = BackgroundImage(Image.new("RGB", (100, 50), (0, 0, 0)))
	bg.composite(_overlay(), BlendMode.OVER, -10, -5)
	assert bg.image.getpixel((0, 0)) == (255, 0, 0)
	assert bg.image.getpixel((10, 5)) == (0, 0, 0)


def test_composite_screen_lightens():
	bg = BackgroundImage(Image.new("RGB", (10, 10), (100, 100, 100)))
	bg.composite(_overlay((10, 10), (100, 100, 100, 255)), BlendMode.SCREEN, 0, 0)
	r, g, b = bg.image.getpixel((5, 5))
	assert 155 <= r <= 165


def test_rgba_background_stays_rgba():
	bg = BackgroundImage(Image.new("RGBA", (30, 30), (0, 0, 0, 255)))
	bg.composite(_overlay(), BlendMode.OVER, 0, 0)
	assert bg.image.mode == "RGBA"


def test_resize_scales_overlay():
	overlay = _overlay((100, 40))
	overlay.resize(0.5, Kernel.AUTO)
	assert overlay.metadata() == (50, 20)
	overlay.resize(3, Kernel.AUTO)
	assert overlay.metadata() == (150, 60)


def test_resize_to_nothing_fails():
	with pytest.raises(OverlayResizeFailed):
		_overlay((100, 40)).resize(0.001)


def test_load_from_local_file(tmp_path):
	path = tmp_path / "w.png"
	Image.new("RGBA", (12, 8), (0, 0, 255, 128)).save(path)
	overlay = load_from_path(str(path))
	assert overlay.metadata() == (12, 8)
	overlay.release()


def test_load_missing_file_fails(tmp_path):
	with pytest.raises(OverlayLoadFailed):
		load_from_path(str(tmp_path / "missing.png"))


def test_load_from_url(monkeypatch):
	buf = BytesIO()
	Image.new("RGBA", (7, 3)).save(buf, format="PNG")

	class FakeResponse:
		content = buf.getvalue()

		def raise_for_status(self):
			pass

	seen = []

	def fake_get(url, timeout):
		seen.append((url, timeout))
		return FakeResponse()

	monkeypatch.setattr(engine.requests, "get", fake_get)
	overlay = load_from_path("https://cdn.example.com/w.png")
	assert overlay.metadata() == (7, 3)
	assert seen == [("https://cdn.example.com/w.png", engine.LOAD_TIMEOUT_SECONDS)]


def test_load_from_url_http_error(monkeypatch):
	def fake_get(url, timeout):
		raise requests.ConnectionError("down")

	monkeypatch.setattr(engine.requests, "get", fake_get)
	with pytest.raises(OverlayLoadFailed):
		load_from_path("http://cdn.example.com/w.png")


def test_label_draws_inside_its_box():
	bg = BackgroundImage(Image.new("RGB", (300, 100), (0, 0, 0)))
	bg.label(LabelParams(text="Hi", font="", width=200, height=40, color=RGB(255, 255, 255)))
	assert bg.image.crop((0, 0, 200, 40)).getbbox() is not None
	assert bg.image.crop((200, 0, 300, 100)).getbbox() is None
	assert bg.image.crop((0, 40, 300, 100)).getbbox() is None


def test_label_fill_tiles_background():
	bg = BackgroundImage(Image.new("RGB", (300, 100), (0, 0, 0)))
	bg.label(LabelParams(text="Hi", font="", width=100, height=20, fill=1))
	assert bg.image.crop((200, 60, 300, 100)).getbbox() is not None


def test_process_text_end_to_end():
	im = Image.new("RGB", (400, 200), (0, 0, 0))
	bg = BackgroundImage(im)
	process(bg, ["text_" + encode_value("Sample"), "size_40", "g_nw", "color_ffffff"])
	assert bg.image.crop((0, 0, 200, 30)).getbbox() is not None
	assert bg.image.crop((200, 30, 400, 200)).getbbox() is None


def test_process_image_end_to_end(tmp_path):
	Image.new("RGBA", (10, 10), (0, 255, 0, 255)).save(tmp_path / "w.png")
	bg = BackgroundImage(Image.new("RGB", (100, 100), (0, 0, 0)))
	process(bg, ["image_" + encode_value("w.png"), "x_5", "y_5"], object_prefix=str(tmp_path))
	# default gravity se: 100 - 10 - 5
	assert bg.image.getpixel((85, 85)) == (0, 255, 0)
	assert bg.image.getpixel((94, 94)) == (0, 255, 0)
	assert bg.image.getpixel((95, 95)) == (0, 0, 0)


def _tile_bytes(**overrides):
	params = LabelParams(text="Hi", font="", width=200, height=40, **overrides)
	return engine._render_label_tile(params).tobytes()


def test_label_shadow_changes_tile():
	assert _tile_bytes(shadow=0) != _tile_bytes(shadow=100)


def test_label_rotate_changes_tile():
	assert _tile_bytes(rotate=0) != _tile_bytes(rotate=90)


def test_label_with_zero_height_still_draws_glyphs():
	tile = engine._render_label_tile(LabelParams(text="Hi", font="", width=200, height=0))
	assert tile.height == engine.FALLBACK_LABEL_HEIGHT
	assert tile.getbbox() is not None


def test_label_failure_raises_label_render_failed(monkeypatch):
	def broken_font(family, size):
		raise OSError("no font")

	monkeypatch.setattr(engine, "_load_font", broken_font)
	bg = BackgroundImage(Image.new("RGB", (300, 100), (0, 0, 0)))
	with pytest.raises(LabelRenderFailed):
		bg.label(LabelParams(text="Hi", font="", width=200, height=40))
	assert bg.image.getbbox() is None
