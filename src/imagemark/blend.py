from __future__ import annotations

from enum import Enum


class BlendMode(Enum):
	OVER = "over"
	SCREEN = "screen"


# exclusive bounds of the opacity band that switches to screen blending
SCREEN_BAND = (50, 80)


def select_blend_mode(opacity: int) -> BlendMode:
	low, high = SCREEN_BAND
	if low < opacity < high:
		return BlendMode.SCREEN
	return BlendMode.OVER
