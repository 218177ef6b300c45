from __future__ import annotations

from typing import Dict, Tuple


DEFAULT_GRAVITY = "se"

# gravity -> (horizontal anchor, vertical anchor)
#   horizontal: w = west edge, c = center, e = east edge
#   vertical:   n = north edge, c = middle, s = south edge
GRAVITY_ANCHORS: Dict[str, Tuple[str, str]] = {
	"nw": ("w", "n"),
	"n": ("c", "n"),
	"ne": ("e", "n"),
	"w": ("w", "c"),
	"center": ("c", "c"),
	"e": ("e", "c"),
	"sw": ("w", "s"),
	"s": ("c", "s"),
	"se": ("e", "s"),
}


def clamp(low: int, high: int, value: int) -> int:
	if value < low:
		return low
	if value > high:
		return high
	return value


def clamp_offsets(bg_w: int, bg_h: int, raw_x: int, raw_y: int) -> Tuple[int, int]:
	return clamp(0, bg_w, raw_x), clamp(0, bg_h, raw_y)


def gravity_anchor(gravity: str) -> Tuple[str, str]:
	"""Anchor pair for a gravity code; unknown or empty codes fall back to south-east."""
	return GRAVITY_ANCHORS.get(gravity, GRAVITY_ANCHORS[DEFAULT_GRAVITY])


def resolve(
	bg_w: int,
	bg_h: int,
	raw_x: int,
	raw_y: int,
	gravity: str,
	overlay_w: int,
	overlay_h: int,
) -> Tuple[int, int]:
	"""Top-left pixel position of an overlay on the background.

	Raw offsets are clamped to the background size first. The resulting
	position is not clamped, so a large offset near a south or east edge can
	move the overlay partly outside the background.
	"""
	off_x, off_y = clamp_offsets(bg_w, bg_h, raw_x, raw_y)
	horizontal, vertical = gravity_anchor(gravity)

	if horizontal == "w":
		x = off_x
	elif horizontal == "c":
		x = (bg_w - overlay_w) // 2 + off_x
	else:  # 'e'
		x = bg_w - overlay_w - off_x

	if vertical == "n":
		y = off_y
	elif vertical == "c":
		y = (bg_h - overlay_h) // 2 + off_y
	else:  # 's'
		y = bg_h - overlay_h - off_y

	return x, y
