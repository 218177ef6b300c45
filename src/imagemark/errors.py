from __future__ import annotations


class WatermarkError(Exception):
	"""Base class for every failure of a watermark request."""


class InvalidParams(WatermarkError):
	"""A parameter token could not be decoded."""

	def __init__(self, token: str, message: str):
		super().__init__(f"{message}: {token!r}")
		self.token = token


class MalformedToken(InvalidParams):
	pass


class InvalidNumericValue(InvalidParams):
	pass


class InvalidEncodedString(InvalidParams):
	pass


class InvalidColor(WatermarkError):
	pass


class OverlayLoadFailed(WatermarkError):
	pass


class OverlayResizeFailed(WatermarkError):
	pass


class CompositeFailed(WatermarkError):
	pass


class LabelRenderFailed(WatermarkError):
	pass
