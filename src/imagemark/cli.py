import argparse
import logging
import os
import struct
import sys
from typing import Iterable, List, Set

import piexif
from PIL import Image

from .engine import BackgroundImage
from .errors import InvalidParams, WatermarkError
from .params import WatermarkParams, parse_params
from .watermark import apply_params


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: Set[str] = {
	".jpg",
	".jpeg",
	".png",
	".bmp",
	".tif",
	".tiff",
	".webp",
}

COMMAND_NAME = "watermark"
OBJECT_PREFIX_ENV = "IMAGEMARK_OBJECT_PREFIX"


def enumerate_candidate_files(root_path: str, recursive: bool, include_ext: Iterable[str]) -> List[str]:
	valid_ext = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in include_ext}
	result: List[str] = []
	if os.path.isfile(root_path):
		ext = os.path.splitext(root_path)[1].lower()
		if not valid_ext or ext in valid_ext:
			result.append(os.path.abspath(root_path))
		return result

	if not os.path.isdir(root_path):
		raise FileNotFoundError(f"Path does not exist or not accessible: {root_path}")

	for dirpath, dirnames, filenames in os.walk(root_path):
		for filename in sorted(filenames):
			ext = os.path.splitext(filename)[1].lower()
			if not valid_ext or ext in valid_ext:
				result.append(os.path.abspath(os.path.join(dirpath, filename)))
		if not recursive:
			break
	return result


def split_process_string(value: str) -> List[str]:
	"""Split ``"watermark,x_10,g_nw"`` (or just ``"x_10,g_nw"``) into tokens."""
	tokens = [t.strip() for t in value.split(",") if t.strip()]
	if tokens and tokens[0] == COMMAND_NAME:
		tokens = tokens[1:]
	return tokens


def build_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="imagemark",
		description="Apply an image or text watermark described by key_value tokens.",
	)
	parser.add_argument("--path", required=True, help="File or directory path to process")
	parser.add_argument(
		"--params",
		required=True,
		help="Comma-separated watermark tokens, e.g. x_10,y_10,g_se,text_<base64url>",
	)
	parser.add_argument(
		"--object-prefix",
		default=os.environ.get(OBJECT_PREFIX_ENV, ""),
		help=f"Prefix joined with the image token path (default: ${OBJECT_PREFIX_ENV})",
	)
	parser.add_argument("--dry-run", action="store_true", help="List files that would be processed without writing outputs")
	parser.add_argument("--verbose", action="store_true", help="Enable verbose logs")
	parser.add_argument("--recursive", action="store_true", help="Recurse into subdirectories when a directory is provided")
	parser.add_argument(
		"--include-ext",
		help="Comma-separated list of extensions to include (e.g., .jpg,.jpeg,.png)",
		default=",".join(sorted(SUPPORTED_EXTENSIONS)),
	)
	# Output options
	parser.add_argument("--output-dir-name", type=str, default=None, help="Override output subdirectory name; default <dirname>_watermark")
	parser.add_argument("--suffix", type=str, default=None, help="Optional filename suffix (without dot)")
	parser.add_argument("--overwrite", action="store_true", help="Overwrite existing output files")
	return parser


def _derive_output_root(input_path: str, override_name: str | None) -> str:
	if os.path.isfile(input_path):
		parent = os.path.dirname(os.path.abspath(input_path))
	else:
		parent = os.path.abspath(input_path)
	base_dir = os.path.basename(parent)
	name = override_name if override_name else f"{base_dir}_watermark"
	return os.path.join(parent, name)


def _map_output_path(file_path: str, root_input: str, root_output: str, suffix: str | None) -> str:
	if os.path.isfile(root_input):
		# single file mode: put into output root directly
		rel = os.path.basename(file_path)
	else:
		rel = os.path.relpath(file_path, start=root_input)
	out_path = os.path.join(root_output, rel)
	if suffix:
		stem, ext = os.path.splitext(out_path)
		out_path = f"{stem}_{suffix}{ext}"
	os.makedirs(os.path.dirname(out_path), exist_ok=True)
	return out_path


def _save(image: Image.Image, src_path: str, out_path: str) -> None:
	_, ext = os.path.splitext(src_path)
	if ext.lower() not in {".jpg", ".jpeg"}:
		image.save(out_path)
		return
	# keep the source EXIF block for JPEG outputs
	try:
		exif_bytes = piexif.dump(piexif.load(src_path))
	except (ValueError, struct.error, piexif.InvalidImageDataError) as exc:
		logger.debug("no usable EXIF in %s: %s", src_path, exc)
		exif_bytes = None
	if image.mode not in ("RGB", "L"):
		image = image.convert("RGB")
	if exif_bytes:
		image.save(out_path, format="JPEG", exif=exif_bytes, quality=95)
	else:
		image.save(out_path, format="JPEG", quality=95)


def watermark_file(src_path: str, out_path: str, params: WatermarkParams, object_prefix: str) -> None:
	with Image.open(src_path) as im:
		im.load()
		background = BackgroundImage(im)
		apply_params(background, params, object_prefix=object_prefix)
		_save(background.image, src_path, out_path)


def main(argv: List[str] | None = None) -> int:
	argv = sys.argv[1:] if argv is None else argv
	parser = build_arg_parser()
	args = parser.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(levelname)s %(name)s: %(message)s",
	)

	include_ext = [e.strip() for e in args.include_ext.split(",") if e.strip()]
	tokens = split_process_string(args.params)

	# parsed once; every file gets the same params
	try:
		params = parse_params(tokens)
	except InvalidParams as exc:
		print(str(exc), file=sys.stderr)
		return 2

	try:
		files = enumerate_candidate_files(args.path, args.recursive, include_ext)
	except FileNotFoundError as exc:
		print(str(exc), file=sys.stderr)
		return 2

	if args.dry_run:
		mode = "image" if params.image else ("text" if params.text else "none")
		print(f"DRY RUN: {len(files)} file(s) would be processed (watermark: {mode})")
		for f in files:
			print(f)
		return 0

	logger.info("Processing %d file(s)...", len(files))

	root_output = _derive_output_root(args.path, args.output_dir_name)
	errors = 0
	for f in files:
		out_path = _map_output_path(f, os.path.abspath(args.path), root_output, args.suffix)
		if os.path.exists(out_path) and not args.overwrite:
			logger.debug("Exists, skip write: %s", out_path)
			continue
		try:
			watermark_file(f, out_path, params, args.object_prefix)
		except (WatermarkError, OSError) as e:
			errors += 1
			print(f"Error processing {f}: {e}", file=sys.stderr)
			continue
		logger.debug("Wrote %s", out_path)

	return 1 if errors > 0 else 0


if __name__ == "__main__":
	sys.exit(main())
