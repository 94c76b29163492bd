"""Command-line interface for the product recognizer."""

import os
import sys
import json
import base64
import logging
import argparse
from pathlib import Path
from typing import Iterable, Optional

from .errors import CatalogLoadError, RecognitionError
from .engine import RecognitionQuery, Recognizer
from .features import extract_fingerprint
from .ppm import decode_ppm
from .preprocessing import REFERENCE_MAX_SIDE, convert_to_ppm

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REQUEST_FAILED = 1
EXIT_CATALOG_FAILED = 2


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="product-recognition",
        description="Identify catalog products from URL hints and P3 images.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    recognize = subparsers.add_parser(
        "recognize", help="Match a query against the reference catalog."
    )
    recognize.add_argument(
        "--manifest",
        default=os.environ.get("CATALOG_MANIFEST"),
        help="Catalog manifest JSON (defaults to $CATALOG_MANIFEST).",
    )
    recognize.add_argument(
        "--base-dir",
        default=None,
        help="Directory reference image paths are relative to.",
    )
    recognize.add_argument("--url", default=None, help="Image URL hint.")
    image_group = recognize.add_mutually_exclusive_group()
    image_group.add_argument(
        "--image", default=None, help="Path to a P3 query image."
    )
    image_group.add_argument(
        "--base64", default=None, help="Base64 payload or data URL of a P3 image."
    )

    fingerprint = subparsers.add_parser(
        "fingerprint", help="Print the fingerprint of a P3 image."
    )
    fingerprint.add_argument("image", help="Path to a P3 image.")

    convert = subparsers.add_parser(
        "convert", help="Convert a photo into a P3 reference asset."
    )
    convert.add_argument("source", help="Input image (any format OpenCV reads).")
    convert.add_argument("destination", help="Output .ppm path.")
    convert.add_argument(
        "--max-side",
        type=int,
        default=REFERENCE_MAX_SIDE,
        help=f"Longest side of the output image (default {REFERENCE_MAX_SIDE}).",
    )

    return parser.parse_args(list(argv) if argv is not None else None)


def _run_recognize(args: argparse.Namespace) -> int:
    if not args.manifest:
        logger.error("No catalog manifest given (--manifest or $CATALOG_MANIFEST)")
        return EXIT_CATALOG_FAILED

    try:
        recognizer = Recognizer.from_manifest(args.manifest, base_dir=args.base_dir)
    except CatalogLoadError as e:
        print(f"Catalog load failed: {e}", file=sys.stderr)
        return EXIT_CATALOG_FAILED

    payload = args.base64
    if args.image:
        payload = base64.b64encode(Path(args.image).read_bytes()).decode("ascii")

    outcome = recognizer.try_recognize(
        RecognitionQuery(image_url=args.url, image_base64=payload)
    )
    print(json.dumps(outcome.to_dict(), indent=2))
    return EXIT_OK if outcome.is_ok else EXIT_REQUEST_FAILED


def _run_fingerprint(args: argparse.Namespace) -> int:
    try:
        fingerprint = extract_fingerprint(decode_ppm(Path(args.image).read_bytes()))
    except (OSError, RecognitionError) as e:
        print(f"Cannot fingerprint {args.image}: {e}", file=sys.stderr)
        return EXIT_REQUEST_FAILED
    print(json.dumps(fingerprint.to_dict(), indent=2))
    return EXIT_OK


def _run_convert(args: argparse.Namespace) -> int:
    try:
        grid = convert_to_ppm(args.source, args.destination, max_side=args.max_side)
    except (OSError, RecognitionError) as e:
        print(f"Cannot convert {args.source}: {e}", file=sys.stderr)
        return EXIT_REQUEST_FAILED
    print(f"{args.destination}: {grid.width}x{grid.height}")
    return EXIT_OK


COMMANDS = {
    "recognize": _run_recognize,
    "fingerprint": _run_fingerprint,
    "convert": _run_convert,
}


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the product-recognition command."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
