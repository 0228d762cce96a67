"""
TinyQR command line — encode text into a QR image.

    tinyqr "HELLO WORLD" -o hello.png
    tinyqr                      (prompts for the text and the file name)
"""

import argparse
import logging
import sys
from pathlib import Path

from tinyqr_types import (
    MIN_VERSION, MAX_VERSION,
    DEFAULT_VERSION, DEFAULT_SCALE, DEFAULT_BORDER,
    TinyQRError, version_parameters,
)
from tinyqr_encoder import TinyQREncoder, render_image


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinyqr",
        description="Encode text into a QR code image (level Q, byte mode, mask 1)")
    parser.add_argument("text", nargs="?",
                        help="Text to encode (prompted for when omitted)")
    parser.add_argument("-o", "--output",
                        help="Output image; format follows the extension (default: qrcode.png)")
    parser.add_argument("-V", "--qr-version", type=int, default=DEFAULT_VERSION,
                        help=f"Symbol version {MIN_VERSION}-{MAX_VERSION} (default: {DEFAULT_VERSION})")
    parser.add_argument("-s", "--scale", type=int, default=DEFAULT_SCALE,
                        help=f"Pixels per module (default: {DEFAULT_SCALE})")
    parser.add_argument("-b", "--border", type=int, default=DEFAULT_BORDER,
                        help=f"Border size in modules (default: {DEFAULT_BORDER})")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log pipeline details")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        params = version_parameters(args.qr_version)
        text = args.text
        output = args.output
        if text is None:
            text = input(f"Enter text to encode (up to {params.capacity} bytes): ")
            if output is None:
                output = input("Enter output file name: ").strip() or None
        output = output or "qrcode.png"

        matrix = TinyQREncoder(version=args.qr_version).encode(text)
        # a bare name is saved as a bitmap
        image_format = None if Path(output).suffix else "BMP"
        render_image(matrix, output, args.scale, args.border, image_format)
    except TinyQRError as e:
        print(f"tinyqr: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"tinyqr: {e}", file=sys.stderr)
        return 2

    print(f"QR code saved to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
