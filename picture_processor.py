#!/usr/bin/env python3

"""
Picture Processor - Image manipulation and K-means color compression

Copyright (C) 2025 Adnan Valdes

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""
import argparse
import logging

from typing import List, Optional

import picture_filters
from kmeans_quantizer import DEFAULT_CLUSTER_COUNT, DEFAULT_MAX_ITERATIONS, quantize
from picture_raster import DEFAULT_QUALITY, PictureError, Raster


logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(message)s")


def compress(args: argparse.Namespace) -> Raster:
    """
    Reduce the input image to a small palette of representative colors.
    """
    raster = Raster.load(args.input)
    return quantize(raster, args.clusters, max_iterations=args.max_iterations)


def _single(filter_func):
    def run(args: argparse.Namespace) -> Raster:
        return filter_func(Raster.load(args.input))

    return run


def _dark(args: argparse.Namespace) -> Raster:
    return picture_filters.darken(Raster.load(args.input), args.magnitude)


def _rotate(args: argparse.Namespace) -> Raster:
    return picture_filters.rotate(Raster.load(args.input), args.angle)


def _flip(args: argparse.Namespace) -> Raster:
    return picture_filters.flip(Raster.load(args.input), args.direction)


def _blend(args: argparse.Namespace) -> Raster:
    return picture_filters.blend([Raster.load(path) for path in args.inputs])


def _mosaic(args: argparse.Namespace) -> Raster:
    return picture_filters.mosaic(
        [Raster.load(path) for path in args.inputs], args.tile_size
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="picture-processor",
        description="Picture Processor - Image manipulation and K-means color compression",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log every convergence pass"
    )
    parser.add_argument(
        "--quality", type=int, default=DEFAULT_QUALITY, help="JPEG quality (if saving JPEG)"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    def add_command(name, handler, help_text, single_input=True):
        sub = commands.add_parser(
            name,
            help=help_text,
            description=help_text,
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        sub.set_defaults(handler=handler)
        if single_input:
            sub.add_argument("input", help="Input image path, or - for stdin")
            sub.add_argument("output", help="Output image path")
        return sub

    sub = add_command("compress", compress, "Reduce the palette with K-means clustering")
    sub.add_argument(
        "-k",
        "--clusters",
        type=int,
        default=DEFAULT_CLUSTER_COUNT,
        help="Number of colors (clusters) in the output",
    )
    sub.add_argument(
        "--max-iterations",
        type=int,
        default=DEFAULT_MAX_ITERATIONS,
        help="Maximum number of full reassignment passes",
    )

    add_command("invert", _single(picture_filters.invert), "Invert every color")
    add_command("grayscale", _single(picture_filters.grayscale), "Convert to gray levels")
    add_command("blur", _single(picture_filters.blur), "Apply a 3x3 box blur")
    add_command("warhol", _single(picture_filters.warhol), "Pop-art 2x2 tinted poster")

    sub = add_command("dark", _dark, "Darken by an integer factor", single_input=False)
    sub.add_argument("magnitude", type=int, help="Divisor applied to every channel")
    sub.add_argument("input", help="Input image path, or - for stdin")
    sub.add_argument("output", help="Output image path")

    sub = add_command("rotate", _rotate, "Rotate clockwise", single_input=False)
    sub.add_argument("angle", type=int, help="Angle in degrees, rounded up to quarter turns")
    sub.add_argument("input", help="Input image path, or - for stdin")
    sub.add_argument("output", help="Output image path")

    sub = add_command("flip", _flip, "Mirror the image", single_input=False)
    sub.add_argument(
        "direction",
        choices=sorted(picture_filters.FLIP_DIRECTIONS),
        help="V mirrors top-bottom, H mirrors left-right",
    )
    sub.add_argument("input", help="Input image path, or - for stdin")
    sub.add_argument("output", help="Output image path")

    sub = add_command("blend", _blend, "Average several images", single_input=False)
    sub.add_argument("inputs", nargs="+", help="Input image paths")
    sub.add_argument("output", help="Output image path")

    sub = add_command("mosaic", _mosaic, "Tile several images", single_input=False)
    sub.add_argument("tile_size", type=int, help="Tile side in pixels")
    sub.add_argument("inputs", nargs="+", help="Input image paths")
    sub.add_argument("output", help="Output image path")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        result = args.handler(args)
        result.save(args.output, quality=args.quality)
    except (PictureError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        parser.error(str(e))


if __name__ == "__main__":
    main()
