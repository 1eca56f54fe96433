import argparse
import logging
import sys

from PIL import Image

import config
from pixel_properties import ConfigError, LuminanceFormula, SortProperty
from pixel_sorter import check_threshold_range, sort_image

logger = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser():
    parser = ArgumentParser(
        prog="porter",
        description="Porter - Create glitch art by sorting runs of pixels",
    )
    parser.add_argument("images", nargs="+", help="Input image paths")
    parser.add_argument(
        "-p",
        "--property",
        choices=[p.value for p in SortProperty],
        default=config.DEFAULT_PROPERTY,
        help="Sorting property (default: luminance)",
    )
    parser.add_argument(
        "-l",
        "--lower",
        type=int,
        default=config.DEFAULT_LOWER_THRESHOLD,
        help="Lower threshold, inclusive (default: 0)",
    )
    parser.add_argument(
        "-u",
        "--upper",
        type=int,
        default=None,
        help="Higher threshold, inclusive (default: 255, or 359 for hue)",
    )
    parser.add_argument(
        "--luminance-formula",
        choices=[f.value for f in LuminanceFormula],
        default=config.DEFAULT_LUMINANCE_FORMULA,
        help="Weighted Rec. 709 luma or plain channel mean (default: luma)",
    )
    parser.add_argument(
        "-o", "--output-dir", default=None, help="Output directory (default: .)"
    )
    parser.add_argument(
        "--prefix",
        default=config.OUTPUT_PREFIX,
        help=f"Output file name prefix (default: {config.OUTPUT_PREFIX})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def parse_args(argv):
    parser = build_parser()
    args = parser.parse_args(argv)

    prop = SortProperty.parse(args.property)
    if args.upper is None:
        args.upper = prop.upper_bound

    for name in ("lower", "upper"):
        value = getattr(args, name)
        if not 0 <= value <= prop.upper_bound:
            parser.error(
                f"{name} threshold must be in the range from 0 to {prop.upper_bound}"
            )
    try:
        check_threshold_range(args.lower, args.upper)
    except ConfigError as e:
        parser.error(str(e))

    return args


def run(args):
    """Sort every image, returning the exit status."""
    failures = 0

    for path in args.images:
        print(f"Processing {path}...")
        try:
            output_path = sort_image(
                path,
                args.property,
                args.lower,
                args.upper,
                args.luminance_formula,
                output_dir=args.output_dir,
                prefix=args.prefix,
            )
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.error("Failed to sort image %s: %s", path, e)
            failures += 1
            continue
        print(f"Sorted image saved to {output_path}")

    if failures:
        logger.error("%d of %d images failed", failures, len(args.images))
        return 1

    print("Done!")
    return 0


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        from porter_preview import main as preview_main

        return preview_main()

    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
