import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path

import numpy as np
from PIL import Image

from asciicells.charsets import CHAR_SETS
from asciicells.converter import generate, to_ansi, to_text
from asciicells.engine import load_pixels
from asciicells.errors import AsciiCellsError
from asciicells.glyph_atlas import FontRasterizer, TemplateCache
from asciicells.gpu import probe, select_matcher
from asciicells.options import MODES, GenerateOptions
from asciicells.quantize import LcgSeeder

logger = logging.getLogger(__name__)

DEFAULT_WIDTHS = [w * 10 for w in range(1, 21)]
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}


def get_terminal_size() -> tuple[int, int]:
    """Return (columns, rows) of the terminal, or (80, 24) if not a tty."""
    if not sys.stdout.isatty():
        return (80, 24)
    size = os.get_terminal_size()
    return (size.columns, size.lines)


def find_images(directory: str | Path) -> list[tuple[str, Path]]:
    """(unit_id, path) for every supported image in a directory, sorted by id."""
    directory = Path(directory)
    images = [(p.stem, p) for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS]
    return sorted(images)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _parse_widths(value: str) -> list[int]:
    try:
        widths = [int(w) for w in value.split(",") if w.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid widths: {value}") from e
    if not widths or any(w <= 0 for w in widths):
        raise argparse.ArgumentTypeError(f"Widths must be positive integers: {value}")
    return widths


def _add_generation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--charset", default="standard", choices=sorted(CHAR_SETS), help="Brightness ramp")
    parser.add_argument("--mode", default="brightness", choices=MODES, help="Character selection mode")
    parser.add_argument("--fg-quant", type=int, default=8, help="Foreground colours, 2-32 (default: 8)")
    parser.add_argument("--bg-quant", type=int, default=4, help="Background colours, 1-16 (default: 4)")
    parser.add_argument("--no-bg", action="store_true", help="Disable background colours")
    parser.add_argument(
        "--seeding",
        default="lcg",
        choices=["lcg", "numpy"],
        help="k-means seeding: lcg is reproducible across numpy releases, numpy is not (default: lcg)",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="k-means seed (default: observation count for lcg, 0 for numpy)"
    )
    parser.add_argument("--gpu", action="store_true", help="Use a torch device for structure matching if available")
    parser.add_argument("--font", default=None, help="Font file for structure-mode glyph templates")


def _options(args, width: int) -> GenerateOptions:
    return GenerateOptions(
        text_width=width,
        mode=args.mode,
        ramp=args.charset,
        fg_colours=args.fg_quant,
        bg_colours=args.bg_quant,
        use_background_colours=not args.no_bg,
    )


def _seeder(args):
    if args.seeding == "numpy":
        return np.random.default_rng(args.seed if args.seed is not None else 0)
    return LcgSeeder(args.seed)


def run_batch(args) -> int:
    # Fail fast on bad options before touching any image
    try:
        _options(args, args.widths[0])
    except AsciiCellsError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 1

    print(f"Input:    {args.input}")
    print(f"Output:   {args.output}")
    print(f"Charset:  {args.charset} ({CHAR_SETS[args.charset]})")
    print(f"Mode:     {args.mode}")
    print(f"FG Quant: {args.fg_quant}")
    print(f"BG Quant: {args.bg_quant}{' (disabled)' if args.no_bg else ''}")
    print(f"Widths:   {', '.join(str(w) for w in args.widths)}")
    print()

    if not Path(args.input).is_dir():
        print(f"Input directory not found: {args.input}", file=sys.stderr)
        return 1
    images = find_images(args.input)
    if not images:
        print("No images found in input directory.", file=sys.stderr)
        return 1
    if args.unit:
        images = [(unit_id, path) for unit_id, path in images if unit_id == args.unit]
        if not images:
            print(f"Unit not found: {args.unit}", file=sys.stderr)
            return 1

    print(f"Found {len(images)} image(s) to process")
    print(f"Generating {len(images) * len(args.widths)} ASCII files")
    print()

    if args.dry_run:
        print("DRY RUN - Files that would be generated:")
        for unit_id, _ in images:
            for width in args.widths:
                print(f"  {unit_id}_{width}.json")
        return 0

    output = Path(args.output)
    output.mkdir(parents=True, exist_ok=True)

    templates = TemplateCache(FontRasterizer(args.font)) if args.mode == "structure" else None
    matcher = select_matcher(prefer_gpu=args.gpu) if args.mode == "structure" else None

    total_files = 0
    total_bytes = 0
    failures = 0
    start = time.perf_counter()

    for unit_id, path in images:
        print(f"Processing: {unit_id}")
        try:
            pixels = load_pixels(path)
        except Exception as e:
            logger.warning("Could not decode %s: %s", path, e)
            print(f"  └─ ERROR - {e}")
            failures += len(args.widths)
            continue

        for width in args.widths:
            try:
                artifact = generate(
                    pixels,
                    _options(args, width),
                    templates=templates,
                    matcher=matcher,
                    rng=_seeder(args),
                )
                written = artifact.save(output, unit_id)
            except Exception as e:
                logger.warning("Failed to generate %s at width %d: %s", unit_id, width, e)
                print(f"  ├─ {width}w: ERROR - {e}")
                failures += 1
                continue

            size = written.stat().st_size
            total_files += 1
            total_bytes += size
            print(
                f"  ├─ {width}w: {artifact.height}h, "
                f"{len(artifact.fg_palette)}fg/{len(artifact.bg_palette)}bg colors, {format_bytes(size)}"
            )
        print("  └─ Done")
        print()

    elapsed = time.perf_counter() - start
    print(f"Generated {total_files} files ({format_bytes(total_bytes)}) in {elapsed:.1f}s")
    if failures:
        print(f"{failures} failed", file=sys.stderr)
    return 0


def run_show(args) -> int:
    image_path = Path(args.image)
    if not image_path.exists():
        print(f"File not found: {image_path}", file=sys.stderr)
        return 1

    width = args.size if args.size is not None else get_terminal_size()[0]
    try:
        options = _options(args, width)
    except AsciiCellsError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 1

    try:
        pixels = load_pixels(image_path)
    except (OSError, Image.DecompressionBombError) as e:
        print(f"Could not decode {image_path}: {e}", file=sys.stderr)
        return 1

    templates = TemplateCache(FontRasterizer(args.font)) if args.mode == "structure" else None
    matcher = select_matcher(prefer_gpu=args.gpu) if args.mode == "structure" else None
    artifact = generate(
        pixels,
        options,
        templates=templates,
        matcher=matcher,
        rng=_seeder(args),
    )
    print(to_ansi(artifact) if args.colour else to_text(artifact))
    return 0


def run_probe(args) -> int:
    print(json.dumps(probe(args.device).as_report(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render images as colourised character art")
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Logging level (default: warning)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    batch = commands.add_parser("batch", help="Convert a directory of images to JSON artifacts at several widths")
    batch.add_argument("-i", "--input", default="public/unit_images", help="Input directory")
    batch.add_argument("-o", "--output", default="public/unit_ascii", help="Output directory")
    batch.add_argument(
        "--widths", type=_parse_widths, default=DEFAULT_WIDTHS, help="Comma-separated widths (default: 10,20,...,200)"
    )
    batch.add_argument("--unit", default=None, help="Process a single unit by id")
    batch.add_argument("--dry-run", action="store_true", help="Show what would be generated")
    _add_generation_args(batch)
    batch.set_defaults(func=run_batch)

    show = commands.add_parser("show", help="Render one image to the terminal")
    show.add_argument("image", help="Path to input image")
    show.add_argument(
        "-s", "--size", type=int, default=None, help="Output width in columns (default: terminal width)"
    )
    show.add_argument("--colour", action="store_true", default=False, help="Enable truecolor ANSI output")
    _add_generation_args(show)
    show.set_defaults(func=run_show)

    diag = commands.add_parser("probe", help="Print GPU diagnostics as JSON")
    diag.add_argument("--device", default=None, help="Probe a specific torch device")
    diag.set_defaults(func=run_probe)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
