from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .batch import generate_batch
from .errors import TemplateParseError
from .fields import load_layout_file
from .inspect_artifact import extract_text_spans
from .rows import load_rows_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certbatch",
        description="Overlay dataset values onto a certificate template PDF, one certificate per row.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a ZIP of certificates.")
    gen.add_argument("--template", required=True, help="Path to the template PDF.")
    gen.add_argument("--fields", required=True, help="Path to the layout JSON.")
    data = gen.add_mutually_exclusive_group(required=True)
    data.add_argument("--csv", dest="csv_path", help="Path to CSV file with one row per certificate.")
    data.add_argument("--data-json", help="Path to JSON file with a list of rows.")
    gen.add_argument("--output", required=True, help="Output ZIP path.")

    insp = sub.add_parser("inspect", help="List text spans placed on a generated PDF.")
    insp.add_argument("--pdf", required=True, help="Path to a generated certificate.")
    insp.add_argument("--page", type=int, default=0, help="Zero-based page index.")
    insp.add_argument("--contains", help="Filter spans by substring (case-insensitive).")
    insp.add_argument("--output-json", help="Write the spans to this JSON file.")
    return parser


def run_generate(args: argparse.Namespace) -> int:
    try:
        fields = load_layout_file(Path(args.fields))
    except (OSError, ValueError) as exc:
        print(f"Invalid layout: {exc}", file=sys.stderr)
        return 1
    try:
        rows = load_rows_file(Path(args.csv_path or args.data_json))
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        print(f"Invalid row data: {exc}", file=sys.stderr)
        return 1
    try:
        template_bytes = Path(args.template).read_bytes()
    except OSError as exc:
        print(f"Template error: {exc}", file=sys.stderr)
        return 1

    print(f"Generating {len(rows)} certificates...")
    total = len(rows)
    processed = 0

    def report(percent: float) -> None:
        nonlocal processed
        processed += 1
        print(f"  [{processed}/{total}] {percent:5.1f}%")

    try:
        result = generate_batch(template_bytes, fields, rows, on_progress=report)
    except TemplateParseError as exc:
        print(f"Template error: {exc}", file=sys.stderr)
        return 1

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.archive)

    for name in result.artifacts:
        print(f"  {name}")
    for diagnostic in result.diagnostics:
        print(f"[WARN] {diagnostic.message}")
    print(f"Done! {result.summary()}")
    print(f"Wrote: {output_path}")
    return 0


def run_inspect(args: argparse.Namespace) -> int:
    items = extract_text_spans(Path(args.pdf).read_bytes(), args.page, args.contains)
    print(f"Matches: {len(items)}")
    for idx, item in enumerate(items, start=1):
        bbox = item["bbox_bottom_left"]
        print(
            f"{idx:03d} | '{item['text']}' | font={item['font']} size={item['size']:.1f} | "
            f"bbox_bl=({bbox[0]:.2f},{bbox[1]:.2f},{bbox[2]:.2f},{bbox[3]:.2f})"
        )
    if args.output_json:
        output_json = Path(args.output_json)
        output_json.parent.mkdir(parents=True, exist_ok=True)
        output_json.write_text(json.dumps({"page": args.page, "items": items}, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {output_json}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "generate":
        return run_generate(args)
    return run_inspect(args)


if __name__ == "__main__":
    sys.exit(main())
