#!/usr/bin/env python3
"""
ABOUTME: Splits an HTML fragment into style-preserving character/word/line units
ABOUTME: Lays the fragment out with HtmlStyledTree and writes the units as JSON or JSONL
"""

import argparse
import json
import sys
from pathlib import Path

try:
    from style_split import (
        HTMLParsingService,
        HtmlStyledTree,
        ParsingConfig,
        SplitType,
        TextProcessingConfig,
        TextSplitter,
    )
    from style_split.common import DEFAULT_LINE_TOLERANCE, ELEMENT_ID_ATTR
except ImportError as e:
    print(f"Error: Required modules not found ({e}). Run: pip install lxml", file=sys.stderr)
    sys.exit(1)


def run_split(markup: str, split_type: str = "characters", width: float = 600.0,
              font_size: float = 16.0, line_height: float = 1.2,
              tolerance: float = DEFAULT_LINE_TOLERANCE, mask_lines: bool = False,
              element_id: str = None, debug: bool = False):
    """
    Lay out markup in a fresh tree and split it.

    Args:
        markup: HTML fragment to split
        split_type: characters, words or lines
        width: Container width in px
        font_size: Root font size in px
        line_height: 'normal' line height as a multiple of the font size
        tolerance: Line detection tolerance in px
        mask_lines: Hide overflow of each line mask
        element_id: Id for the split element (generated when omitted)
        debug: Print service diagnostics

    Returns:
        Tuple of (tree, splitter, owner element, TextSplitResult)
    """
    tree = HtmlStyledTree(width=width, font_size=font_size, line_height_ratio=line_height)
    owner = tree.create_element('div')
    tree.append_child(tree.root, owner)
    tree.set_inner_html(owner, markup)
    if element_id:
        tree.set_attribute(owner, ELEMENT_ID_ATTR, element_id)

    parser = HTMLParsingService(tree, ParsingConfig(line_tolerance=tolerance, debug=debug))
    splitter = TextSplitter(tree, parser=parser, debug=debug)
    result = splitter.split_text(owner, TextProcessingConfig(
        animate_by=split_type,
        mask_lines=mask_lines,
    ))
    return tree, splitter, owner, result


def build_unit_records(tree, units) -> list:
    """One JSON-ready record per unit, in order."""
    records = []
    for index, unit in enumerate(units):
        line_index = tree.get_attribute(unit, 'data-line-index')
        records.append({
            'index': index,
            'text': tree.text_content(unit),
            'html': tree.inner_html(unit),
            'line_index': int(line_index) if line_index is not None else None,
            'id': tree.get_attribute(unit, ELEMENT_ID_ATTR),
            'style': tree.get_attribute(unit, 'style', ''),
        })
    return records


def build_metadata(result) -> dict:
    return {
        'element_id': result.element_id,
        'split_type': SplitType(result.split_type).value,
        'line_count': result.line_count,
        'unit_count': result.element_count,
        'original_text': result.original_text,
    }


def save_units_jsonl(records: list, stream, metadata: dict):
    """Write metadata as the first line, then one unit per line."""
    stream.write(json.dumps(metadata, ensure_ascii=False) + '\n')
    for record in records:
        stream.write(json.dumps(record, ensure_ascii=False) + '\n')


def save_units_json(records: list, stream, metadata: dict):
    output_data = {
        'meta': metadata,
        'total_units': len(records),
        'units': records,
    }
    json.dump(output_data, stream, indent=2, ensure_ascii=False)
    stream.write('\n')


def read_input(source: str) -> str:
    if source == '-':
        return sys.stdin.read()
    return Path(source).read_text(encoding='utf-8')


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Split an HTML fragment into style-preserving text units"
    )
    parser.add_argument(
        "input",
        type=str,
        help="Path to an HTML fragment file ('-' reads stdin)"
    )
    parser.add_argument(
        "--by",
        type=str,
        choices=[t.value for t in SplitType],
        default=SplitType.CHARACTERS.value,
        help="Unit kind (default: characters)"
    )
    parser.add_argument(
        "--width",
        type=float,
        default=600.0,
        help="Container width in px (default: 600)"
    )
    parser.add_argument(
        "--font-size",
        type=float,
        default=16.0,
        help="Root font size in px (default: 16)"
    )
    parser.add_argument(
        "--line-height",
        type=float,
        default=1.2,
        help="Normal line height as a multiple of the font size (default: 1.2)"
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=DEFAULT_LINE_TOLERANCE,
        help=f"Line detection tolerance in px (default: {DEFAULT_LINE_TOLERANCE})"
    )
    parser.add_argument(
        "--mask-lines",
        action="store_true",
        help="Clip each line to its mask container"
    )
    parser.add_argument(
        "--element-id",
        type=str,
        help="Id to assign to the split element"
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "jsonl"],
        default="json",
        help="Output format (default: json)"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output file path (default: stdout)"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print split statistics to stderr"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output from the splitting services"
    )

    args = parser.parse_args(argv)

    # Validate input file
    if args.input != '-' and not Path(args.input).exists():
        print(f"Error: File not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    markup = read_input(args.input)
    tree, splitter, _, result = run_split(
        markup,
        split_type=args.by,
        width=args.width,
        font_size=args.font_size,
        line_height=args.line_height,
        tolerance=args.tolerance,
        mask_lines=args.mask_lines,
        element_id=args.element_id,
        debug=args.debug,
    )
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        sys.exit(1)

    records = build_unit_records(tree, result.split_elements)
    metadata = build_metadata(result)

    if args.stats:
        map_stats = splitter.positions.get_stats()
        print("\n--- Split Statistics ---", file=sys.stderr)
        print(f"Units: {len(records)} {metadata['split_type']}", file=sys.stderr)
        print(f"Lines: {result.line_count}", file=sys.stderr)
        print(f"Layout passes: {tree.layout_passes}", file=sys.stderr)
        print(f"Position maps: {map_stats.total_maps} "
              f"(largest {map_stats.largest_map_size}, ~{map_stats.memory_usage} bytes)",
              file=sys.stderr)
        print(f"Style segments: {splitter.get_debug_summary()['style_segments']}",
              file=sys.stderr)

    save = save_units_jsonl if args.format == "jsonl" else save_units_json
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            save(records, f, metadata)
        print(f"Saved {len(records)} units to: {args.output}", file=sys.stderr)
    else:
        save(records, sys.stdout, metadata)


if __name__ == "__main__":
    main()
