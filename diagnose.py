#!/usr/bin/env python3
"""
WordCleanse Diagnostic Tool

Inspects an HTML file to show which Word markup it carries, which policy a
content type would apply, and which tables and lists would be protected.
"""

import argparse
import sys
from pathlib import Path

from detection import WORD_MARKERS, analyze_markup, contains_word_markup
from html_tree import ParseFailure, parse_fragment
from policy import resolve_policy
from protection import extract_protected_regions, is_pseudo_list


def analyze_document(html_path: Path, content_type: str = "post", show_all: bool = False):
    """Analyze a file and print what cleaning would act on."""
    content = html_path.read_text(encoding="utf-8")

    print(f"\nAnalyzing: {html_path}")
    print("=" * 70)
    print(f"Length: {len(content):,} chars")

    found = [m for m in WORD_MARKERS if m in content]
    if contains_word_markup(content):
        print("Word markup: YES")
        print(f"  Markers: {', '.join(found)}")
    else:
        print("Word markup: no (cleaning would leave this content unchanged)")

    policy = resolve_policy(content_type)
    enabled = [name for name, value in policy.to_dict().items() if value]
    print(f"\nPolicy for '{content_type}':")
    print(f"  Enabled: {', '.join(enabled) or '(none)'}")

    _, regions = extract_protected_regions(content, policy)
    pseudo = regions.pseudo_lists
    print("\nProtected regions:")
    print(f"  Tables:       {len(regions.tables)}")
    print(f"  Lists:        {len(regions.lists) - len(pseudo)}")
    print(f"  Pseudo-lists: {len(pseudo)}")
    if show_all:
        for marker, fragment in list(regions.tables.items()) + list(regions.lists.items()):
            kind = "pseudo-list" if is_pseudo_list(marker) else marker.split("_")[0].lower()
            preview = " ".join(fragment[:70].split())
            print(f"    {marker} [{kind}] {preview}...")

    try:
        body = parse_fragment(content)
        print(f"\nTree parse: OK ({sum(1 for _ in body.iter()) - 1} nodes)")
    except ParseFailure as e:
        print(f"\nTree parse: FAILED, pattern cleaner would be used ({e})")

    report = analyze_markup(content)
    print("\nPattern analysis:")
    if not report.matches:
        print("  (none)")
    for match in report.matches.values():
        print(f"  {match.name}: {match.count}")
        for example in match.examples:
            preview = example[:80] + "..." if len(example) > 80 else example
            print(f"      \"{preview.strip()}\"")

    print(f"\nTotal pattern matches: {report.total_matches}")
    if report.complex_html:
        print("Complex HTML: yes (short text fields would use the full cleaner)")


def main():
    parser = argparse.ArgumentParser(
        description="Diagnose Word markup in an HTML file to help configure WordCleanse"
    )
    parser.add_argument("input", type=Path, help="Input HTML file")
    parser.add_argument(
        "-t", "--type",
        default="post",
        help="Content type whose policy to show (default: post)"
    )
    parser.add_argument(
        "-a", "--all",
        action="store_true",
        help="List every protected region"
    )

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: File not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    analyze_document(args.input, args.type, args.all)


if __name__ == "__main__":
    main()
