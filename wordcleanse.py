#!/usr/bin/env python3
"""
WordCleanse - Word Markup Stripper for HTML

CLI tool that removes Microsoft Word markup (MSO classes and styles, Office
XML tags, conditional comments, font cruft) from an HTML fragment, while
keeping tables and lists intact.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from cleaner import WordMarkupCleaner
from debug_log import ConsoleSink, NullSink
from detection import MarkupReport, analyze_markup
from settings import CleanerSettings, load_settings

DEFAULT_CONFIG = Path(__file__).parent / "wordcleanse.yaml"
VERSION = "1.0.0"


def load_config(config_path: Path, explicit: bool) -> CleanerSettings:
    """Load settings; a missing default config falls back to built-in defaults."""
    if not config_path.exists():
        if not explicit:
            return CleanerSettings()
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    try:
        return load_settings(config_path)
    except (ValueError, OSError) as e:
        print(f"Error: Could not read config {config_path}: {e}", file=sys.stderr)
        sys.exit(1)


def _print_analysis(title: str, report: MarkupReport, verbose: bool):
    print(f"{title}:")
    if not report.matches:
        print("  (no Word markup patterns)")
        return
    for match in report.matches.values():
        print(f"  • {match.name}: {match.count}")
        if verbose:
            for example in match.examples:
                preview = example[:80] + "..." if len(example) > 80 else example
                print(f"      \"{preview.strip()}\"")


def print_result(input_path: Path, output_path: Path, original: str, cleaned: str,
                 content_type: str, cleaner: WordMarkupCleaner,
                 verbose: bool = False, show_stats: bool = False):
    """Print processing result summary."""
    print()
    print("=" * 60)
    print("WordCleanse Processing Report")
    print("=" * 60)
    print()
    print(f"Input:        {input_path}")
    print(f"Output:       {output_path}")
    print(f"Content type: {content_type}")
    print()

    before = analyze_markup(original)
    after = analyze_markup(cleaned)

    if not before.has_word_markup:
        print("No Word markup detected; content left unchanged.")
        print()
        return

    removed = len(original) - len(cleaned)
    percent = removed / len(original) * 100 if original else 0
    print(f"Original size: {len(original):,} chars")
    print(f"Cleaned size:  {len(cleaned):,} chars")
    print(f"Removed:       {removed:,} chars ({percent:.1f}%)")
    print()

    print("-" * 60)
    _print_analysis("Before", before, verbose)
    print()
    _print_analysis("After", after, verbose)

    if show_stats:
        stats = cleaner.last_statistics
        print()
        print("-" * 60)
        print("Tree Processing:")
        print(f"  Elements processed:  {stats.elements_processed}")
        print(f"  Elements cleaned:    {stats.elements_cleaned}")
        print(f"  Elements skipped:    {stats.elements_skipped}")
        print(f"  Efficiency:          {stats.efficiency:.1f}%")
        print(f"  Processing time:     {stats.processing_time * 1000:.1f} ms")
        counted = {k: v for k, v in stats.pattern_statistics.items() if v}
        if counted:
            print()
            print("  Pattern removals:")
            for name, count in sorted(counted.items()):
                print(f"    - {name}: {count}")

        cache = cleaner.cache_stats()
        print()
        print("Cache:")
        print(f"  Entries: {cache['current_entries']}/{cache['max_entries']}  "
              f"hits: {cache['hits']}  misses: {cache['misses']}")
    print()


def main():
    parser = argparse.ArgumentParser(
        prog="wordcleanse",
        description="Remove Microsoft Word markup from HTML fragments.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Clean pasted post content
  wordcleanse pasted.html clean.html

  # Preview the changes without writing anything
  wordcleanse pasted.html --dry-run --verbose

  # Clean a short text field with its own policy
  wordcleanse field.html out.html --type acf_text

  # Force the pattern cleaner
  wordcleanse pasted.html clean.html --no-tree --stats

What gets removed (per content-type policy):
  • Office XML tags (<o:p>, <w:...>, <v:...>, <m:...>)
  • Conditional comments (<!--[if gte mso 9]>...<![endif]-->)
  • Mso* classes and mso-* style declarations
  • Font family/size/weight/style and line-height declarations
  • lang attributes and empty spans
  Tables and lists are rebuilt as clean structures.
        """
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Input HTML file to clean"
    )

    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Output HTML file path (not required for --dry-run)"
    )

    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: wordcleanse.yaml)"
    )

    parser.add_argument(
        "-t", "--type",
        default="post",
        help="Content type whose policy applies (default: post)"
    )

    parser.add_argument(
        "-d", "--dry-run",
        action="store_true",
        help="Clean in memory without writing the output"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug output and pattern examples"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors"
    )

    parser.add_argument(
        "--no-tree",
        action="store_true",
        help="Use the pattern cleaner instead of the tree processor"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show processing and cache statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}"
    )

    args = parser.parse_args()

    # Validate input
    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    if not args.dry_run and args.output is None:
        print("Error: Output file required (unless using --dry-run)", file=sys.stderr)
        sys.exit(1)

    if args.output is None:
        args.output = Path("(dry-run)")

    settings = load_config(args.config or DEFAULT_CONFIG, explicit=args.config is not None)
    if args.no_tree:
        settings = replace(settings, use_tree_processing=False)
    if args.verbose:
        settings = replace(settings, debug=True)

    sink = ConsoleSink() if args.verbose and not args.quiet else NullSink()
    cleaner = WordMarkupCleaner(settings, sink=sink)

    if not args.quiet:
        mode = "DRY RUN: CLEAN" if args.dry_run else "CLEAN"
        print(f"\n{mode}: {args.input}")

    try:
        original = args.input.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Could not read {args.input}: {e}", file=sys.stderr)
        sys.exit(1)

    cleaned = cleaner.clean(original, args.type)

    if not args.dry_run:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(cleaned, encoding="utf-8")

    if not args.quiet:
        print_result(args.input, args.output, original, cleaned, args.type, cleaner,
                     verbose=args.verbose, show_stats=args.stats)
        print("✓ Processing completed successfully!")

    sys.exit(0)


if __name__ == "__main__":
    main()
