"""Command-line interface for epub-text."""

import argparse
import sys
from pathlib import Path

from .errors import FatalExtractionError
from .extractor import ExtractorConfig, extract
from .styles import Theme


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epub-text",
        description="Extract the readable text of an EPUB book in reading order",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the book with terminal colors
  python -m epub_text book.epub | less -R

  # Plain text into a file
  python -m epub_text book.epub --plain --output book.txt

  # Custom colors
  python -m epub_text book.epub --theme theme.json
        """,
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Input EPUB file",
    )

    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write the text to this file instead of stdout",
    )

    theme_group = parser.add_mutually_exclusive_group()
    theme_group.add_argument(
        "--theme",
        type=Path,
        default=None,
        help="JSON theme file mapping roles to styles",
    )
    theme_group.add_argument(
        "--plain",
        action="store_true",
        help="Do not emit terminal escape sequences",
    )

    parser.add_argument(
        "--metadata",
        action="store_true",
        help="Print title, author, language and description before the text",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to render content documents (default: 1)",
    )

    parser.add_argument(
        "--no-fix-text",
        action="store_true",
        help="Do not repair mojibake in metadata",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print progress and skipped entries to the console",
    )

    return parser


def _metadata_header(document) -> str:
    meta = document.metadata
    lines = [
        f"Title: {meta.title}",
        f"Author: {meta.author}",
        f"Language: {meta.language}",
    ]
    if meta.description:
        lines.append(f"Description: {meta.description}")
    return "\n".join(lines) + "\n\n"


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the epub-text CLI."""
    args = build_parser().parse_args(argv)

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    try:
        if args.plain:
            theme = Theme.plain()
        elif args.theme is not None:
            theme = Theme.from_json(args.theme)
        else:
            theme = Theme.default()

        config = ExtractorConfig(
            verbose=args.verbose,
            fix_text=not args.no_fix_text,
            workers=args.workers,
            theme=theme,
        )
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        document = extract(args.input, config)
    except FatalExtractionError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    if not document.text:
        print("Warning: No text was extracted", file=sys.stderr)

    output = document.text
    if args.metadata:
        output = _metadata_header(document) + output

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(output, encoding="utf-8")
        if args.verbose:
            print(f"Wrote {len(output)} chars to {args.output}")
    else:
        sys.stdout.write(output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
