import argparse
import logging
import sys
from pathlib import Path

from ..config import load_settings
from .errors import PipelineError
from .pipeline import ContentPipeline


def main(argv=None):
    parser = argparse.ArgumentParser(description="Normalize MathSophos lesson content (LaTeX/Markdown)")

    # Input/Output
    parser.add_argument("path", help="Markdown/LaTeX file, or a raw model completion with --json")
    parser.add_argument("--output", "-o", help="Output file (default: <input>.normalized.md or .html)")

    # Modes
    parser.add_argument("--json", choices=["lesson", "exercise"], help="Treat the input as a generated JSON payload")
    parser.add_argument("--for_pdf", action="store_true", help="Exercise layout without <details> blocks")
    parser.add_argument("--render", action="store_true", help="Write rendered HTML instead of Markdown")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    src = Path(args.path)
    if not src.exists():
        print(f"Error: {src} not found")
        return 1

    pipeline = ContentPipeline.from_settings(load_settings())
    raw = src.read_text(encoding="utf-8")
    try:
        if args.json == "lesson":
            content = pipeline.process_generated_lesson(raw)
        elif args.json == "exercise":
            content = pipeline.process_generated_exercise(raw, for_pdf=args.for_pdf)
        else:
            content = pipeline.normalize(raw)
    except PipelineError as e:
        print(f"Error: {e}")
        return 1

    suffix = ".normalized.md"
    if args.render:
        result = pipeline.render(content)
        content = result.html
        suffix = ".html"
        if result.math_errors or result.block_errors:
            print(f"Rendered with {len(result.math_errors)} math error(s), {len(result.block_errors)} block error(s)")

    out = Path(args.output) if args.output else src.with_name(src.stem + suffix)
    out.write_text(content, encoding="utf-8")
    print(f"Wrote {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
