# main.py
"""CLI entry point for storyloom."""

from __future__ import annotations

import argparse

from orchestration.cli_runner import run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyloom")
    parser.add_argument("--api-key", default=None, help="Overrides OPENAI_API_KEY")
    parser.add_argument("--output", default=None, help="Write the result to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    outline = sub.add_parser("outline", help="Stream a novel outline")
    outline.add_argument("--title", required=True)
    outline.add_argument("--genre", required=True)
    outline.add_argument("--description", required=True)
    outline.add_argument("--chapters", type=int, required=True)
    outline.add_argument("--requirements", default=None)

    chapter = sub.add_parser("chapter", help="Stream one chapter")
    chapter.add_argument("--title", required=True, help="Chapter title")
    chapter.add_argument("--goal", required=True, help="What the chapter must achieve")
    chapter.add_argument("--conflict", default="")
    chapter.add_argument("--previous", default=None, help="File with the previous chapter ending")
    chapter.add_argument("--continue-from", default=None, help="File with text to continue")
    chapter.add_argument("--words", type=int, default=None)

    sub.add_parser("test-connection", help="Check the configured text model")
    return parser


def main() -> None:
    """Parse command-line arguments and start storyloom."""
    args = build_parser().parse_args()
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
