"""CLI entry point for chatfmt.

Reads one chat message (file or stdin), formats it, and prints either a
Rich rendering or the segment structure as JSON.
"""

import argparse
import json
import logging
import sys

from rich.console import Console

import chatfmt.io.logging_setup
import chatfmt.settings
from chatfmt.core.message import Role, format_message, message_to_dict
from chatfmt.rendering import render_message

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatfmt",
        description="Render LLM chat output (markdown, code, math) in the terminal",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Message file to read (default: stdin)",
    )
    parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=None,
        help="Message role (default: from settings, else assistant)",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["rich", "json"],
        default="rich",
        help="Output format (default: rich)",
    )
    reasoning = parser.add_mutually_exclusive_group()
    reasoning.add_argument(
        "--show-reasoning",
        dest="show_reasoning",
        action="store_true",
        default=None,
        help="Show <think> reasoning above the message",
    )
    reasoning.add_argument(
        "--hide-reasoning",
        dest="show_reasoning",
        action="store_false",
        help="Hide <think> reasoning",
    )
    parser.add_argument(
        "--code-theme",
        type=str,
        default=None,
        help="Pygments theme for code and math (default: from settings, else monokai)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: CHATFMT_LOG_LEVEL, else WARNING)",
    )
    return parser


def read_content(path: str | None) -> str:
    if path is None:
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    runtime = chatfmt.io.logging_setup.configure(level=args.log_level)
    logger.debug("logging to %s at %s", runtime.file_path, runtime.level_name)

    settings = chatfmt.settings.load_render_settings()
    role_name = args.role or settings.default_role
    try:
        role = Role(role_name)
    except ValueError:
        logger.warning("unknown default_role %r in settings; using assistant", role_name)
        role = Role.ASSISTANT
    show_reasoning = settings.show_reasoning if args.show_reasoning is None else args.show_reasoning
    code_theme = args.code_theme or settings.code_theme

    try:
        content = read_content(args.path)
    except OSError as exc:
        print(f"chatfmt: cannot read {args.path}: {exc.strerror or exc}", file=sys.stderr)
        return 1
    except UnicodeDecodeError as exc:
        source = args.path or "stdin"
        print(
            f"chatfmt: cannot read {source}: not valid UTF-8 (byte {exc.start}: {exc.reason})",
            file=sys.stderr,
        )
        return 1

    message = format_message(content, role)
    for error in message.errors:
        logger.info("%s at %d-%d: %s", error.kind.value, error.span.start, error.span.end, error.details)

    if args.output_format == "json":
        json.dump(message_to_dict(message), sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
        return 0

    console = Console()
    console.print(render_message(message, code_theme=code_theme, show_reasoning=show_reasoning))
    return 0


if __name__ == "__main__":
    sys.exit(main())
