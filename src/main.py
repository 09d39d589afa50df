"""
Main entry point and command dispatch.
"""

import sys
import argparse
from typing import List, Optional, TextIO

from dotenv import load_dotenv

from core.utils import debug, error, info
from matchers.parse import supported_languages
from pipeline import evaluate
from reporter import OutputMode, report_response, report_rules, report_validation
from cli.helpers import build_sample_event, find_rules, load_rules_or_report, validate_rule_files
from cli.hook import emit, handle_hook
from cli.debug import dump_syntax_tree


def run_hook(stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    """Read one hook payload, evaluate it, write the hook response. Never blocks on load errors."""
    payload_text = stdin.read()
    rules = load_rules_or_report()
    if rules is None:
        # Broken rule files must not block the host agent
        return 0
    return emit(handle_hook(payload_text, rules), stdout, stderr)


def run_validate(rule_path: Optional[str] = None) -> int:
    results = validate_rule_files(rule_path)
    if not results:
        error(f"No rule files found{' at: ' + rule_path if rule_path else ''}")
        return 1
    failures = report_validation(results)
    if failures:
        error(f"{failures} rule file(s) failed to validate")
        return 1
    return 0


def run_list(output_mode: OutputMode = OutputMode.SHORT) -> int:
    rules = load_rules_or_report()
    if rules is None:
        return 1
    report_rules(rules, output_mode)
    return 0


def run_test(
    rule_name: str,
    event: Optional[str] = None,
    tool: Optional[str] = None,
    file_path: Optional[str] = None,
    content: Optional[str] = None,
    content_file: Optional[str] = None,
    old_string: Optional[str] = None,
    prompt: Optional[str] = None,
    message: Optional[str] = None,
    output_mode: OutputMode = OutputMode.FULL,
) -> int:
    """Evaluate the named rule(s) against a sample event. Exit 0 when the rule fires."""
    rules = load_rules_or_report()
    if rules is None:
        return 1

    selected = find_rules(rules, rule_name)
    if not selected:
        error(f"Rule not found: {rule_name}. Use `nudge list` to see available rules.")
        return 1

    if content_file:
        try:
            with open(content_file, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            error(f"Failed to read {content_file}: {e}")
            return 1

    try:
        sample = build_sample_event(
            event,
            rule=selected[0],
            tool=tool,
            file_path=file_path,
            content=content,
            old_string=old_string,
            prompt=prompt,
            message=message,
        )
    except ValueError as e:
        error(str(e))
        return 1

    if len(selected) > 1:
        info(f"{len(selected)} rules named '{rule_name}'; evaluating all of them")

    response = evaluate(selected, sample)
    fired = report_response(response, output_mode)
    return 0 if fired else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nudge", description="Rule-based guidance for code-editing agent hooks")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    sub.add_parser("hook", help="Evaluate a Claude Code hook payload read from stdin")

    p_validate = sub.add_parser("validate", help="Compile rule files and report errors")
    p_validate.add_argument("path", nargs="?", help="Rule file or directory (default: discovered rule files)")

    p_list = sub.add_parser("list", help="List all loaded rules")
    p_list.add_argument("-o", "--output", choices=["short", "json"], default="short", help="Output format")

    p_test = sub.add_parser("test", help="Run one rule against sample input")
    p_test.add_argument("--rule", required=True, metavar="NAME", help="Rule name")
    p_test.add_argument("--event", help="Event kind (default: the rule's event)")
    p_test.add_argument("--tool", help="Tool name")
    p_test.add_argument("--file", dest="file_path", metavar="PATH", help="File path of the event")
    content = p_test.add_mutually_exclusive_group()
    content.add_argument("--content", help="Content written (new_string for edits)")
    content.add_argument("--content-file", metavar="PATH", help="Read content from a file")
    p_test.add_argument("--old-string", help="Replaced text (edit events)")
    p_test.add_argument("--prompt", help="Prompt text (prompt events)")
    p_test.add_argument("--message", help="Final message (stop events)")
    p_test.add_argument("-o", "--output", choices=["short", "full", "json"], default="full", help="Output verbosity")

    p_tree = sub.add_parser("syntax-tree", help="Dump the syntax tree of a file or snippet")
    p_tree.add_argument("-l", "--language", required=True, help=f"One of: {', '.join(supported_languages())}")
    p_tree.add_argument("input", help="Source file path or literal source code")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    debug(f"Command: {args.command}")

    if args.command == "hook":
        return run_hook(sys.stdin, sys.stdout, sys.stderr)
    if args.command == "validate":
        return run_validate(args.path)
    if args.command == "list":
        return run_list(OutputMode(args.output))
    if args.command == "test":
        return run_test(
            args.rule,
            event=args.event,
            tool=args.tool,
            file_path=args.file_path,
            content=args.content,
            content_file=args.content_file,
            old_string=args.old_string,
            prompt=args.prompt,
            message=args.message,
            output_mode=OutputMode(args.output),
        )
    if args.command == "syntax-tree":
        return dump_syntax_tree(args.language, args.input)
    return 1


def cli() -> None:
    # Load environment variables from .env file (if exists)
    load_dotenv()
    sys.exit(main())


if __name__ == "__main__":
    cli()
