import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple

from core.config import colors_enabled
from matchers.utils import build_line_offset_table, line_in_table
from pipeline import Decision, Response, RuleOutcome
from rules.ir import Action, CompiledRule


_USE_COLOR = colors_enabled()


class _C:
    """ANSI color codes."""

    RESET = "\033[0m" if _USE_COLOR else ""
    BOLD = "\033[1m" if _USE_COLOR else ""
    DIM = "\033[2m" if _USE_COLOR else ""
    # Colors
    RED = "\033[31m" if _USE_COLOR else ""
    GREEN = "\033[32m" if _USE_COLOR else ""
    YELLOW = "\033[33m" if _USE_COLOR else ""
    CYAN = "\033[36m" if _USE_COLOR else ""
    # Bright variants
    BRIGHT_RED = "\033[91m" if _USE_COLOR else ""


def _decision_color(decision: Decision) -> str:
    colors = {
        Decision.INTERRUPT: f"{_C.BOLD}{_C.BRIGHT_RED}",
        Decision.CONTINUE: _C.YELLOW,
        Decision.PASSTHROUGH: _C.GREEN,
    }
    return colors.get(decision, "")


def _action_color(action: Action) -> str:
    return _C.RED if action == Action.INTERRUPT else _C.YELLOW


class OutputMode(Enum):
    """Response output verbosity modes."""

    SHORT = "short"  # Decision and combined message
    FULL = "full"  # + every fired rule with its lines
    JSON = "json"  # Machine-readable JSON output


# =============================================================================
# Source snippets
# =============================================================================

SNIPPET_TITLE = "Rule violation. Fix this error and immediately retry."
SNIPPET_TITLE_PLURAL = "Rule violations. Fix these errors and immediately retry."
DEFAULT_ANNOTATION_LABEL = "matched pattern"


@dataclass(frozen=True)
class Annotation:
    """A character span of a source text and the label printed under it."""

    start: int
    end: int
    label: str = DEFAULT_ANNOTATION_LABEL


def render_snippet(source: str, annotations: Sequence[Annotation]) -> str:
    """
    Render annotated source lines the way a compiler reports errors.

        error: Rule violation. Fix this error and immediately retry.
          |
        5 |     let foo = bar.unwrap();
          |               ^^^^^^^^^^^^ Do not use `.unwrap()`.
          |

    Spans running past the end of their first line are underlined to the end of that line.
    Plain text only: the output goes to the agent as well as to terminals.
    """
    if not annotations:
        return ""
    line_starts = build_line_offset_table(source)
    lines = source.split("\n")

    by_line: Dict[int, List[Tuple[int, int, str]]] = {}
    for ann in annotations:
        line = line_in_table(line_starts, ann.start)
        col = ann.start - line_starts[line - 1]
        width = max(1, min(ann.end - ann.start, len(lines[line - 1]) - col))
        label = ann.label.splitlines()[0] if ann.label else ""
        by_line.setdefault(line, []).append((col, width, label))

    gutter = len(str(max(by_line)))
    pad = " " * gutter
    title = SNIPPET_TITLE if len(annotations) == 1 else SNIPPET_TITLE_PLURAL
    out = [f"error: {title}", f"{pad} |"]
    previous = None
    for line in sorted(by_line):
        text = lines[line - 1]
        if previous is not None and line > previous + 1:
            out.append("...")
        out.append(f"{line:>{gutter}} | {text}".rstrip())
        for col, width, label in sorted(by_line[line]):
            # Keep tabs so carets line up under tab-indented code
            indent = "".join("\t" if c == "\t" else " " for c in text[:col])
            out.append(f"{pad} | {indent}{'^' * width} {label}".rstrip())
        previous = line
    out.append(f"{pad} |")
    return "\n".join(out)


def outcome_annotations(outcomes: Sequence[RuleOutcome]) -> List[Tuple[str, List[Annotation]]]:
    """Group the occurrences of fired rules by the text they were found in, in firing order."""
    groups: Dict[str, List[Annotation]] = {}
    for outcome in outcomes:
        if outcome.source is None or not outcome.occurrences:
            continue
        label = outcome.message.splitlines()[0] if outcome.message else DEFAULT_ANNOTATION_LABEL
        for occ in outcome.occurrences:
            groups.setdefault(outcome.source, []).append(Annotation(occ.start, occ.end, label))
    return list(groups.items())


def render_response_snippets(response: Response) -> str:
    """Snippets for every located occurrence of a response; empty when nothing is located."""
    return "\n\n".join(render_snippet(source, anns) for source, anns in outcome_annotations(response.outcomes))


def _printer(output_file: Optional[TextIO]):
    def _print(msg: str = ""):
        print(msg)
        if output_file:
            print(msg, file=output_file)

    return _print


def report_response(
    response: Response,
    output_mode: OutputMode = OutputMode.SHORT,
    output_file: Optional[TextIO] = None,
) -> int:
    """
    Print the outcome of evaluating one event.

    Returns: Number of rules that fired
    """
    if output_mode == OutputMode.JSON:
        return report_response_json(response, output_file)

    _print = _printer(output_file)
    color = _decision_color(response.decision)
    _print(f"{color}{response.decision.value.upper()}{_C.RESET}")

    if response.is_passthrough:
        _print(f"{_C.DIM}No rules fired{_C.RESET}")
        return 0

    if output_mode == OutputMode.FULL:
        for outcome in response.outcomes:
            _report_outcome(outcome, _print)
        _print()
        snippets = render_response_snippets(response)
        if snippets:
            _print(snippets)
            _print()

    _print(response.message)
    return len(response.outcomes)


def _report_outcome(outcome: RuleOutcome, _print) -> None:
    lines = sorted({occ.line for occ in outcome.occurrences})
    where = f" lines {', '.join(str(n) for n in lines)}" if lines else ""
    color = _action_color(outcome.action)
    _print(f"  {_C.BOLD}{outcome.rule.name}{_C.RESET} [{color}{outcome.action.value}{_C.RESET}]{where}")
    for occ in outcome.occurrences[:3]:
        _print(f"    {_C.DIM}{occ.line}:{_C.RESET} {occ.matched.splitlines()[0] if occ.matched else ''}")


def _outcome_to_dict(outcome: RuleOutcome) -> Dict[str, Any]:
    return {
        "rule": outcome.rule.name,
        "action": outcome.action.value,
        "message": outcome.message,
        "occurrences": [{"line": occ.line, "matched": occ.matched, "captures": occ.captures} for occ in outcome.occurrences],
    }


def report_response_json(response: Response, output_file: Optional[TextIO] = None) -> int:
    """Report a response in JSON format."""
    output = {
        "decision": response.decision.value,
        "message": response.message,
        "rules": [_outcome_to_dict(o) for o in response.outcomes],
    }
    json_str = json.dumps(output, indent=2)
    print(json_str)
    if output_file:
        print(json_str, file=output_file)
    return len(response.outcomes)


def rule_summary(rule: CompiledRule) -> str:
    color = _action_color(rule.action)
    line = f"{_C.BOLD}{rule.name}{_C.RESET} [{color}{rule.action.value}{_C.RESET}] {_C.CYAN}{rule.activation}{_C.RESET}"
    line += f"\n    match: {rule.match}"
    if rule.description:
        line += f"\n    {_C.DIM}{rule.description}{_C.RESET}"
    return line


def report_rules(rules: Sequence[CompiledRule], output_mode: OutputMode = OutputMode.SHORT) -> int:
    """List compiled rules. Returns the number listed."""
    if output_mode == OutputMode.JSON:
        print(
            json.dumps(
                [
                    {
                        "name": r.name,
                        "description": r.description,
                        "event": r.activation.event.value,
                        "action": r.action.value,
                        "match": str(r.match),
                    }
                    for r in rules
                ],
                indent=2,
            )
        )
        return len(rules)

    if not rules:
        print("No rules found")
        return 0
    print(f"{len(rules)} rule(s):\n")
    for rule in rules:
        print(rule_summary(rule))
    return len(rules)


def report_validation(results: List[tuple]) -> int:
    """
    Print per-file validation results.

    Args:
        results: (path, rule count or None, error message or None) tuples

    Returns: Number of files with errors
    """
    failures = 0
    for path, count, err in results:
        if err is None:
            print(f"{_C.GREEN}ok{_C.RESET}    {path} ({count} rule(s))")
        else:
            failures += 1
            print(f"{_C.RED}error{_C.RESET} {path}: {err}")
    return failures
