"""
Evaluation pipeline: run every compiled rule against one event and aggregate.

Per rule, in registry order:
  1. Activation - event kind, tool regex, file glob
  2. Match      - match clause -> occurrences (none: rule does not fire)
  3. Render     - message template with values harvested from the match
  4. Record     - (action, message)

Outcomes aggregate into exactly one Response: no outcomes -> passthrough;
otherwise messages are joined in rule order and any interrupt wins.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from core.context import EventContext
from core.utils import debug, warn, truncate
from matchers.parse import SourceParseError
from matchers.regex import Occurrence
from rules.ir import Action, CompiledRule
from rules.template import MatchValues, render_message


SEPARATOR = "\n\n---\n\n"


class Decision(Enum):
    PASSTHROUGH = "passthrough"
    CONTINUE = "continue"
    INTERRUPT = "interrupt"


@dataclass(frozen=True)
class RuleOutcome:
    """A fired rule: its action and rendered message."""

    rule: CompiledRule
    action: Action
    message: str
    occurrences: List[Occurrence] = field(default_factory=list)
    source: Optional[str] = None  # text the occurrence offsets point into


@dataclass(frozen=True)
class Response:
    """The single response produced for one event."""

    decision: Decision
    message: str = ""
    outcomes: List[RuleOutcome] = field(default_factory=list, compare=False)

    @classmethod
    def passthrough(cls) -> "Response":
        return cls(Decision.PASSTHROUGH)

    @classmethod
    def continue_(cls, message: str, outcomes: Optional[List[RuleOutcome]] = None) -> "Response":
        return cls(Decision.CONTINUE, message, outcomes or [])

    @classmethod
    def interrupt(cls, message: str, outcomes: Optional[List[RuleOutcome]] = None) -> "Response":
        return cls(Decision.INTERRUPT, message, outcomes or [])

    @property
    def is_passthrough(self) -> bool:
        return self.decision == Decision.PASSTHROUGH

    @property
    def is_interrupt(self) -> bool:
        return self.decision == Decision.INTERRUPT


def evaluate_rule(rule: CompiledRule, event: EventContext) -> Optional[RuleOutcome]:
    """
    Evaluate one rule. Returns None when the rule does not fire.

    Runtime failures inside the rule (unparseable source, matcher errors) are
    logged and treated as "did not fire".
    """
    if not rule.activation.accepts(event):
        return None

    try:
        occurrences = rule.match.occurrences(event)
    except SourceParseError as e:
        warn(f"Rule '{rule.name}': {e}")
        return None
    except Exception as e:
        warn(f"Rule '{rule.name}' failed on {event.kind.value} event: {e}")
        return None

    if occurrences is None:
        debug(f"  [rule] {rule.name}: no match")
        return None

    message = render_message(rule.message, MatchValues.from_match(event, occurrences))
    debug(f"  [rule] {rule.name}: fired ({rule.action.value}, {len(occurrences)} occurrence(s)): {truncate(message)}")
    return RuleOutcome(
        rule=rule,
        action=rule.action,
        message=message,
        occurrences=occurrences,
        source=rule.match.source_text(event),
    )


def aggregate(outcomes: Sequence[RuleOutcome]) -> Response:
    if not outcomes:
        return Response.passthrough()
    message = SEPARATOR.join(o.message for o in outcomes)
    if any(o.action == Action.INTERRUPT for o in outcomes):
        return Response.interrupt(message, list(outcomes))
    return Response.continue_(message, list(outcomes))


def evaluate(rules: Sequence[CompiledRule], event: EventContext) -> Response:
    """Evaluate all rules against one event and aggregate into one Response."""
    debug(f"Evaluating {len(rules)} rule(s) on {event.kind.value} event (file={event.file_path}, tool={event.tool_name})")
    outcomes = []
    for rule in rules:
        outcome = evaluate_rule(rule, event)
        if outcome is not None:
            outcomes.append(outcome)
    return aggregate(outcomes)


def evaluate_many(
    rules: Sequence[CompiledRule],
    events: Sequence[EventContext],
    max_workers: Optional[int] = None,
) -> List[Response]:
    """
    Evaluate independent events in parallel.

    Compiled rules are only read, so they are shared across workers.
    Responses are returned in the order of `events`.
    """
    if not events:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda event: evaluate(rules, event), events))
