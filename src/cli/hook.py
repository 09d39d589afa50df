"""
Hook boundary: Claude Code hook JSON in, hook response JSON + exit status out.

Input (stdin), e.g.:
    {"hook_event_name": "PreToolUse", "tool_name": "Write",
     "tool_input": {"file_path": "src/main.rs", "content": "..."}}

Output:
    passthrough -> nothing, exit 0
    continue    -> JSON on stdout, exit 0
    interrupt   -> JSON on stderr, exit 2

An interrupt reason is the combined rule message followed by annotated
snippets of the located occurrences (see reporter.render_snippet).
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO

from core.context import EventContext
from core.utils import debug, error
from pipeline import Decision, Response, evaluate
from reporter import render_response_snippets
from rules.ir import CompiledRule


PRE_TOOL_USE = "PreToolUse"
POST_TOOL_USE = "PostToolUse"
USER_PROMPT_SUBMIT = "UserPromptSubmit"
STOP = "Stop"

TOOL_EVENTS = (PRE_TOOL_USE, POST_TOOL_USE)

STOP_REASON = "Rule violation detected"

EXIT_OK = 0
EXIT_BLOCK = 2


class HookPayloadError(ValueError):
    """Hook input is not a JSON object."""

    pass


def parse_payload(text: str) -> Dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise HookPayloadError(f"invalid hook JSON: {e}") from e
    if not isinstance(payload, dict):
        raise HookPayloadError(f"hook payload must be a JSON object, got {type(payload).__name__}")
    return payload


def _string_fields(tool_input: Mapping[str, Any]) -> Dict[str, str]:
    return {k: v for k, v in tool_input.items() if isinstance(v, str)}


def _tool_event(tool_name: str, tool_input: Mapping[str, Any]) -> EventContext:
    file_path = tool_input.get("file_path") or tool_input.get("path")
    if not isinstance(file_path, str):
        file_path = None

    if tool_name == "Write":
        return EventContext.file_write(file_path, str(tool_input.get("content") or ""), tool_name=tool_name)
    if tool_name == "Edit":
        return EventContext.file_edit(
            file_path,
            str(tool_input.get("old_string") or ""),
            str(tool_input.get("new_string") or ""),
            tool_name=tool_name,
        )
    if tool_name == "MultiEdit":
        edits = [e for e in tool_input.get("edits") or [] if isinstance(e, Mapping)]
        return EventContext.file_edit(
            file_path,
            "\n".join(str(e.get("old_string") or "") for e in edits),
            "\n".join(str(e.get("new_string") or "") for e in edits),
            tool_name=tool_name,
        )
    return EventContext.tool_use(tool_name, _string_fields(tool_input), file_path=file_path)


def event_from_payload(payload: Mapping[str, Any]) -> Optional[EventContext]:
    """Translate a hook payload into an EventContext; None for hooks nudge does not handle."""
    hook_event = payload.get("hook_event_name")

    if hook_event in TOOL_EVENTS:
        tool_name = payload.get("tool_name")
        if not isinstance(tool_name, str) or not tool_name:
            return None
        tool_input = payload.get("tool_input")
        if not isinstance(tool_input, Mapping):
            tool_input = {}
        return _tool_event(tool_name, tool_input)

    if hook_event == USER_PROMPT_SUBMIT:
        return EventContext.prompt(str(payload.get("prompt") or ""))

    if hook_event == STOP:
        message = payload.get("last_assistant_message") or payload.get("message")
        return EventContext.stop(message if isinstance(message, str) else None)

    debug(f"Ignoring unsupported hook event: {hook_event!r}")
    return None


@dataclass(frozen=True)
class HookOutput:
    """What to write, where, and the exit status."""

    exit_code: int
    stream: Optional[str] = None  # "stdout" | "stderr"
    payload: Optional[Dict[str, Any]] = None


def interrupt_reason(response: Response) -> str:
    """The combined rule message, followed by annotated source snippets when occurrences are located."""
    snippets = render_response_snippets(response)
    if not snippets:
        return response.message
    return f"{response.message}\n\n{snippets}"


def build_output(hook_event: Optional[str], response: Response) -> HookOutput:
    if response.decision == Decision.PASSTHROUGH:
        return HookOutput(EXIT_OK)

    if response.decision == Decision.CONTINUE:
        payload: Dict[str, Any] = {
            "continue": True,
            "suppressOutput": False,
            "systemMessage": response.message,
        }
        if hook_event and hook_event != STOP:
            payload["hookSpecificOutput"] = {
                "hookEventName": hook_event,
                "additionalContext": response.message,
            }
        return HookOutput(EXIT_OK, "stdout", payload)

    reason = interrupt_reason(response)
    payload = {
        "continue": False,
        "stopReason": STOP_REASON,
        "suppressOutput": False,
        "systemMessage": reason,
    }
    if hook_event == PRE_TOOL_USE:
        payload["hookSpecificOutput"] = {
            "hookEventName": PRE_TOOL_USE,
            "permissionDecision": "deny",
            "permissionDecisionReason": reason,
        }
    elif hook_event:
        payload["hookSpecificOutput"] = {"hookEventName": hook_event}
    return HookOutput(EXIT_BLOCK, "stderr", payload)


def emit(output: HookOutput, stdout: TextIO, stderr: TextIO) -> int:
    if output.payload is not None:
        stream = stdout if output.stream == "stdout" else stderr
        stream.write(json.dumps(output.payload) + "\n")
        stream.flush()
    return output.exit_code


def handle_hook(payload_text: str, rules: Sequence[CompiledRule]) -> HookOutput:
    """Evaluate one hook payload. Malformed input passes through with an error logged."""
    try:
        payload = parse_payload(payload_text)
    except HookPayloadError as e:
        error(str(e))
        return HookOutput(EXIT_OK)

    event = event_from_payload(payload)
    if event is None:
        return HookOutput(EXIT_OK)

    response = evaluate(rules, event)
    debug(f"Hook {payload.get('hook_event_name')}: {response.decision.value}")
    return build_output(payload.get("hook_event_name"), response)
