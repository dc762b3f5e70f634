"""Message templates for outbound notifications.

Pure functions: explicit fields in, Markdown text out. Optional fields that
are empty or None are left out of the rendered message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loopwire.utils import basic_timestamp

if TYPE_CHECKING:
    from loopwire.state.host import HostStatus

DEFAULT_AGENT = "Ralph"

_TEST_LABELS = {
    "passing": "PASS",
    "failing": "FAIL",
    "not_run": "-",
}

_CIRCUIT_HEADLINES = {
    "OPEN": ("[STOPPED]", "{agent} has stopped"),
    "HALF_OPEN": ("[WARNING]", "{agent} is monitoring for recovery"),
    "CLOSED": ("[OK]", "{agent} is running normally"),
}

_CIRCUIT_MARKERS = {
    "CLOSED": "[OK]",
    "HALF_OPEN": "[!]",
    "OPEN": "[X]",
}

HELP_TEXT = """*{agent} Commands*

*/status* - Show current {agent} status
*/pause* - Pause after current loop
*/resume* - Resume paused loop
*/reset* - Reset circuit breaker
*/stop* - Stop {agent} gracefully
*/logs* - Show recent log entries
*/logs N* - Show last N log entries
*/skip* - Skip current question
*/help* - Show this help"""


def _present(value: object) -> bool:
    return value is not None and str(value) != ""


def _blocks(*parts: str | None) -> str:
    """Join non-empty paragraphs with a blank line."""
    return "\n\n".join(p for p in parts if p)


def _test_badge(test_status: str | None) -> str:
    return _TEST_LABELS.get((test_status or "").lower(), "?")


def format_loop_complete(
    loop_number: int | str,
    tasks_completed: int,
    files_modified: int,
    test_status: str | None,
    remaining_tasks: int | str = 0,
    work_summary: str | None = None,
    recommendation: str | None = None,
) -> str:
    return _blocks(
        f"*Loop #{loop_number} Complete*",
        f"Done: {tasks_completed} tasks | {files_modified} files\n"
        f"Remaining: {remaining_tasks} tasks | Tests: {_test_badge(test_status)}",
        f"*Work done:*\n{work_summary}" if _present(work_summary) else None,
        f"*Next:* {recommendation}" if _present(recommendation) else None,
    )


def format_error(
    error_message: str,
    loop_number: int | str | None = None,
    details: str | None = None,
    *,
    agent: str = DEFAULT_AGENT,
) -> str:
    where = f"Loop #{loop_number}" if _present(loop_number) else "The current loop"
    return _blocks(
        f"*{agent} Error*",
        f"{where} encountered an error:\n`{error_message}`",
        f"Details: {details}" if _present(details) else None,
    )


def format_circuit_breaker(
    new_state: str,
    reason: str,
    loop_number: int | str | None = None,
    *,
    agent: str = DEFAULT_AGENT,
) -> str:
    marker, headline = _CIRCUIT_HEADLINES.get(new_state, ("", ""))
    title = f"{marker} *Circuit Breaker: {new_state}*".strip()
    body = f"Reason: {reason}"
    if _present(loop_number):
        body += f"\nLoop: #{loop_number}"
    return _blocks(
        title,
        headline.format(agent=agent) if headline else None,
        body,
        "Reply /reset to reset circuit breaker" if new_state == "OPEN" else None,
    )


def format_rate_limit(
    calls_used: int,
    max_calls: int,
    reset_time: str,
    *,
    agent: str = DEFAULT_AGENT,
) -> str:
    return _blocks(
        "*Rate Limit Reached*",
        f"{calls_used}/{max_calls} API calls used this hour.\nResuming at: {reset_time}",
        f"{agent} will continue automatically.",
    )


def format_question(
    question: str,
    context: str | None = None,
    loop_number: int | str | None = None,
    *,
    agent: str = DEFAULT_AGENT,
) -> str:
    return _blocks(
        f"*{agent} needs your input*",
        f"*Question:*\n{question}",
        f"*Context:*\n{context}" if _present(context) else None,
        f"Loop: #{loop_number}" if _present(loop_number) else None,
        f"Reply with your answer or /skip to let {agent} decide.",
    )


def format_startup(
    project_name: str,
    max_calls: int = 100,
    *,
    agent: str = DEFAULT_AGENT,
    timestamp: str | None = None,
) -> str:
    return _blocks(
        f"*{agent} Started*",
        f"Project: {project_name}\n"
        f"Rate limit: {max_calls} calls/hour\n"
        f"Time: {timestamp or basic_timestamp()}",
        "Notifications enabled. Reply /help for commands.",
    )


def format_shutdown(
    reason: str,
    total_loops: int,
    exit_code: int = 0,
    *,
    agent: str = DEFAULT_AGENT,
    timestamp: str | None = None,
) -> str:
    marker = "[DONE]" if exit_code == 0 else "[ERROR]"
    return _blocks(
        f"{marker} *{agent} Stopped*",
        f"Reason: {reason}\n"
        f"Total loops: {total_loops}\n"
        f"Exit code: {exit_code}\n"
        f"Time: {timestamp or basic_timestamp()}",
    )


def format_status(
    loop_number: int | str,
    circuit_state: str,
    calls_remaining: int | str,
    session_id: str | None = None,
    *,
    agent: str = DEFAULT_AGENT,
    timestamp: str | None = None,
) -> str:
    marker = _CIRCUIT_MARKERS.get(circuit_state)
    circuit = f"{marker} {circuit_state}" if marker else circuit_state
    session = f"{session_id[:8]}..." if session_id else "none"
    return _blocks(
        f"*{agent} Status*",
        f"Loop: #{loop_number}\n"
        f"Circuit: {circuit}\n"
        f"API calls remaining: {calls_remaining}\n"
        f"Session: {session}\n"
        f"Time: {timestamp or basic_timestamp()}",
    )


def format_help(*, agent: str = DEFAULT_AGENT) -> str:
    return HELP_TEXT.format(agent=agent)


def format_test_message(*, agent: str = DEFAULT_AGENT, timestamp: str | None = None) -> str:
    return _blocks(
        f"*{agent} Test Message*",
        f"Your Telegram integration is working!\nTime: {timestamp or basic_timestamp()}",
        "You will receive notifications here.",
    )


def format_status_report(
    host: HostStatus | None,
    circuit: dict[str, Any] | None,
    *,
    paused: bool = False,
    stop_requested: bool = False,
    session_id: str | None = None,
    agent: str = DEFAULT_AGENT,
    timestamp: str | None = None,
) -> str:
    """Render the ``/status`` reply from whatever host files were readable."""
    lines = [f"*{agent} Status*", ""]

    if host is not None:
        lines += [f"Loop: #{host.loop}", f"Calls used: {host.calls_made}", f"State: {host.state}"]
    else:
        lines.append("No status file found")

    if circuit is not None:
        state = circuit.get("state") or "UNKNOWN"
        reason = circuit.get("reason")
        lines.append(f"Circuit: {state} ({reason})" if reason else f"Circuit: {state}")

    if paused:
        lines.append("*PAUSED* - waiting to pause after current loop")
    if stop_requested:
        lines.append("*STOP REQUESTED* - will stop after current loop")
    if session_id:
        lines.append(f"Session: {session_id[:8]}...")

    lines.append(f"Time: {timestamp or basic_timestamp()}")
    return "\n".join(lines)
