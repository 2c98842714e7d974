"""
Update Notifications.

Turns update records into user-facing lines. Message templates can be
replaced for localization.
"""

from collections.abc import Callable, Iterable

from plugmaster.repository.orchestrator import UpdateRecord

MESSAGES = {
    "update_successful": "    》 {name} updated to v{version}.",
    "update_failed": "    》 {name} update to v{version} failed.",
}


def format_update_lines(
    records: Iterable[UpdateRecord],
    header: str,
    messages: dict[str, str] | None = None,
) -> list[str]:
    """
    Format update records.

    Args:
        records: Update records
        header: First line
        messages: Template overrides (keys of MESSAGES)

    Returns:
        Header followed by one line per record, or [] if there are no records
    """
    records = list(records)
    if not records:
        return []

    templates = {**MESSAGES, **(messages or {})}
    lines = [header]
    for record in records:
        key = "update_successful" if record.was_updated else "update_failed"
        lines.append(templates[key].format(name=record.name, version=record.version))
    return lines


def print_updated_plugins(
    records: Iterable[UpdateRecord],
    header: str,
    emit: Callable[[str], None] = print,
    messages: dict[str, str] | None = None,
) -> None:
    """Emit formatted update lines through emit (default: print)."""
    for line in format_update_lines(records, header, messages):
        emit(line)
