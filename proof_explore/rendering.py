from __future__ import annotations

import textwrap

from rich.markup import escape

from proof_explore.models import MatchResult, PendingKind, UserProfile

ACTION_LABELS: dict[PendingKind | None, str] = {
    None: "Send Friend Request",
    "outgoing": "Cancel Request",
    "incoming": "Respond",
}

RELATIONSHIP_LABELS: dict[PendingKind | None, str] = {
    None: "not connected",
    "outgoing": "request sent",
    "incoming": "wants to connect",
}

REMOVE_FRIEND_LABEL = "Remove Friend"


def format_score(score: float) -> str:
    if score <= 0:
        return "-"
    if score == int(score):
        return str(int(score))
    return f"{score:.1f}"


def format_handle(username: str) -> str:
    return f"@{username}" if username else "(no handle)"


def action_label(profile: UserProfile) -> str:
    if profile.friend:
        return REMOVE_FRIEND_LABEL
    return ACTION_LABELS[profile.pending]


def relationship_label(profile: UserProfile) -> str:
    if profile.friend:
        return "friends"
    return RELATIONSHIP_LABELS[profile.pending]


def format_result_label(profile: UserProfile, row_width: int) -> str:
    left = profile.name or format_handle(profile.username)
    right = format_handle(profile.username) if profile.name else ""
    if profile.pending is not None:
        right = f"{right} [{profile.pending}]".strip()
    if not right:
        return left
    if row_width <= len(left) + len(right) + 1:
        return f"{left} {right}"
    gap = row_width - len(left) - len(right)
    return f"{left}{' ' * gap}{right}"


def render_kv_box(rows: list[tuple[str, str]], width: int) -> list[str]:
    if not rows:
        return []
    label_width = max(len(label) for label, _ in rows)
    inner_width = max(30, width - 2)
    value_width = max(10, inner_width - label_width - 3)

    lines = ["╭" + ("─" * inner_width) + "╮"]
    for label, value in rows:
        wrapped = textwrap.wrap(value, width=value_width) or [""]
        lines.append(f"│ {label:<{label_width}} {wrapped[0]:<{value_width}} │")
        for continuation in wrapped[1:]:
            lines.append(f"│ {'':<{label_width}} {continuation:<{value_width}} │")
    lines.append("╰" + ("─" * inner_width) + "╯")
    return lines


def render_candidate_details(
    result: MatchResult,
    query: str,
    *,
    content_width: int,
) -> str:
    profile: UserProfile = result.candidate
    rows = [
        ("Name", profile.name or "not set"),
        ("Handle", format_handle(profile.username)),
        ("Relationship", relationship_label(profile)),
        ("Match Score", format_score(result.score)),
        ("Query", query.strip() or "-"),
    ]

    if profile.friend:
        hints = [f" - Ctrl+X: {action_label(profile)}"]
    else:
        hints = [f" - Enter: {action_label(profile)}"]
    if profile.pending == "incoming":
        hints.append(" - Ctrl+A: Accept request")
        hints.append(" - Ctrl+D: Decline request")

    lines = [
        f"# {escape(profile.name or format_handle(profile.username))}",
        "",
    ]
    lines.extend(escape(line) for line in render_kv_box(rows, content_width))
    lines.extend(["", "Actions:", *hints])
    return "\n".join(lines)


def render_match_table(results: list[MatchResult], *, limit: int) -> list[str]:
    """Plain rows for non-interactive output, best match first."""
    lines: list[str] = []
    for result in results[:limit]:
        profile: UserProfile = result.candidate
        status = "friend" if profile.friend else profile.pending or "-"
        lines.append(
            f"{format_score(result.score):>5}  "
            f"{profile.name:<24} {format_handle(profile.username):<20} {status}"
        )
    remaining = len(results) - limit
    if remaining > 0:
        lines.append(f"... and {remaining} more")
    return lines
