#!/usr/bin/env python3
"""
Plain-text rendering of a voting round for the terminal.
"""

from datetime import datetime
from typing import List

from uma_utils import format_timestamp
from uma_voting import VotingData, ParsedVote, RoundInfo

DIVIDER = "─" * 70
HEADER_DIVIDER = "═" * 70
WRAP_WIDTH = 67
RAW_ANCILLARY_MAX = 300


def format_date(date: datetime) -> str:
    return format_timestamp(int(date.timestamp()))


def wrap_text(text: str, width: int = WRAP_WIDTH) -> List[str]:
    """Greedy word wrap with a 2-space first line and 4-space continuation"""
    lines = []
    line = "  "
    for word in text.split(" "):
        if len(line + word) > width:
            lines.append(line.rstrip())
            line = "    " + word + " "
        else:
            line += word + " "
    if line.strip():
        lines.append(line.rstrip())
    return lines


def format_round_header(round_info: RoundInfo) -> str:
    count = round_info.vote_count
    lines = [
        "",
        "  UMA Dispute Voter",
        HEADER_DIVIDER,
        f"  Round:  {round_info.round_id}   Phase: {round_info.phase}   "
        f"Ends: {format_date(round_info.end_time)}",
        "",
        "  No active votes in this round." if count == 0
        else f"  {count} active vote{'' if count == 1 else 's'} in Round #{round_info.round_id}:",
        "",
    ]
    return "\n".join(lines)


def format_vote(vote: ParsedVote) -> str:
    vote_type = "Governance" if vote.is_governance else "Dispute"
    lines = [
        DIVIDER,
        f"  [{vote.index}] {vote.identifier}  {vote_type}",
        DIVIDER,
        f"  Time:     {format_date(vote.time)}",
    ]

    if vote.roll_count > 0:
        plural = "" if vote.roll_count == 1 else "s"
        lines.append(
            f"  Rolled:   {vote.roll_count} time{plural} (failed to resolve in prior round{plural})"
        )

    lines.append("")
    lines.append("  Question / Description:")
    lines.extend(wrap_text(vote.description))

    lines.append("")
    lines.append("  Vote Options:")
    for opt in vote.options:
        lines.append(f"    ● {opt.label:<30} {opt.display_value}")

    if (vote.ancillary_raw and vote.ancillary_raw != vote.description
            and len(vote.ancillary_raw) < RAW_ANCILLARY_MAX):
        lines.append("")
        lines.append(f"  Ancillary data: {vote.ancillary_raw}")

    summary = vote.discord_summary
    if summary and summary.outcomes:
        comments = f" · {summary.total_comments} comments" if summary.total_comments is not None else ""
        lines.append("")
        lines.append(f"  Discord Summary ({summary.generated_at[:10]}{comments})")
        for label, outcome in summary.outcomes.items():
            lines.append(f"  {label}: {outcome.summary}")

    lines.append("")
    return "\n".join(lines)


def format_voting_data(data: VotingData) -> str:
    """Render the whole round: header, then each vote"""
    sections = [format_round_header(data.round)]
    for vote in data.votes:
        sections.append(format_vote(vote))
    if data.votes:
        sections.append(DIVIDER)
        sections.append("")
    return "\n".join(sections)
