#!/usr/bin/env python3
"""
Discord Community Summary

Fetches the community discussion summary UMA publishes for each vote.
Best effort: any failure means "no summary".
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

import requests

from uma_utils import (
    DISCORD_SUMMARY_API, DEFAULT_HEADERS, RPC_TIMEOUT_QUICK, CROSS_CHAIN_FALLBACK_PREFIX, logger
)

OUTCOME_KEYS = ("P1", "P2", "P3", "P4", "Uncategorized")


@dataclass
class DiscordOutcome:
    summary: str
    sources: List[Any] = field(default_factory=list)


@dataclass
class DiscordSummary:
    generated_at: str
    total_comments: Optional[int]
    outcomes: Dict[str, DiscordOutcome] = field(default_factory=dict)


def fetch_discord_summary(vote, headers: Optional[Dict[str, str]] = None,
                          timeout: Optional[int] = None) -> Optional[DiscordSummary]:
    """
    Fetch the Discord summary for a parsed vote.

    Args:
        vote: ParsedVote (uses time, identifier and description)
        headers: Optional custom headers (defaults to DEFAULT_HEADERS)
        timeout: Request timeout in seconds (defaults to RPC_TIMEOUT_QUICK)

    Returns:
        DiscordSummary, or None if there is none or anything goes wrong
    """
    # Only attempt if we have a real description (not a hash fallback)
    if not vote.description or vote.description.startswith(CROSS_CHAIN_FALLBACK_PREFIX):
        return None

    params = {
        'time': str(int(vote.time.timestamp())),
        'identifier': vote.identifier,
        'title': vote.description,
    }

    try:
        response = requests.get(
            DISCORD_SUMMARY_API, params=params,
            headers=headers or DEFAULT_HEADERS, timeout=timeout or RPC_TIMEOUT_QUICK
        )
        if response.status_code != 200:
            logger.debug(f"No Discord summary for vote {vote.index} (status {response.status_code})")
            return None
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.debug(f"Discord summary request failed for vote {vote.index}: {e}")
        return None
    except ValueError as e:
        logger.debug(f"Discord summary for vote {vote.index} is not JSON: {e}")
        return None

    if not isinstance(data, dict):
        return None

    outcomes = {}
    summary = data.get('summary')
    if not isinstance(summary, dict):
        summary = {}
    for key in OUTCOME_KEYS:
        outcome = summary.get(key)
        if isinstance(outcome, dict) and outcome.get('summary'):
            outcomes[key] = DiscordOutcome(
                summary=outcome['summary'],
                sources=outcome.get('sources') or [],
            )

    return DiscordSummary(
        generated_at=data.get('generatedAt', ''),
        total_comments=data.get('totalComments'),
        outcomes=outcomes,
    )


def attach_discord_summaries(votes: List[Any], max_workers: int = 8,
                             headers: Optional[Dict[str, str]] = None,
                             timeout: Optional[int] = None) -> None:
    """Fetch summaries for all votes in parallel and set vote.discord_summary"""
    if not votes:
        return
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        summaries = list(pool.map(
            lambda vote: fetch_discord_summary(vote, headers=headers, timeout=timeout), votes
        ))
    for vote, summary in zip(votes, summaries):
        vote.discord_summary = summary
