#!/usr/bin/env python3
"""
Ancillary Data Parser

Turns decoded ancillary data into a human-readable question. Requesting
protocols use several ad-hoc conventions (q:"...", description:"...",
Polymarket's unquoted "q: title: ..., description: ...", and so on);
they are tried in a fixed order, most specific first.

Cross-chain references (ancillaryDataHash + childChainId + child
addresses/block) are handed to CrossChainResolver and the recovered text
is run back through the same extraction.
"""

import re
from typing import Dict, List, Optional, Pattern, Tuple

from uma_utils import NO_DESCRIPTION, logger, chain_name
from crosschain_resolver import AncillaryReference, CrossChainResolver, normalize_address

# key:"quoted value" | key:unquoted_value
_KV_PATTERN = re.compile(
    r'([a-zA-Z][a-zA-Z0-9_]*):"([^"]+)"|([a-zA-Z][a-zA-Z0-9_]*):([^,\s]+)'
)

# Ordered: later patterns are broader and must not shadow earlier ones
DESCRIPTION_PATTERNS: List[Tuple[str, Pattern]] = [
    ('q_double_quoted', re.compile(r'q:"([^"]+)"')),
    ('q_single_quoted', re.compile(r"q:'([^']+)'")),
    ('description_quoted', re.compile(r'description:"([^"]+)"', re.IGNORECASE)),
    ('title_quoted', re.compile(r'title:"([^"]+)"', re.IGNORECASE)),
    ('q_title_unquoted', re.compile(
        r'q:\s*title:\s*(.+?)(?:,\s*description:|,\s*res_data:|,\s*initializer:|\Z)',
        re.IGNORECASE | re.DOTALL,
    )),
    ('q_unquoted', re.compile(
        r'^q:\s*(.+?)(?:,\s*(?:description|p1|p2|p3|initializer|ooRequester|res_data):|\Z)',
        re.IGNORECASE | re.DOTALL,
    )),
]

CROSS_CHAIN_KEYS = ('ancillaryDataHash', 'childChainId')
CHILD_LOCATION_KEYS = ('childOracle', 'childBlockNumber', 'childRequester')


def parse_ancillary_kv(text: str) -> Dict[str, str]:
    """
    Parse key:value pairs from UMA ancillary data.

    e.g. 'key1:value1,key2:value2' or 'q:"question text",p1:0,p2:1'.
    Later occurrences of a key overwrite earlier ones.
    """
    result = {}
    for match in _KV_PATTERN.finditer(text or ''):
        key = match.group(1) or match.group(3)
        value = match.group(2) if match.group(1) else match.group(4)
        if key and value:
            result[key] = value.strip()
    return result


def extract_text_description(text: str) -> str:
    """
    Extract a human-readable description from already-decoded text.

    No network access. Returns the trimmed input unchanged when no known
    format matches.
    """
    if not text:
        return NO_DESCRIPTION

    for name, pattern in DESCRIPTION_PATTERNS:
        match = pattern.search(text)
        if match:
            logger.debug(f"Ancillary text matched {name}")
            return match.group(1).strip()

    return text.strip()


def cross_chain_fallback(chain_label: str, ancillary_hash: str) -> str:
    """Placeholder shown when a cross-chain reference can't be resolved"""
    return f"[Cross-chain from {chain_label} — resolution failed] Hash: {ancillary_hash[:16]}..."


def build_reference(kv: Dict[str, str]) -> AncillaryReference:
    """
    Build an AncillaryReference from parsed cross-chain keys.

    Raises:
        KeyError: If a required key is missing
        ValueError: If a number or address is malformed
    """
    return AncillaryReference(
        ancillary_data_hash=kv['ancillaryDataHash'],
        child_chain_id=int(kv['childChainId']),
        child_oracle=normalize_address(kv['childOracle']),
        child_requester=normalize_address(kv['childRequester']),
        child_block_number=int(kv['childBlockNumber']),
    )


def extract_description(ancillary_text: str,
                        resolver: Optional[CrossChainResolver] = None) -> str:
    """
    Extract a human-readable description from ancillary data.

    For cross-chain disputes, resolves the original question from the
    child chain. Never raises; always returns something displayable.

    Args:
        ancillary_text: Decoded mainnet ancillary data
        resolver: Optional resolver (a default one is created on demand)

    Returns:
        The question text, the trimmed input, or a cross-chain placeholder
    """
    if not ancillary_text:
        return NO_DESCRIPTION

    # Fast path, no network calls
    sync_result = extract_text_description(ancillary_text)
    if sync_result != ancillary_text.strip():
        return sync_result

    kv = parse_ancillary_kv(ancillary_text)
    if not all(kv.get(key) for key in CROSS_CHAIN_KEYS):
        return ancillary_text.strip()

    try:
        label = chain_name(int(kv['childChainId']))
    except ValueError:
        label = f"Chain {kv['childChainId']}"

    if all(kv.get(key) for key in CHILD_LOCATION_KEYS):
        try:
            reference = build_reference(kv)
            if resolver is None:
                resolver = CrossChainResolver()
            resolved = resolver.resolve(reference)
            if resolved:
                # The resolved text is the original child-chain ancillary data
                return extract_text_description(resolved)
        except Exception as e:
            logger.warning(f"Cross-chain resolution failed for {label}: {e}")

    return cross_chain_fallback(label, kv['ancillaryDataHash'])
