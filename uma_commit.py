#!/usr/bin/env python3
"""
UMA Commit-Reveal Helpers

VotingV2 hides votes during the commit phase behind
keccak256(abi.encodePacked(price, salt, voter, time, ancillaryData, roundId, identifier))
with types (int256, int256, address, uint256, bytes, uint256, bytes32).
The field order and widths must match the contract exactly or the reveal
will be rejected.

Commit files keep everything needed for the reveal; big integers are
stored as decimal strings so JSON round-trips them exactly.
"""

import json
import secrets
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import Web3

from uma_utils import CommitFileError, InvalidInputError, logger

COMMIT_HASH_TYPES = ['int256', 'int256', 'address', 'uint256', 'bytes', 'uint256', 'bytes32']

HexOrBytes = Union[str, bytes]


@dataclass
class VoteInput:
    """One entry of a votes file: which vote, which option label"""
    index: int
    vote: str


@dataclass
class CommitRecord:
    """Per-vote commit data; all values are strings for JSON safety"""
    description: str
    identifier: str      # bytes32 hex (0x...)
    time: str            # unix timestamp as decimal string
    ancillary_data: str  # raw hex bytes (0x...)
    price: str           # decimal string
    salt: str            # decimal string (may be negative)
    option_label: str    # human label e.g. "Yes"
    commit_hash: Optional[str] = None


@dataclass
class CommitFile:
    round_id: int
    voter_address: str
    committed_at: str  # ISO timestamp
    commits: List[CommitRecord] = field(default_factory=list)
    tx_hash: Optional[str] = None


# On-disk keys (camelCase) for each dataclass field
_RECORD_KEYS = {
    'description': 'description',
    'identifier': 'identifier',
    'time': 'time',
    'ancillary_data': 'ancillaryData',
    'price': 'price',
    'salt': 'salt',
    'option_label': 'optionLabel',
}
_OPTIONAL_RECORD_KEYS = {
    'commit_hash': 'hash',
}


def generate_salt() -> int:
    """Random salt in the signed int256 range"""
    return int.from_bytes(secrets.token_bytes(32), 'big') - 2 ** 255


def _as_bytes(value: HexOrBytes) -> bytes:
    if isinstance(value, str):
        return Web3.to_bytes(hexstr=value)
    return bytes(value)


def compute_commit_hash(price: int, salt: int, voter: str, time: int,
                        ancillary_data: HexOrBytes, round_id: int,
                        identifier: HexOrBytes) -> str:
    """
    Compute the VotingV2 commit hash.

    Returns:
        0x-prefixed 32-byte hex digest
    """
    digest = Web3.solidity_keccak(
        COMMIT_HASH_TYPES,
        [
            price,
            salt,
            Web3.to_checksum_address(voter),
            time,
            _as_bytes(ancillary_data),
            round_id,
            _as_bytes(identifier),
        ]
    )
    return Web3.to_hex(digest)


def record_commit_hash(record: CommitRecord, voter: str, round_id: int) -> str:
    """Commit hash for a stored record"""
    return compute_commit_hash(
        price=int(record.price),
        salt=int(record.salt),
        voter=voter,
        time=int(record.time),
        ancillary_data=record.ancillary_data,
        round_id=round_id,
        identifier=record.identifier,
    )


def load_vote_inputs(file_path: str) -> List[VoteInput]:
    """
    Read a votes file: a non-empty JSON array of {"index": n, "vote": "<label>"}.

    Raises:
        InvalidInputError: If the file is unreadable or not in that shape
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidInputError(f"Error reading votes file {file_path}: {e}")

    if not isinstance(raw, list) or not raw:
        raise InvalidInputError("Votes file must be a non-empty JSON array")

    try:
        return [VoteInput(index=int(entry['index']), vote=str(entry['vote'])) for entry in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInputError(f"Votes file entries need 'index' and 'vote': {e}")


def build_commits(vote_inputs: Sequence[VoteInput], votes: Sequence[Any],
                  voter: str, round_id: int) -> List[CommitRecord]:
    """
    Match vote inputs to pending votes and build salted commit records.

    Labels match case-insensitively against each vote's options.

    Args:
        vote_inputs: Parsed votes file
        votes: ParsedVote list for the current round
        voter: Effective voter address (staker, not delegate)
        round_id: Current round id

    Raises:
        InvalidInputError: Unknown vote index or option label
    """
    by_index: Dict[int, Any] = {vote.index: vote for vote in votes}
    records = []

    for entry in vote_inputs:
        vote = by_index.get(entry.index)
        if vote is None:
            raise InvalidInputError(f"No active vote at index {entry.index}")

        option = next(
            (o for o in vote.options if o.label.lower() == entry.vote.lower()), None
        )
        if option is None:
            labels = ", ".join(f'"{o.label}"' for o in vote.options)
            raise InvalidInputError(
                f'Invalid vote "{entry.vote}" for vote {entry.index}. Valid options: {labels}'
            )

        record = CommitRecord(
            description=vote.description,
            identifier=vote.raw_identifier,
            time=str(int(vote.time.timestamp())),
            ancillary_data=vote.raw_ancillary_data,
            price=str(option.numeric_value),
            salt=str(generate_salt()),
            option_label=option.label,
        )
        record.commit_hash = record_commit_hash(record, voter, round_id)
        records.append(record)

    return records


def verify_commit_file(data: CommitFile) -> List[str]:
    """
    Recompute every commit hash in a commit file.

    Returns:
        The recomputed hashes, in file order

    Raises:
        CommitFileError: If a stored hash does not match its record
    """
    hashes = []
    for position, record in enumerate(data.commits, start=1):
        try:
            commit_hash = record_commit_hash(record, data.voter_address, data.round_id)
        except ValueError as e:
            raise CommitFileError(f"Commit {position} has invalid fields: {e}")
        if record.commit_hash and record.commit_hash.lower() != commit_hash.lower():
            raise CommitFileError(
                f"Commit {position} ({record.option_label}) hash mismatch: "
                f"stored {record.commit_hash}, recomputed {commit_hash}"
            )
        hashes.append(commit_hash)
    return hashes


def write_commit_file(file_path: str, data: CommitFile) -> None:
    """Write a commit file as pretty-printed JSON"""
    commits = []
    for record in data.commits:
        values = asdict(record)
        entry = {key: values[name] for name, key in _RECORD_KEYS.items()}
        for name, key in _OPTIONAL_RECORD_KEYS.items():
            if values[name] is not None:
                entry[key] = values[name]
        commits.append(entry)

    payload = {
        'roundId': data.round_id,
        'voterAddress': data.voter_address,
        'committedAt': data.committed_at,
        'commits': commits,
    }
    if data.tx_hash:
        payload['txHash'] = data.tx_hash

    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Wrote {len(data.commits)} commit(s) to {file_path}")


def read_commit_file(file_path: str) -> CommitFile:
    """
    Read a commit file written by write_commit_file().

    Raises:
        CommitFileError: If the file is missing, not JSON or missing fields
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise CommitFileError(f"Could not read commit file {file_path}: {e}")

    try:
        commits = []
        for entry in raw['commits']:
            values = {name: str(entry[key]) for name, key in _RECORD_KEYS.items()}
            for name, key in _OPTIONAL_RECORD_KEYS.items():
                values[name] = entry.get(key)
            commits.append(CommitRecord(**values))
        return CommitFile(
            round_id=int(raw['roundId']),
            voter_address=raw['voterAddress'],
            committed_at=raw['committedAt'],
            commits=commits,
            tx_hash=raw.get('txHash'),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CommitFileError(f"Malformed commit file {file_path}: {e}")
