#!/usr/bin/env python3
"""
UMA VotingV2 Reader

Reads the active round and pending dispute/governance requests from the
mainnet VotingV2 contract and turns them into display-ready votes: decoded
identifier, human-readable question (resolving cross-chain references
where needed) and the valid vote options.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Any

import pytz
from web3 import Web3

from uma_base import UmaTool
from uma_utils import (
    MAINNET_RPC_URL, VOTING_V2_ADDRESS, VOTE_PARSE_MAX_WORKERS,
    ContractCallError, logger
)
from ancillary_parser import extract_description
from crosschain_resolver import CrossChainResolver
from discord_summary import attach_discord_summaries

ONE_E18 = 10 ** 18

VOTING_V2_ABI = [
    {
        "name": "getPendingRequests",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{
            "name": "",
            "type": "tuple[]",
            "components": [
                {"name": "lastVotingRound", "type": "uint32"},
                {"name": "isGovernance", "type": "bool"},
                {"name": "time", "type": "uint64"},
                {"name": "rollCount", "type": "uint32"},
                {"name": "identifier", "type": "bytes32"},
                {"name": "ancillaryData", "type": "bytes"},
            ],
        }],
    },
    {
        "name": "getVotePhase",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "getCurrentRoundId",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint32"}],
    },
    {
        "name": "getRoundEndTime",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "roundId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "getVoterFromDelegate",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "caller", "type": "address"}],
        "outputs": [{"name": "", "type": "address"}],
    },
]


@dataclass
class VoteOption:
    """A selectable answer and the price it commits"""
    label: str
    display_value: str
    numeric_value: int


@dataclass
class RawPendingVote:
    """Pending request exactly as returned by getPendingRequests"""
    last_voting_round: int
    is_governance: bool
    time: int
    roll_count: int
    identifier: bytes
    ancillary_data: bytes


@dataclass
class ParsedVote:
    """Display-ready vote"""
    index: int
    identifier: str
    raw_identifier: str
    time: datetime
    is_governance: bool
    roll_count: int
    round_id: int
    description: str
    ancillary_raw: str
    raw_ancillary_data: str
    options: List[VoteOption] = field(default_factory=list)
    discord_summary: Optional[Any] = None


@dataclass
class RoundInfo:
    round_id: int
    phase: str  # "Commit" or "Reveal"
    end_time: datetime
    vote_count: int


@dataclass
class VotingData:
    round: RoundInfo
    votes: List[ParsedVote]


def decode_identifier(raw: bytes) -> str:
    """Decode a bytes32 price identifier to text, e.g. YES_OR_NO_QUERY"""
    try:
        return bytes(raw).decode('utf-8').replace('\x00', '').strip()
    except (UnicodeDecodeError, TypeError, ValueError):
        return Web3.to_hex(raw)


def decode_ancillary_data(raw: bytes) -> str:
    """Decode ancillary data bytes to a UTF-8 string (best effort)"""
    if not raw:
        return ""
    return bytes(raw).decode('utf-8', errors='replace')


def _format_e18(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros"""
    return format(value.normalize(), 'f')


def get_vote_options(identifier: str, is_governance: bool, ancillary_text: str) -> List[VoteOption]:
    """
    Determine the vote options for a request.

    Args:
        identifier: Decoded price identifier
        is_governance: Whether this is a governance vote
        ancillary_text: Decoded ancillary data (for multiple choice options)

    Returns:
        List of VoteOption in display order
    """
    if is_governance:
        return [
            VoteOption("Approve", "1e18 (1000000000000000000)", ONE_E18),
            VoteOption("Reject", "0", 0),
        ]

    upper = identifier.upper()

    if upper.startswith("YES_OR_NO"):
        return [
            VoteOption("Yes", "1e18 (1000000000000000000)", ONE_E18),
            VoteOption("No", "0", 0),
            VoteOption("Ambiguous / Too early to tell", "0.5e18 (500000000000000000)", ONE_E18 // 2),
        ]

    if upper.startswith("MULTIPLE_CHOICE"):
        options = []
        for match in re.finditer(r'p(\d+):\s*(\d+(?:\.\d+)?)', ancillary_text):
            value = Decimal(match.group(2))
            options.append(VoteOption(
                label=f"Option p{match.group(1)}",
                display_value=f"{_format_e18(value)}e18",
                numeric_value=int((value * ONE_E18).to_integral_value()),
            ))
        if options:
            return options

    # Price / numerical queries
    return [
        VoteOption("Yes / Valid", "1e18 (1000000000000000000)", ONE_E18),
        VoteOption("No / Invalid", "0", 0),
        VoteOption("Custom price", "<value in wei, 18 decimals — check UMIP>", 0),
    ]


def parse_vote(raw: RawPendingVote, index: int,
               resolver: Optional[CrossChainResolver] = None) -> ParsedVote:
    """Parse a raw pending request into a display-ready vote"""
    identifier = decode_identifier(raw.identifier)
    ancillary_raw = decode_ancillary_data(raw.ancillary_data)
    description = extract_description(ancillary_raw, resolver=resolver)
    options = get_vote_options(identifier, raw.is_governance, ancillary_raw)

    return ParsedVote(
        index=index,
        identifier=identifier,
        raw_identifier=Web3.to_hex(raw.identifier),
        time=datetime.fromtimestamp(raw.time, tz=pytz.UTC),
        is_governance=raw.is_governance,
        roll_count=raw.roll_count,
        round_id=raw.last_voting_round,
        description=description,
        ancillary_raw=ancillary_raw,
        raw_ancillary_data=Web3.to_hex(raw.ancillary_data),
        options=options,
    )


class VotingReader(UmaTool):
    """Reads round state and pending votes from VotingV2"""

    def __init__(self, rpc_url: Optional[str] = None, w3: Optional[Web3] = None,
                 contract_address: Optional[str] = None,
                 resolver: Optional[CrossChainResolver] = None,
                 max_workers: Optional[int] = None) -> None:
        """
        Initialize the reader.

        Args:
            rpc_url: Ethereum mainnet RPC URL (defaults to MAINNET_RPC_URL)
            w3: Optional pre-built Web3 client
            contract_address: VotingV2 address (defaults to VOTING_V2_ADDRESS)
            resolver: Resolver for cross-chain ancillary data
            max_workers: Parallelism when parsing votes
        """
        super().__init__()
        self.rpc_url = rpc_url or MAINNET_RPC_URL
        self.w3 = w3 or self.make_web3(self.rpc_url)
        self.contract_address = contract_address or VOTING_V2_ADDRESS
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.contract_address),
            abi=VOTING_V2_ABI
        )
        self.resolver = resolver or CrossChainResolver()
        self.max_workers = max_workers or VOTE_PARSE_MAX_WORKERS

    def _call(self, function_name: str, *args) -> Any:
        try:
            return getattr(self.contract.functions, function_name)(*args).call()
        except Exception as e:
            raise ContractCallError(
                f"VotingV2.{function_name} failed on {self.rpc_url}: {e}",
                function_name=function_name
            )

    def get_vote_phase(self) -> str:
        """Current phase: "Commit" or "Reveal" """
        return "Commit" if self._call("getVotePhase") == 0 else "Reveal"

    def get_current_round_id(self) -> int:
        return int(self._call("getCurrentRoundId"))

    def get_voter_from_delegate(self, address: str) -> str:
        """Staker address a delegate votes for (the address itself otherwise)"""
        return self._call("getVoterFromDelegate", Web3.to_checksum_address(address))

    def get_round_info(self, vote_count: int = 0) -> RoundInfo:
        round_id = self.get_current_round_id()
        end_time = int(self._call("getRoundEndTime", round_id))
        return RoundInfo(
            round_id=round_id,
            phase=self.get_vote_phase(),
            end_time=datetime.fromtimestamp(end_time, tz=pytz.UTC),
            vote_count=vote_count,
        )

    def get_raw_pending_votes(self) -> List[RawPendingVote]:
        return [
            RawPendingVote(
                last_voting_round=int(req[0]),
                is_governance=bool(req[1]),
                time=int(req[2]),
                roll_count=int(req[3]),
                identifier=bytes(req[4]),
                ancillary_data=bytes(req[5]),
            )
            for req in self._call("getPendingRequests")
        ]

    def get_pending_votes(self) -> List[ParsedVote]:
        """
        Fetch and parse all pending votes.

        Votes are parsed concurrently (cross-chain resolution is network
        bound); the result keeps contract order, 1-based indices.
        """
        raw_votes = self.get_raw_pending_votes()
        if not raw_votes:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(parse_vote, raw, idx + 1, self.resolver)
                for idx, raw in enumerate(raw_votes)
            ]
            return [fut.result() for fut in futures]

    def fetch_voting_data(self, with_discord: bool = True) -> VotingData:
        """
        Fetch round info and all pending votes.

        Args:
            with_discord: Attach community Discord summaries (best effort)

        Returns:
            VotingData for the current round
        """
        votes = self.get_pending_votes()
        round_info = self.get_round_info(vote_count=len(votes))

        if with_discord and votes:
            attach_discord_summaries(
                votes, max_workers=self.max_workers,
                headers=self.headers, timeout=self.get_api_timeout(quick=True)
            )

        logger.info(f"Round {round_info.round_id} ({round_info.phase}): {len(votes)} pending vote(s)")
        return VotingData(round=round_info, votes=votes)
