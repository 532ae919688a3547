#!/usr/bin/env python3
"""
UMA Dispute Voter CLI

Lists the active votes of the current UMA DVM round with human-readable
questions, resolving cross-chain disputes back to their original text.

Usage:
    # List active votes
    python3 uma_dispute_voter.py list

    # Show current phase as JSON
    python3 uma_dispute_voter.py stage --json

    # Resolve a single ancillary data string (text or 0x-hex)
    python3 uma_dispute_voter.py resolve 'ancillaryDataHash:...,childChainId:137,...'

    # Compute a commit hash
    python3 uma_dispute_voter.py commit-hash --price 1000000000000000000 --salt 42 \\
        --voter 0x... --time 1771449360 --ancillary-data 0x... --round-id 10252 --identifier 0x...

    # Prepare salted commits from a votes file ([{"index": 1, "vote": "Yes"}, ...])
    python3 uma_dispute_voter.py commit --votes votes.json --out commits.json --voter 0x...

    # Check a commit file and print the reveal parameters
    python3 uma_dispute_voter.py reveal --in commits.json --dry-run

Nothing here signs or sends transactions; submit batchCommit / batchReveal
with the printed parameters from your own wallet.
"""

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime

import pytz

from uma_utils import MAINNET_RPC_URL, UmaToolError, InvalidInputError, CommitFileError, logger
from uma_voting import VotingReader, decode_ancillary_data
from uma_format import format_voting_data
from ancillary_parser import extract_description
from uma_commit import (
    CommitFile, compute_commit_hash, generate_salt, load_vote_inputs, build_commits,
    verify_commit_file, write_commit_file, read_commit_file
)

# Version
__version__ = "1.0.0"


def _json_default(value):
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return '0x' + value.hex()
    return str(value)


def _dump_json(payload) -> str:
    # ints beyond 2**53 are written as strings
    def convert(obj):
        if isinstance(obj, bool):
            return obj
        if isinstance(obj, int) and abs(obj) > 2 ** 53:
            return str(obj)
        if isinstance(obj, dict):
            return {k: convert(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [convert(v) for v in obj]
        return obj

    if is_dataclass(payload):
        payload = asdict(payload)
    return json.dumps(convert(payload), indent=2, default=_json_default)


def cmd_list(args) -> int:
    if not args.json:
        print(f"  Connecting to {args.rpc_url}...")
    reader = VotingReader(rpc_url=args.rpc_url)
    data = reader.fetch_voting_data(with_discord=not args.no_discord)
    if args.json:
        print(_dump_json(data))
    else:
        print(format_voting_data(data))
    return 0


def cmd_stage(args) -> int:
    reader = VotingReader(rpc_url=args.rpc_url)
    round_info = reader.get_round_info()
    if args.json:
        print(json.dumps({'round': round_info.round_id, 'phase': round_info.phase}))
    else:
        print(f"  Round {round_info.round_id}: {round_info.phase} phase "
              f"(ends {round_info.end_time.isoformat()})")
    return 0


def cmd_resolve(args) -> int:
    text = args.ancillary
    if text.startswith('0x'):
        try:
            text = decode_ancillary_data(bytes.fromhex(text[2:]))
        except ValueError:
            print("Error: ancillary data is not valid hex", file=sys.stderr)
            return 1
    print(extract_description(text))
    return 0


def cmd_commit_hash(args) -> int:
    salt = args.salt if args.salt is not None else generate_salt()
    commit_hash = compute_commit_hash(
        price=args.price,
        salt=salt,
        voter=args.voter,
        time=args.time,
        ancillary_data=args.ancillary_data,
        round_id=args.round_id,
        identifier=args.identifier,
    )
    print(_dump_json({'hash': commit_hash, 'salt': str(salt)}))
    return 0


def cmd_commit(args) -> int:
    vote_inputs = load_vote_inputs(args.votes)

    reader = VotingReader(rpc_url=args.rpc_url)
    voter = reader.get_voter_from_delegate(args.voter)
    if voter.lower() != args.voter.lower():
        print(f"  Voting as delegate for: {voter}\n")

    round_info = reader.get_round_info()
    if round_info.phase != "Commit":
        raise InvalidInputError("Current phase is Reveal, not Commit. Cannot commit votes now.")
    print(f"  Round {round_info.round_id} — Commit phase\n")

    votes = reader.get_pending_votes()
    commits = build_commits(vote_inputs, votes, voter, round_info.round_id)

    for entry, record in zip(vote_inputs, commits):
        description = record.description
        short = description[:55] + ("…" if len(description) > 55 else "")
        print(f"  [{entry.index}] {short}")
        print(f"       Vote: {record.option_label} ({record.price})")
        print(f"       Hash: {record.commit_hash}\n")

    write_commit_file(args.out, CommitFile(
        round_id=round_info.round_id,
        voter_address=voter,
        committed_at=datetime.now(pytz.UTC).isoformat(),
        commits=commits,
    ))
    print(f"  Prepared {len(commits)} commit{'' if len(commits) == 1 else 's'}")
    print(f"  File: {args.out}")
    print("  Keep this file safe — you'll need it to reveal your votes.\n")
    return 0


def cmd_reveal(args) -> int:
    commit_file = read_commit_file(args.in_file)
    hashes = verify_commit_file(commit_file)

    if not args.dry_run:
        reader = VotingReader(rpc_url=args.rpc_url)
        if args.voter:
            voter = reader.get_voter_from_delegate(args.voter)
            if voter.lower() != commit_file.voter_address.lower():
                raise CommitFileError(
                    f"Effective voter address ({voter}) does not match the commit file "
                    f"voter ({commit_file.voter_address})"
                )
        round_info = reader.get_round_info()
        if round_info.phase != "Reveal":
            raise InvalidInputError("Current phase is Commit, not Reveal. Cannot reveal votes yet.")
        if round_info.round_id != commit_file.round_id:
            raise InvalidInputError(
                f"Commit file is for round {commit_file.round_id} "
                f"but current round is {round_info.round_id}."
            )

    reveals = [
        {
            'identifier': record.identifier,
            'time': record.time,
            'price': record.price,
            'ancillaryData': record.ancillary_data,
            'salt': record.salt,
            'optionLabel': record.option_label,
            'hash': commit_hash,
        }
        for record, commit_hash in zip(commit_file.commits, hashes)
    ]
    print(_dump_json({
        'roundId': commit_file.round_id,
        'voterAddress': commit_file.voter_address,
        'reveals': reveals,
    }))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='CLI for UMA protocol dispute voting')
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    list_parser = subparsers.add_parser('list', help='List all active votes for the current round')
    list_parser.add_argument('-r', '--rpc-url', default=MAINNET_RPC_URL, help='Ethereum RPC URL')
    list_parser.add_argument('-j', '--json', action='store_true', help='Output machine-readable JSON')
    list_parser.add_argument('--no-discord', action='store_true', help='Skip Discord summaries')
    list_parser.set_defaults(func=cmd_list)

    stage_parser = subparsers.add_parser('stage', help='Show the current voting phase')
    stage_parser.add_argument('-r', '--rpc-url', default=MAINNET_RPC_URL, help='Ethereum RPC URL')
    stage_parser.add_argument('-j', '--json', action='store_true', help='Output machine-readable JSON')
    stage_parser.set_defaults(func=cmd_stage)

    resolve_parser = subparsers.add_parser('resolve', help='Extract the question from ancillary data')
    resolve_parser.add_argument('ancillary', help='Ancillary data as text or 0x-hex')
    resolve_parser.set_defaults(func=cmd_resolve)

    hash_parser = subparsers.add_parser('commit-hash', help='Compute a VotingV2 commit hash')
    hash_parser.add_argument('--price', required=True, type=int)
    hash_parser.add_argument('--salt', type=int, help='Salt (random if omitted)')
    hash_parser.add_argument('--voter', required=True)
    hash_parser.add_argument('--time', required=True, type=int)
    hash_parser.add_argument('--ancillary-data', required=True, help='0x-hex ancillary data')
    hash_parser.add_argument('--round-id', required=True, type=int)
    hash_parser.add_argument('--identifier', required=True, help='0x-hex bytes32 identifier')
    hash_parser.set_defaults(func=cmd_commit_hash)

    commit_parser = subparsers.add_parser('commit', help='Prepare salted commits from a votes file')
    commit_parser.add_argument('-r', '--rpc-url', default=MAINNET_RPC_URL, help='Ethereum RPC URL')
    commit_parser.add_argument('--votes', required=True, help='JSON file: [{"index": 1, "vote": "Yes"}, ...]')
    commit_parser.add_argument('--out', required=True, help='Commit file to write')
    commit_parser.add_argument('--voter', required=True, help='Signer address (staker or delegate)')
    commit_parser.set_defaults(func=cmd_commit)

    reveal_parser = subparsers.add_parser('reveal', help='Check a commit file and print reveal parameters')
    reveal_parser.add_argument('-r', '--rpc-url', default=MAINNET_RPC_URL, help='Ethereum RPC URL')
    reveal_parser.add_argument('--in', dest='in_file', required=True, help='Commit file written by commit')
    reveal_parser.add_argument('--voter', help='Signer address, checked against the commit file voter')
    reveal_parser.add_argument('--dry-run', action='store_true',
                               help='Only re-check the hashes, no on-chain phase/round checks')
    reveal_parser.set_defaults(func=cmd_reveal)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (UmaToolError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\n  Error: {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
