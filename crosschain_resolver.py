#!/usr/bin/env python3
"""
Cross-Chain Ancillary Data Resolver

Disputes bridged from a child chain (Polygon, Optimism, Arbitrum, Base)
reach mainnet with ancillary data that only references the original
request: a hash, the child chain id, the child oracle/requester addresses
and a block number. This module reads the child chain's event logs around
that block and recovers the original bytes whose keccak256 equals the
reference hash.

Every failure along the way (unknown chain, dead RPC, odd log layout,
non-UTF-8 bytes) is absorbed; resolve() returns None rather than raising.
"""

import argparse
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from web3 import Web3

from uma_base import UmaTool
from uma_utils import (
    CHAIN_CONFIGS, BLOCK_LOOKBACK, BLOCK_LOOKAHEAD, NetworkError, logger, chain_name
)
from ancillary_decoder import find_ancillary_bytes, to_bytes

# Version number (semantic versioning: MAJOR.MINOR.PATCH)
__version__ = "1.0.0"


@dataclass(frozen=True)
class AncillaryReference:
    """Pointer to ancillary data that lives on a child chain"""
    ancillary_data_hash: str
    child_chain_id: int
    child_oracle: str  # 0x-prefixed checksum address
    child_requester: str  # 0x-prefixed checksum address
    child_block_number: int


@dataclass(frozen=True)
class ChainEndpointConfig:
    """Static RPC configuration for one child chain"""
    chain_id: int
    name: str
    rpcs: tuple


@dataclass(frozen=True)
class LogEntry:
    """Event log record; only the raw data is used for decoding"""
    address: str
    data: bytes
    block_number: int


def load_chain_configs(raw: Optional[Dict[Any, Dict]] = None) -> Dict[int, ChainEndpointConfig]:
    """
    Build endpoint configs from the `crosschain.chains` config section.

    Args:
        raw: Mapping of chain id -> {'name': ..., 'rpcs': [...]} (defaults to CHAIN_CONFIGS)

    Returns:
        Dict of chain id -> ChainEndpointConfig
    """
    if raw is None:
        raw = CHAIN_CONFIGS

    configs = {}
    for chain_id, entry in raw.items():
        cid = int(chain_id)
        configs[cid] = ChainEndpointConfig(
            chain_id=cid,
            name=entry.get('name') or chain_name(cid),
            rpcs=tuple(entry.get('rpcs', [])),
        )
    return configs


def normalize_address(address: str) -> str:
    """
    Checksum an address that may be missing its 0x prefix.

    Ancillary data stores child addresses as bare hex.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    address = address.strip()
    if not address.lower().startswith('0x'):
        address = '0x' + address
    if not Web3.is_address(address.lower()):
        raise ValueError(f"Invalid address: {address}")
    return Web3.to_checksum_address(address.lower())


def block_window(child_block_number: int) -> tuple:
    """Block range [from, to] searched around a recorded child block"""
    from_block = max(0, child_block_number - BLOCK_LOOKBACK)
    to_block = child_block_number + BLOCK_LOOKAHEAD
    return from_block, to_block


class ChainLogFetcher(UmaTool):
    """Reads event logs from child-chain RPC endpoints"""

    def __init__(self, chain_configs: Optional[Dict[int, ChainEndpointConfig]] = None,
                 timeout: Optional[int] = None) -> None:
        super().__init__(timeout=timeout)
        self.chain_configs = chain_configs if chain_configs is not None else load_chain_configs()

    def endpoints(self, chain_id: int) -> List[str]:
        """RPC URLs for a chain in priority order (empty for unknown chains)"""
        config = self.chain_configs.get(chain_id)
        return list(config.rpcs) if config else []

    def fetch_logs(self, rpc_url: str, address: str,
                   from_block: int, to_block: int) -> List[LogEntry]:
        """
        Fetch logs emitted by address from a single endpoint.

        Raises:
            NetworkError: If the endpoint fails for any reason
        """
        try:
            w3 = self.make_web3(rpc_url)
            raw_logs = w3.eth.get_logs({
                'address': address,
                'fromBlock': from_block,
                'toBlock': to_block,
            })
        except Exception as e:
            raise NetworkError(f"get_logs failed on {rpc_url}: {e}", original_error=e)

        entries = []
        for log in raw_logs:
            try:
                data = to_bytes(log.get('data') or b'')
            except (TypeError, ValueError):
                logger.debug(f"Skipping log with undecodable data from {rpc_url}")
                continue
            entries.append(LogEntry(
                address=log.get('address', address),
                data=data,
                block_number=int(log.get('blockNumber') or 0),
            ))

        logger.debug(f"Fetched {len(entries)} log(s) for {address} in [{from_block}, {to_block}] from {rpc_url}")
        return entries

    def get_logs(self, chain_id: int, address: str,
                 from_block: int, to_block: int) -> List[LogEntry]:
        """
        Fetch logs from the first endpoint that answers.

        Returns:
            Logs from the first working endpoint; empty if the chain is
            unknown or every endpoint fails
        """
        for rpc_url in self.endpoints(chain_id):
            try:
                return self.fetch_logs(rpc_url, address, from_block, to_block)
            except NetworkError as e:
                logger.warning(f"RPC endpoint failed, trying next: {e}")
        return []


class CrossChainResolver:
    """
    Recovers original ancillary data text from a child-chain reference.

    The search is strictly sequential: endpoints, then addresses (oracle
    before requester), then logs, then layouts. The first verified match
    wins.
    """

    def __init__(self, log_fetcher: Optional[ChainLogFetcher] = None) -> None:
        self.log_fetcher = log_fetcher or ChainLogFetcher()

    def find_bytes(self, reference: AncillaryReference) -> Optional[bytes]:
        """Search child-chain logs for bytes hashing to the reference hash"""
        endpoints = self.log_fetcher.endpoints(reference.child_chain_id)
        if not endpoints:
            logger.debug(f"No RPC configuration for chain {reference.child_chain_id}")
            return None

        from_block, to_block = block_window(reference.child_block_number)

        for rpc_url in endpoints:
            for address in (reference.child_oracle, reference.child_requester):
                try:
                    logs = self.log_fetcher.fetch_logs(rpc_url, address, from_block, to_block)
                except NetworkError as e:
                    logger.warning(f"Skipping {address} on {rpc_url}: {e}")
                    continue
                except Exception as e:
                    logger.warning(f"Unexpected error reading logs for {address} on {rpc_url}: {e}")
                    continue

                for log in logs:
                    if not log.data:
                        continue
                    matched = find_ancillary_bytes(log.data, reference.ancillary_data_hash)
                    if matched is not None:
                        logger.info(
                            f"Resolved ancillary data for hash {reference.ancillary_data_hash[:16]}... "
                            f"from block {log.block_number} via {rpc_url}"
                        )
                        return matched

        logger.info(f"No log matched ancillary data hash {reference.ancillary_data_hash[:16]}...")
        return None

    def resolve(self, reference: AncillaryReference) -> Optional[str]:
        """
        Resolve a reference to the original ancillary data text.

        Returns:
            UTF-8 text of the recovered ancillary data, or None
        """
        try:
            matched = self.find_bytes(reference)
        except Exception as e:
            logger.warning(f"Cross-chain search failed for chain {reference.child_chain_id}: {e}")
            return None
        if matched is None:
            return None
        try:
            return matched.decode('utf-8')
        except UnicodeDecodeError:
            logger.warning("Recovered ancillary data is not valid UTF-8")
            return None


def resolve_child_chain_ancillary(reference: AncillaryReference) -> Optional[str]:
    """Resolve a reference using the configured child-chain endpoints"""
    return CrossChainResolver().resolve(reference)


def main():
    parser = argparse.ArgumentParser(
        description='Recover original ancillary data for a cross-chain UMA dispute'
    )
    parser.add_argument('--hash', required=True, help='ancillaryDataHash (hex, with or without 0x)')
    parser.add_argument('--chain-id', required=True, type=int, help='Child chain id (e.g. 137)')
    parser.add_argument('--oracle', required=True, help='Child oracle address')
    parser.add_argument('--requester', required=True, help='Child requester address')
    parser.add_argument('--block', required=True, type=int, help='Child block number')
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args()

    try:
        reference = AncillaryReference(
            ancillary_data_hash=args.hash,
            child_chain_id=args.chain_id,
            child_oracle=normalize_address(args.oracle),
            child_requester=normalize_address(args.requester),
            child_block_number=args.block,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    result = resolve_child_chain_ancillary(reference)
    if result is None:
        print("Could not resolve ancillary data", file=sys.stderr)
        sys.exit(1)
    print(result)


if __name__ == "__main__":
    main()
