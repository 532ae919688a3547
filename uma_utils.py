#!/usr/bin/env python3
"""
UMA Dispute Tools - Shared Utilities

Common functions, constants and exception types used across the UMA
dispute voting tools.
"""

import logging
import yaml
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional, Any
import pytz

# Set up basic logging first (before config loading)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


# Custom exception classes
class UmaToolError(Exception):
    """Base exception for all UMA dispute tool errors"""
    pass


class NetworkError(UmaToolError):
    """Raised when an RPC or HTTP request fails"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ContractCallError(UmaToolError):
    """Raised when a view call against the voting contract fails"""
    def __init__(self, message: str, function_name: Optional[str] = None):
        super().__init__(message)
        self.function_name = function_name


class InvalidInputError(UmaToolError):
    """Raised when user input is invalid"""
    pass


class CommitFileError(UmaToolError):
    """Raised when a commit file cannot be read or is malformed"""
    pass


# Configuration loading
def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file"""
    if config_path is None:
        config_path = Path(__file__).parent / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        # Return defaults if config file doesn't exist
        return {}

    try:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load config file {config_path}: {e}")
        return {}


# Load configuration
_config = load_config()

# Reconfigure logging with config if available
_log_config = _config.get('logging', {})
if _log_config:
    log_level = getattr(logging, _log_config.get('level', 'INFO').upper(), logging.INFO)
    log_format = _log_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    log_datefmt = _log_config.get('datefmt', '%Y-%m-%d %H:%M:%S')
    logging.basicConfig(level=log_level, format=log_format, datefmt=log_datefmt, force=True)

# Mainnet RPC (with config override support)
_rpc_config = _config.get('rpc', {})
MAINNET_RPC_URL = _rpc_config.get('mainnet_url', "https://eth.llamarpc.com")

# Timeout values in seconds (with config override support)
_rpc_timeout_config = _rpc_config.get('timeout', {})
RPC_TIMEOUT_DEFAULT = _rpc_timeout_config.get('default', 15)
RPC_TIMEOUT_QUICK = _rpc_timeout_config.get('quick', 5)

# Default headers for HTTP requests
DEFAULT_HEADERS = _config.get('http', {}).get('headers', {
    'User-Agent': 'uma-dispute-tools/1.0',
    'Accept': 'application/json',
})

# Human-readable chain names, used when labelling cross-chain references
CHAIN_NAMES = {
    1: 'Ethereum',
    137: 'Polygon',
    10: 'OP Mainnet',
    42161: 'Arbitrum One',
    8453: 'Base',
}

# Child chains we can read event logs from; RPCs are tried in listed order
_crosschain_config = _config.get('crosschain', {})
CHAIN_CONFIGS = _crosschain_config.get('chains', {
    137: {
        'name': 'Polygon',
        'rpcs': ['https://polygon.drpc.org', 'https://1rpc.io/matic'],
    },
    10: {
        'name': 'OP Mainnet',
        'rpcs': ['https://mainnet.optimism.io', 'https://optimism.drpc.org'],
    },
    42161: {
        'name': 'Arbitrum One',
        'rpcs': ['https://arb1.arbitrum.io/rpc', 'https://arbitrum.drpc.org'],
    },
    8453: {
        'name': 'Base',
        'rpcs': ['https://mainnet.base.org', 'https://base.drpc.org'],
    },
})

# Block window searched around the recorded child block number
BLOCK_LOOKBACK = _crosschain_config.get('block_lookback', 100)
BLOCK_LOOKAHEAD = _crosschain_config.get('block_lookahead', 10)

# Sanity ceilings for the brute-force scan over raw log data.
# Heuristic: real ancillary data is well below both.
_brute_force_config = _crosschain_config.get('brute_force', {})
BRUTE_FORCE_MAX_OFFSET = _brute_force_config.get('max_offset', 8192)
BRUTE_FORCE_MAX_LENGTH = _brute_force_config.get('max_length', 4096)

# Mainnet VotingV2 contract
_voting_config = _config.get('voting', {})
VOTING_V2_ADDRESS = _voting_config.get('contract_address', "0x004395edb43EFca9885CEdad51EC9fAf93Bd34ac")
VOTE_PARSE_MAX_WORKERS = _voting_config.get('max_workers', 8)

# Discord community summary API
DISCORD_SUMMARY_API = _config.get('discord', {}).get('summary_api', "https://vote.uma.xyz/api/fetch-summary")

NO_DESCRIPTION = "(No description provided)"
CROSS_CHAIN_FALLBACK_PREFIX = "[Cross-chain"


def chain_name(chain_id: int) -> str:
    """
    Get a display name for a chain id.

    Args:
        chain_id: EVM chain id

    Returns:
        Known chain name, or "Chain <id>" for chains we don't know about
    """
    config = CHAIN_CONFIGS.get(chain_id)
    if config and config.get('name'):
        return config['name']
    return CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")


def format_timestamp(timestamp: int) -> str:
    """
    Convert a unix timestamp to a human-readable UTC string.

    Args:
        timestamp: Unix timestamp (integer seconds)

    Returns:
        Formatted timestamp string, e.g. "Thu, 19 Feb 2026 21:16:00 UTC"
    """
    try:
        dt_utc = datetime.fromtimestamp(timestamp, tz=pytz.UTC)
        return dt_utc.strftime("%a, %d %b %Y %H:%M:%S UTC")
    except (OverflowError, OSError, ValueError) as e:
        return f"Unknown timestamp (Error: {e})"
