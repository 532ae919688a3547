#!/usr/bin/env python3
"""
UMA Dispute Tools - Base Class

Base class providing common functionality for tools that talk to an EVM
JSON-RPC endpoint.
"""

from typing import Dict, Optional
from abc import ABC

from web3 import Web3

from uma_utils import DEFAULT_HEADERS, RPC_TIMEOUT_DEFAULT, RPC_TIMEOUT_QUICK


class UmaTool(ABC):
    """
    Base class for all UMA dispute tools.

    Provides common initialization and shared functionality.
    """

    def __init__(self, headers: Optional[Dict[str, str]] = None,
                 timeout: Optional[int] = None) -> None:
        """
        Initialize the tool.

        Args:
            headers: Optional custom HTTP headers (defaults to DEFAULT_HEADERS)
            timeout: Optional RPC timeout in seconds (defaults to RPC_TIMEOUT_DEFAULT)
        """
        self.headers: Dict[str, str] = headers or DEFAULT_HEADERS.copy()
        self.timeout: int = timeout or RPC_TIMEOUT_DEFAULT

    def get_api_timeout(self, quick: bool = False) -> int:
        """
        Get timeout value from config.

        Args:
            quick: If True, return quick timeout, otherwise this tool's timeout

        Returns:
            Timeout value in seconds
        """
        return RPC_TIMEOUT_QUICK if quick else self.timeout

    def make_web3(self, rpc_url: str) -> Web3:
        """Create a Web3 client for an HTTP RPC endpoint"""
        return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': self.timeout}))

    def __repr__(self) -> str:
        """String representation of the tool"""
        return f"{self.__class__.__name__}(timeout={self.timeout})"
