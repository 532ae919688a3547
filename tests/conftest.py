"""
Pytest configuration and shared fixtures for UMA dispute tools tests.
"""
import pytest
from unittest.mock import Mock
from eth_abi import encode
from web3 import Web3


QUESTION_TEXT = 'q:"Was the bridge exploited on January 5, 2024?",p1:0,p2:1,p3:0.5'
IDENTIFIER = b'YES_OR_NO_QUERY'.ljust(32, b'\x00')
REQUEST_TIME = 1704412800
CHILD_ORACLE = '0xac60353a54873c446101216829a6a98cdbbc3f3d'
CHILD_REQUESTER = '0x2c0367a9db231ddebd88a94b4f6461a6e47c58b1'


def keccak_hex(data: bytes) -> str:
    """keccak256 as lowercase hex without 0x"""
    return bytes(Web3.keccak(primitive=data)).hex()


@pytest.fixture
def question_bytes():
    """Original child-chain ancillary data"""
    return QUESTION_TEXT.encode('utf-8')


@pytest.fixture
def question_hash(question_bytes):
    """ancillaryDataHash as stored in the mainnet reference"""
    return keccak_hex(question_bytes)


@pytest.fixture
def price_request_added_data(question_bytes):
    """OracleChildTunnel PriceRequestAdded log data"""
    return encode(['bytes32', 'uint256', 'bytes'], [IDENTIFIER, REQUEST_TIME, question_bytes])


@pytest.fixture
def timed_bytes_data(question_bytes):
    """Generic (uint256, bytes) log data"""
    return encode(['uint256', 'bytes'], [REQUEST_TIME, question_bytes])


@pytest.fixture
def request_price_data(question_bytes):
    """OptimisticOracleV2 RequestPrice log data"""
    return encode(
        ['bytes32', 'uint256', 'bytes', 'address', 'uint256', 'uint256'],
        [IDENTIFIER, REQUEST_TIME, question_bytes, '0x' + '11' * 20, 5 * 10 ** 18, 10 ** 18]
    )


@pytest.fixture
def dispute_price_data(question_bytes):
    """OptimisticOracleV2 DisputePrice log data"""
    return encode(
        ['bytes32', 'uint256', 'bytes', 'int256'],
        [IDENTIFIER, REQUEST_TIME, question_bytes, -(10 ** 18)]
    )


@pytest.fixture
def unknown_layout_data(question_bytes):
    """Event shape none of the known layouts describe (bytes is the 4th field)"""
    return encode(['uint256', 'uint256', 'uint256', 'bytes'], [5, 3, 7, question_bytes])


@pytest.fixture
def cross_chain_ancillary(question_hash):
    """Mainnet ancillary data referencing a Polygon request"""
    return (
        f"ancillaryDataHash:{question_hash},childBlockNumber:83182151,"
        f"childOracle:{CHILD_ORACLE[2:]},childRequester:{CHILD_REQUESTER[2:]},childChainId:137"
    )


@pytest.fixture
def mock_voting_w3():
    """Mock Web3 client with a VotingV2 contract"""
    mock_w3 = Mock()
    mock_contract = Mock()
    mock_w3.eth.contract.return_value = mock_contract

    functions = mock_contract.functions
    functions.getVotePhase.return_value.call.return_value = 0
    functions.getCurrentRoundId.return_value.call.return_value = 10252
    functions.getRoundEndTime.return_value.call.return_value = 1771545600
    functions.getPendingRequests.return_value.call.return_value = [
        (10252, False, 1771449360, 0, IDENTIFIER, QUESTION_TEXT.encode('utf-8')),
        (10252, True, 1771449000, 2, b'Admin 42'.ljust(32, b'\x00'), b''),
    ]
    yield {'w3': mock_w3, 'contract': mock_contract}
