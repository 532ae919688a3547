"""
Tests for uma_commit module.
"""
import json
import pytest
from unittest.mock import Mock
from web3 import Web3

from uma_commit import (
    CommitFile, CommitRecord, VoteInput, generate_salt, compute_commit_hash,
    write_commit_file, read_commit_file, load_vote_inputs, build_commits, verify_commit_file
)
from uma_utils import CommitFileError, InvalidInputError
from uma_voting import parse_vote, RawPendingVote
from crosschain_resolver import CrossChainResolver
from conftest import IDENTIFIER, QUESTION_TEXT

VOTER = '0x' + '11' * 20
ROUND_ID = 10252
TIME = 1771449360
PRICE = 10 ** 18


def manual_commit_hash(price, salt, voter, time, ancillary, round_id, identifier):
    """abi.encodePacked by hand: 32-byte ints, 20-byte address, raw bytes"""
    packed = (
        price.to_bytes(32, 'big', signed=True)
        + salt.to_bytes(32, 'big', signed=True)
        + bytes.fromhex(voter[2:])
        + time.to_bytes(32, 'big')
        + ancillary
        + round_id.to_bytes(32, 'big')
        + identifier
    )
    return Web3.to_hex(Web3.keccak(primitive=packed))


@pytest.fixture
def ancillary():
    return QUESTION_TEXT.encode('utf-8')


class TestGenerateSalt:

    def test_salt_in_int256_range(self):
        for _ in range(20):
            salt = generate_salt()
            assert -2 ** 255 <= salt < 2 ** 255

    def test_salts_are_unique(self):
        assert len({generate_salt() for _ in range(20)}) == 20


class TestComputeCommitHash:
    """Tests for compute_commit_hash"""

    def test_hash_format(self, ancillary):
        result = compute_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        assert result.startswith('0x')
        assert len(result) == 66

    def test_deterministic(self, ancillary):
        first = compute_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        second = compute_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        assert first == second

    def test_matches_packed_encoding(self, ancillary):
        result = compute_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        assert result == manual_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)

    def test_negative_salt_and_price(self, ancillary):
        salt = -12345678901234567890
        result = compute_commit_hash(-1, salt, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        assert result == manual_commit_hash(-1, salt, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)

    def test_hex_and_bytes_inputs_agree(self, ancillary):
        from_bytes = compute_commit_hash(PRICE, 42, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        from_hex = compute_commit_hash(
            PRICE, 42, VOTER, TIME, '0x' + ancillary.hex(), ROUND_ID, '0x' + IDENTIFIER.hex()
        )
        assert from_bytes == from_hex

    def test_salt_changes_hash(self, ancillary):
        a = compute_commit_hash(PRICE, 1, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        b = compute_commit_hash(PRICE, 2, VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER)
        assert a != b

    def test_invalid_voter_raises(self, ancillary):
        with pytest.raises(ValueError):
            compute_commit_hash(PRICE, 42, 'not-an-address', TIME, ancillary, ROUND_ID, IDENTIFIER)


class TestCommitFile:
    """Tests for write_commit_file / read_commit_file"""

    @pytest.fixture
    def commit_file(self, ancillary):
        salt = generate_salt()
        return CommitFile(
            round_id=ROUND_ID,
            voter_address=Web3.to_checksum_address(VOTER),
            committed_at='2026-02-19T10:00:00+00:00',
            commits=[
                CommitRecord(
                    description="Was the bridge exploited on January 5, 2024?",
                    identifier='0x' + IDENTIFIER.hex(),
                    time=str(TIME),
                    ancillary_data='0x' + ancillary.hex(),
                    price=str(PRICE),
                    salt=str(salt),
                    option_label="Yes",
                )
            ],
        )

    def test_write_then_read(self, tmp_path, commit_file):
        path = tmp_path / 'commits.json'
        write_commit_file(str(path), commit_file)
        assert read_commit_file(str(path)) == commit_file

    def test_on_disk_keys_are_camel_case(self, tmp_path, commit_file):
        path = tmp_path / 'commits.json'
        commit_file.tx_hash = '0x' + 'ab' * 32
        write_commit_file(str(path), commit_file)

        raw = json.loads(path.read_text())
        assert raw['roundId'] == ROUND_ID
        assert raw['txHash'] == '0x' + 'ab' * 32
        # no stored hash on this record, so no "hash" key
        assert set(raw['commits'][0]) == {
            'description', 'identifier', 'time', 'ancillaryData', 'price', 'salt', 'optionLabel'
        }
        # big salts survive as exact strings
        assert raw['commits'][0]['salt'] == commit_file.commits[0].salt

    def test_missing_file(self, tmp_path):
        with pytest.raises(CommitFileError):
            read_commit_file(str(tmp_path / 'missing.json'))

    def test_not_json(self, tmp_path):
        path = tmp_path / 'commits.json'
        path.write_text('not json')
        with pytest.raises(CommitFileError):
            read_commit_file(str(path))

    def test_missing_fields(self, tmp_path):
        path = tmp_path / 'commits.json'
        path.write_text(json.dumps({'roundId': 1, 'commits': []}))
        with pytest.raises(CommitFileError):
            read_commit_file(str(path))


@pytest.fixture
def pending_votes(ancillary):
    resolver = Mock(spec=CrossChainResolver)
    return [
        parse_vote(RawPendingVote(ROUND_ID, False, TIME, 0, IDENTIFIER, ancillary), 1, resolver=resolver),
        parse_vote(RawPendingVote(ROUND_ID, True, TIME, 0, b'Admin 42'.ljust(32, b'\x00'), b''), 2,
                   resolver=resolver),
    ]


class TestLoadVoteInputs:

    def test_reads_entries(self, tmp_path):
        path = tmp_path / 'votes.json'
        path.write_text(json.dumps([{'index': 1, 'vote': 'Yes'}, {'index': '2', 'vote': 'Reject'}]))
        assert load_vote_inputs(str(path)) == [VoteInput(1, 'Yes'), VoteInput(2, 'Reject')]

    def test_empty_array(self, tmp_path):
        path = tmp_path / 'votes.json'
        path.write_text('[]')
        with pytest.raises(InvalidInputError):
            load_vote_inputs(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidInputError):
            load_vote_inputs(str(tmp_path / 'missing.json'))

    def test_entry_without_vote(self, tmp_path):
        path = tmp_path / 'votes.json'
        path.write_text(json.dumps([{'index': 1}]))
        with pytest.raises(InvalidInputError):
            load_vote_inputs(str(path))


class TestBuildCommits:
    """Tests for build_commits"""

    def test_matches_labels_case_insensitively(self, pending_votes, ancillary):
        records = build_commits(
            [VoteInput(1, 'yes'), VoteInput(2, 'REJECT')], pending_votes, VOTER, ROUND_ID
        )

        assert [r.option_label for r in records] == ['Yes', 'Reject']
        assert [r.price for r in records] == [str(10 ** 18), '0']
        assert records[0].time == str(TIME)
        assert records[0].ancillary_data == '0x' + ancillary.hex()
        assert records[0].identifier == '0x' + IDENTIFIER.hex()
        assert records[0].commit_hash == compute_commit_hash(
            10 ** 18, int(records[0].salt), VOTER, TIME, ancillary, ROUND_ID, IDENTIFIER
        )

    def test_salts_differ_per_record(self, pending_votes):
        records = build_commits([VoteInput(1, 'Yes'), VoteInput(1, 'Yes')], pending_votes, VOTER, ROUND_ID)
        assert records[0].salt != records[1].salt

    def test_unknown_label(self, pending_votes):
        with pytest.raises(InvalidInputError) as exc_info:
            build_commits([VoteInput(1, 'Maybe')], pending_votes, VOTER, ROUND_ID)
        assert '"Yes"' in str(exc_info.value)

    def test_unknown_index(self, pending_votes):
        with pytest.raises(InvalidInputError):
            build_commits([VoteInput(9, 'Yes')], pending_votes, VOTER, ROUND_ID)


class TestVerifyCommitFile:
    """Tests for verify_commit_file"""

    def make_file(self, pending_votes):
        records = build_commits([VoteInput(1, 'No'), VoteInput(2, 'Approve')], pending_votes, VOTER, ROUND_ID)
        return CommitFile(
            round_id=ROUND_ID, voter_address=Web3.to_checksum_address(VOTER),
            committed_at='2026-02-19T10:00:00+00:00', commits=records,
        )

    def test_recomputes_stored_hashes(self, pending_votes):
        data = self.make_file(pending_votes)
        assert verify_commit_file(data) == [r.commit_hash for r in data.commits]

    def test_survives_file_round_trip(self, tmp_path, pending_votes):
        path = tmp_path / 'commits.json'
        data = self.make_file(pending_votes)
        write_commit_file(str(path), data)

        raw = json.loads(path.read_text())
        assert raw['commits'][0]['hash'] == data.commits[0].commit_hash
        assert verify_commit_file(read_commit_file(str(path))) == [r.commit_hash for r in data.commits]

    def test_tampered_price_is_rejected(self, pending_votes):
        data = self.make_file(pending_votes)
        data.commits[0].price = str(10 ** 18)
        with pytest.raises(CommitFileError):
            verify_commit_file(data)

    def test_wrong_round_is_rejected(self, pending_votes):
        data = self.make_file(pending_votes)
        data.round_id = ROUND_ID + 1
        with pytest.raises(CommitFileError):
            verify_commit_file(data)

    def test_records_without_hash_are_recomputed(self, pending_votes):
        data = self.make_file(pending_votes)
        expected = [r.commit_hash for r in data.commits]
        for record in data.commits:
            record.commit_hash = None
        assert verify_commit_file(data) == expected
