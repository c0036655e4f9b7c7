"""Tests for treasury key parsing and swap transaction signing."""

import base64
import json

import base58
import pytest

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from burn_worker.core.sweep.errors import ConfigInvalid, KeyMismatch, TransactionBuildFailed
from burn_worker.core.wallet import Wallet, parse_secret_key, sign_versioned_transaction


def _unsigned_payload(payer, blockhash: Hash) -> str:
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=5))
    message = MessageV0.try_compile(payer, [ix], [], blockhash)
    tx = VersionedTransaction.populate(message, [Signature.default()])
    return base64.b64encode(bytes(tx)).decode()


class TestParseSecretKey:

    def test_json_array(self):
        keypair = Keypair()
        parsed = parse_secret_key(json.dumps(list(bytes(keypair))))
        assert parsed.pubkey() == keypair.pubkey()

    def test_base58(self):
        keypair = Keypair()
        parsed = parse_secret_key(base58.b58encode(bytes(keypair)).decode())
        assert parsed.pubkey() == keypair.pubkey()

    def test_raw_list_and_bytes(self):
        keypair = Keypair()
        assert parse_secret_key(list(bytes(keypair))).pubkey() == keypair.pubkey()
        assert parse_secret_key(bytes(keypair)).pubkey() == keypair.pubkey()

    @pytest.mark.parametrize("secret", [
        "",
        "   ",
        "[1, 2, 3]",
        "{\"key\": 1}",
        "[1, 2,",
        "0OIl",  # not base58
        "3mJr7AoUXx2Wqd",  # valid base58, wrong length
        json.dumps([300] * 64),
    ])
    def test_invalid_material_is_config_error(self, secret):
        with pytest.raises(ConfigInvalid):
            parse_secret_key(secret)


class TestWallet:

    def test_from_secret_with_matching_address(self):
        keypair = Keypair()
        wallet = Wallet.from_secret(json.dumps(list(bytes(keypair))), str(keypair.pubkey()))
        assert wallet.address == str(keypair.pubkey())

    def test_from_secret_with_other_address_is_key_mismatch(self):
        keypair = Keypair()
        other = str(Keypair().pubkey())

        with pytest.raises(KeyMismatch) as exc_info:
            Wallet.from_secret(json.dumps(list(bytes(keypair))), other)

        assert exc_info.value.fatal is True
        assert exc_info.value.context.details["configured"] == other

    def test_repr_hides_secret(self):
        keypair = Keypair()
        wallet = Wallet(keypair=keypair)
        assert repr(wallet) == f"Wallet(address={wallet.address!r})"


class TestSignVersionedTransaction:

    def test_signs_with_wallet(self):
        wallet = Wallet(keypair=Keypair())
        original_hash = Hash.new_unique()

        tx = sign_versioned_transaction(wallet, _unsigned_payload(wallet.pubkey, original_hash))

        assert tx.message.recent_blockhash == original_hash
        assert all(tx.verify_with_results())

    def test_replaces_blockhash_before_signing(self):
        wallet = Wallet(keypair=Keypair())
        fresh = Hash.new_unique()

        tx = sign_versioned_transaction(
            wallet,
            _unsigned_payload(wallet.pubkey, Hash.new_unique()),
            blockhash=str(fresh),
        )

        assert tx.message.recent_blockhash == fresh
        assert all(tx.verify_with_results())

    def test_garbage_payload(self):
        wallet = Wallet(keypair=Keypair())
        with pytest.raises(TransactionBuildFailed):
            sign_versioned_transaction(wallet, "not-base64!!")

    def test_transaction_for_another_payer(self):
        wallet = Wallet(keypair=Keypair())
        payload = _unsigned_payload(Keypair().pubkey(), Hash.new_unique())

        with pytest.raises(TransactionBuildFailed):
            sign_versioned_transaction(wallet, payload)
