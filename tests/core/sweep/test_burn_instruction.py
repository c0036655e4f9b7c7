"""
Tests for burn instruction encoding.
"""

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from burn_worker.core.sweep.burn import (
    BURN_INSTRUCTION_TAG,
    U64_MAX,
    build_burn_instruction,
    build_burn_transaction,
    decode_burn_data,
    encode_burn_data,
)
from burn_worker.core.sweep.models import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID


def test_encode_known_vector():
    data = encode_burn_data(1234)

    assert data == bytes.fromhex("08d204000000000000")
    assert data[0] == BURN_INSTRUCTION_TAG == 8
    assert int.from_bytes(data[1:9], "little") == 1234
    assert decode_burn_data(data) == 1234


def test_encode_u64_bounds():
    assert encode_burn_data(U64_MAX) == b"\x08" + b"\xff" * 8
    assert encode_burn_data(1) == b"\x08\x01" + b"\x00" * 7


@pytest.mark.parametrize("amount", [0, -5, 2**64])
def test_encode_rejects_out_of_range(amount):
    with pytest.raises(ValueError):
        encode_burn_data(amount)


@pytest.mark.parametrize("amount", [True, 1.5, "10"])
def test_encode_rejects_non_int(amount):
    with pytest.raises(TypeError):
        encode_burn_data(amount)


def test_decode_rejects_wrong_tag():
    with pytest.raises(ValueError):
        decode_burn_data(bytes.fromhex("07d204000000000000"))


def test_instruction_accounts_and_roles():
    account = Pubkey.new_unique()
    mint = Pubkey.new_unique()
    owner = Pubkey.new_unique()

    ix = build_burn_instruction(account, str(mint), owner, 1234)

    assert str(ix.program_id) == TOKEN_PROGRAM_ID
    assert bytes(ix.data) == encode_burn_data(1234)
    metas = list(ix.accounts)
    assert [m.pubkey for m in metas] == [account, mint, owner]
    assert [(m.is_signer, m.is_writable) for m in metas] == [
        (False, True),
        (False, True),
        (True, False),
    ]


def test_instruction_for_token_2022():
    ix = build_burn_instruction(
        Pubkey.new_unique(),
        Pubkey.new_unique(),
        Pubkey.new_unique(),
        10,
        program_id=TOKEN_2022_PROGRAM_ID,
    )
    assert str(ix.program_id) == TOKEN_2022_PROGRAM_ID


def test_instruction_rejects_unknown_program():
    with pytest.raises(ValueError):
        build_burn_instruction(
            Pubkey.new_unique(),
            Pubkey.new_unique(),
            Pubkey.new_unique(),
            10,
            program_id=Pubkey.new_unique(),
        )


def test_burn_transaction_signed_by_owner():
    owner = Keypair()
    ix = build_burn_instruction(Pubkey.new_unique(), Pubkey.new_unique(), owner.pubkey(), 99)

    tx = build_burn_transaction(ix, owner, str(Hash.new_unique()))

    assert tx.message.account_keys[0] == owner.pubkey()
    assert all(tx.verify_with_results())
