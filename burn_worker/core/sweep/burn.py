"""
Burn instruction encoding.

The SPL Token "Burn" instruction is laid out as a one-byte tag followed by the
amount as an unsigned 64-bit little-endian integer. Accounts, in order:
the source token account (writable), the mint (writable), and the owner
(signer).
"""

from __future__ import annotations

import base64
import struct
from typing import Union

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .models import TOKEN_PROGRAM_ID, TOKEN_PROGRAM_IDS

BURN_INSTRUCTION_TAG = 8
U64_MAX = 2**64 - 1

_BURN_LAYOUT = struct.Struct("<BQ")

PubkeyLike = Union[Pubkey, str]


def _pubkey(value: PubkeyLike) -> Pubkey:
    return value if isinstance(value, Pubkey) else Pubkey.from_string(value)


def encode_burn_data(raw_amount: int) -> bytes:
    """Serialize the burn tag and amount (9 bytes)."""
    if isinstance(raw_amount, bool) or not isinstance(raw_amount, int):
        raise TypeError("raw_amount must be an int")
    if raw_amount <= 0 or raw_amount > U64_MAX:
        raise ValueError(f"raw_amount out of range for u64 burn: {raw_amount}")
    return _BURN_LAYOUT.pack(BURN_INSTRUCTION_TAG, raw_amount)


def decode_burn_data(data: bytes) -> int:
    """Inverse of :func:`encode_burn_data`; returns the amount."""
    if len(data) != _BURN_LAYOUT.size:
        raise ValueError(f"burn data must be {_BURN_LAYOUT.size} bytes, got {len(data)}")
    tag, amount = _BURN_LAYOUT.unpack(data)
    if tag != BURN_INSTRUCTION_TAG:
        raise ValueError(f"unexpected instruction tag {tag}")
    return amount


def build_burn_instruction(
    token_account: PubkeyLike,
    mint: PubkeyLike,
    owner: PubkeyLike,
    raw_amount: int,
    program_id: PubkeyLike = TOKEN_PROGRAM_ID,
) -> Instruction:
    """
    Build the ledger-native burn instruction.

    Args:
        token_account: Account the tokens are burned from
        mint: Mint of the burned token
        owner: Owner of ``token_account``; must sign the transaction
        raw_amount: Amount in base units
        program_id: Token program owning the account (standard or Token-2022)
    """
    program = _pubkey(program_id)
    if str(program) not in TOKEN_PROGRAM_IDS:
        raise ValueError(f"unsupported token program: {program}")

    accounts = [
        AccountMeta(pubkey=_pubkey(token_account), is_signer=False, is_writable=True),
        AccountMeta(pubkey=_pubkey(mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=_pubkey(owner), is_signer=True, is_writable=False),
    ]
    return Instruction(program, encode_burn_data(raw_amount), accounts)


def build_burn_transaction(instruction: Instruction, keypair, blockhash: str) -> VersionedTransaction:
    """Compile a v0 transaction around ``instruction`` and sign it with ``keypair``."""
    message = MessageV0.try_compile(
        keypair.pubkey(),
        [instruction],
        [],
        Hash.from_string(blockhash),
    )
    return VersionedTransaction(message, [keypair])


def serialize_transaction(transaction: VersionedTransaction) -> str:
    return base64.b64encode(bytes(transaction)).decode("ascii")
