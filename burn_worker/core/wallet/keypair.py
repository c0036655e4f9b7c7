"""
Treasury wallet key handling.

Key material is supplied externally; this module only parses it and checks it
against the configured public address.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import List, Optional, Union

import base58
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from ..sweep.errors import ConfigInvalid, KeyMismatch, TransactionBuildFailed

SECRET_KEY_LENGTH = 64


def parse_secret_key(secret: Union[str, bytes, List[int]]) -> Keypair:
    """
    Build a Keypair from a JSON byte array, a raw list or a base58 string.

    Raises:
        ConfigInvalid: when the material cannot be parsed into a keypair
    """
    try:
        if isinstance(secret, (bytes, bytearray, list)):
            raw = bytes(secret)
        else:
            text = secret.strip()
            if not text:
                raise ConfigInvalid("Wallet secret key is empty")
            if text.startswith("["):
                values = json.loads(text)
                if not isinstance(values, list):
                    raise ConfigInvalid("Wallet secret key JSON must be an array")
                raw = bytes(values)
            else:
                raw = base58.b58decode(text)
    except ConfigInvalid:
        raise
    except (ValueError, TypeError) as exc:
        raise ConfigInvalid(f"Failed to parse wallet secret key: {exc}") from exc

    if len(raw) != SECRET_KEY_LENGTH:
        raise ConfigInvalid(
            f"Wallet secret key must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}"
        )
    try:
        return Keypair.from_bytes(raw)
    except ValueError as exc:
        raise ConfigInvalid(f"Invalid wallet secret key: {exc}") from exc


@dataclass(frozen=True)
class Wallet:
    """The treasury wallet: a signing key and its public address."""

    keypair: Keypair

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())

    def verify_address(self, expected_address: str) -> None:
        """Raise KeyMismatch unless the key derives ``expected_address``."""
        if self.address != expected_address:
            raise KeyMismatch(
                "Wallet public key does not match the secret key's public key",
                details={"configured": expected_address, "derived": self.address},
            )

    @classmethod
    def from_secret(cls, secret: Union[str, bytes, List[int]], expected_address: str) -> "Wallet":
        wallet = cls(keypair=parse_secret_key(secret))
        wallet.verify_address(expected_address)
        return wallet

    def __repr__(self) -> str:
        return f"Wallet(address={self.address!r})"


def sign_versioned_transaction(
    wallet: Wallet,
    payload: str,
    blockhash: Optional[str] = None,
) -> VersionedTransaction:
    """
    Deserialize a base64 versioned transaction and sign it with ``wallet``.

    When ``blockhash`` is given and the message is v0, the recent blockhash is
    replaced before signing.

    Raises:
        TransactionBuildFailed: when the payload is not a transaction the
            wallet can sign
    """
    try:
        transaction = VersionedTransaction.from_bytes(base64.b64decode(payload, validate=True))
    except Exception as exc:
        raise TransactionBuildFailed(f"Undecodable swap transaction: {exc}") from exc

    message = transaction.message
    if blockhash and isinstance(message, MessageV0):
        message = MessageV0(
            message.header,
            message.account_keys,
            Hash.from_string(blockhash),
            message.instructions,
            message.address_table_lookups,
        )

    try:
        return VersionedTransaction(message, [wallet.keypair])
    except Exception as exc:
        # solders raises SignerError when the wallet is not a required signer
        raise TransactionBuildFailed(f"Failed to sign swap transaction: {exc}") from exc
