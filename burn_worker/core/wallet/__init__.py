"""
Treasury wallet management.
"""

from .keypair import Wallet, parse_secret_key, sign_versioned_transaction

__all__ = ["Wallet", "parse_secret_key", "sign_versioned_transaction"]
