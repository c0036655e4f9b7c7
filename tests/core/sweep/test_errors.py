"""
Tests for the sweep error taxonomy.
"""

import pytest

from burn_worker.core.sweep.errors import (
    BroadcastFailed,
    ConfigInvalid,
    ConfirmationUnknown,
    ErrorCategory,
    FatalSweepError,
    KeyMismatch,
    LedgerError,
    LegError,
    QuoteUnavailable,
    ScanDegraded,
    SimulationFailed,
    TransactionBuildFailed,
    classify_error,
)


class TestErrorClassification:

    @pytest.mark.parametrize("error_cls", [ConfigInvalid, KeyMismatch])
    def test_fatal_errors(self, error_cls):
        error = error_cls("bad input")

        assert isinstance(error, FatalSweepError)
        assert error.fatal is True
        assert error.context.fatal is True

    @pytest.mark.parametrize("error_cls", [
        QuoteUnavailable,
        TransactionBuildFailed,
        BroadcastFailed,
        SimulationFailed,
        ConfirmationUnknown,
    ])
    def test_leg_errors_are_not_fatal(self, error_cls):
        error = error_cls("leg failed")

        assert isinstance(error, LegError)
        assert error.fatal is False

    def test_simulation_failure_is_a_broadcast_failure(self):
        error = SimulationFailed("Simulation failed")

        assert isinstance(error, BroadcastFailed)
        assert error.category == ErrorCategory.SIMULATION

    def test_config_invalid_is_value_error(self):
        with pytest.raises(ValueError):
            raise ConfigInvalid("Missing required configuration: TARGET_MINT")

    def test_classify(self):
        assert classify_error(QuoteUnavailable("no route")) == ErrorCategory.QUOTE
        assert classify_error(ScanDegraded("program down")) == ErrorCategory.SCAN
        assert classify_error(LedgerError("503")) == ErrorCategory.LEDGER
        assert classify_error(RuntimeError("boom")) == ErrorCategory.UNKNOWN


class TestErrorSerialization:

    def test_to_dict_includes_signature_and_details(self):
        error = ConfirmationUnknown(
            "Blockhash expired before the transaction was observed",
            signature="Sig111",
            details={"block_height": 151},
        )

        assert error.to_dict() == {
            "error": "confirmation_unknown",
            "message": "Blockhash expired before the transaction was observed",
            "signature": "Sig111",
            "details": {"block_height": 151},
        }

    def test_to_dict_omits_empty_context(self):
        assert KeyMismatch("mismatch").to_dict() == {"error": "key_mismatch", "message": "mismatch"}

    def test_mint_is_kept_on_context(self):
        error = QuoteUnavailable("no route", mint="MintA")

        assert error.context.mint == "MintA"
        assert error.context.category == ErrorCategory.QUOTE
