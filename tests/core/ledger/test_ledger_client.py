"""Tests for the Solana JSON-RPC ledger client."""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from burn_worker.core.ledger.client import (
    LedgerClient,
    SolanaRpcConfig,
    SolanaTransactionStatus,
)
from burn_worker.core.sweep.errors import BroadcastFailed, ConfirmationUnknown, LedgerError
from burn_worker.core.sweep.models import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID, BlockhashContext


RPC_URL = "http://ledger.test"
OWNER = "Treasury1111111111111111111111111111111111"


def make_ledger(handler: Callable[[str, List[Any]], Any], **config) -> tuple[LedgerClient, List[Dict[str, Any]]]:
    """Build a ledger whose RPC node answers through ``handler(method, params)``."""
    calls: List[Dict[str, Any]] = []

    def _transport(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        calls.append(payload)
        outcome = handler(payload["method"], payload["params"])
        if isinstance(outcome, httpx.Response):
            return outcome
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **outcome})

    client = httpx.AsyncClient(transport=httpx.MockTransport(_transport))
    rpc_config = SolanaRpcConfig(rpc_url=RPC_URL, poll_interval_s=0.0, **config)
    return LedgerClient(rpc_config, client=client), calls


def parsed_account(pubkey: str, mint: str, amount: str, decimals: int, program_owner: str) -> Dict[str, Any]:
    return {
        "pubkey": pubkey,
        "account": {
            "owner": program_owner,
            "data": {
                "program": "spl-token",
                "parsed": {
                    "type": "account",
                    "info": {
                        "mint": mint,
                        "owner": OWNER,
                        "tokenAmount": {"amount": amount, "decimals": decimals, "uiAmount": None},
                    },
                },
            },
        },
    }


class TestReads:

    @pytest.mark.asyncio
    async def test_get_balance(self):
        ledger, calls = make_ledger(lambda method, params: {"result": {"context": {"slot": 1}, "value": 1_500_000_000}})

        assert await ledger.get_balance(OWNER) == 1_500_000_000
        assert calls[0]["method"] == "getBalance"
        assert calls[0]["params"] == [OWNER, {"commitment": "confirmed"}]

    @pytest.mark.asyncio
    async def test_get_balance_without_value_raises(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"context": {"slot": 1}}})

        with pytest.raises(LedgerError):
            await ledger.get_balance(OWNER)

    @pytest.mark.asyncio
    async def test_token_accounts_are_parsed(self):
        def handler(method, params):
            assert params[1] == {"programId": TOKEN_2022_PROGRAM_ID}
            assert params[2]["encoding"] == "jsonParsed"
            return {"result": {"value": [
                parsed_account("AccA", "MintA", "1200", 6, TOKEN_2022_PROGRAM_ID),
                {"pubkey": "Raw", "account": {"owner": TOKEN_2022_PROGRAM_ID, "data": ["AAAA", "base64"]}},
            ]}}

        ledger, _ = make_ledger(handler)

        accounts = await ledger.get_token_accounts_by_owner(OWNER, TOKEN_2022_PROGRAM_ID)

        assert accounts == [{
            "address": "AccA",
            "mint": "MintA",
            "owner": OWNER,
            "amount": 1200,
            "decimals": 6,
            "program_id": TOKEN_2022_PROGRAM_ID,
        }]

    @pytest.mark.asyncio
    async def test_token_accounts_by_mint_report_owning_program(self):
        def handler(method, params):
            assert params[1] == {"mint": "Target"}
            return {"result": {"value": [
                parsed_account("Acc1", "Target", "5", 9, TOKEN_PROGRAM_ID),
                parsed_account("Acc2", "Target", "7", 9, TOKEN_2022_PROGRAM_ID),
            ]}}

        ledger, _ = make_ledger(handler)

        accounts = await ledger.get_token_accounts_by_mint(OWNER, "Target")

        assert [(a["address"], a["program_id"]) for a in accounts] == [
            ("Acc1", TOKEN_PROGRAM_ID),
            ("Acc2", TOKEN_2022_PROGRAM_ID),
        ]

    @pytest.mark.asyncio
    async def test_token_account_balance_is_raw_units(self):
        ledger, _ = make_ledger(lambda method, params: {
            "result": {"value": {"amount": "987654321", "decimals": 6, "uiAmountString": "987.654321"}}
        })

        assert await ledger.get_token_account_balance("Acc1") == 987_654_321

    @pytest.mark.asyncio
    async def test_null_account_list_is_empty(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"context": {"slot": 1}, "value": None}})

        assert await ledger.get_token_accounts_by_owner(OWNER, TOKEN_2022_PROGRAM_ID) == []

    @pytest.mark.asyncio
    async def test_non_list_account_value_raises(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"value": "oops"}})

        with pytest.raises(LedgerError):
            await ledger.get_token_accounts_by_owner(OWNER, TOKEN_PROGRAM_ID)

    @pytest.mark.asyncio
    async def test_malformed_token_account_is_skipped(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"value": [
            parsed_account("Bad", "MintA", "n/a", 6, TOKEN_2022_PROGRAM_ID),
            None,
            parsed_account("Good", "MintB", "42", 6, TOKEN_2022_PROGRAM_ID),
        ]}})

        accounts = await ledger.get_token_accounts_by_owner(OWNER, TOKEN_2022_PROGRAM_ID)

        assert [(a["address"], a["amount"]) for a in accounts] == [("Good", 42)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [
        {"value": None},
        {"value": {"amount": "lots", "decimals": 6}},
        {"context": {"slot": 1}},
    ])
    async def test_malformed_token_balance_raises(self, result):
        ledger, _ = make_ledger(lambda method, params: {"result": result})

        with pytest.raises(LedgerError):
            await ledger.get_token_account_balance("Acc1")

    @pytest.mark.asyncio
    async def test_malformed_native_balance_raises(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"value": "n/a"}})

        with pytest.raises(LedgerError):
            await ledger.get_balance(OWNER)

    @pytest.mark.asyncio
    async def test_latest_blockhash(self):
        ledger, _ = make_ledger(lambda method, params: {
            "result": {"value": {"blockhash": "Hash111", "lastValidBlockHeight": 4242}}
        })

        context = await ledger.get_latest_blockhash()

        assert context == BlockhashContext(blockhash="Hash111", last_valid_block_height=4242)


class TestErrorsAndRetries:

    @pytest.mark.asyncio
    async def test_rpc_error_is_not_retried(self):
        ledger, calls = make_ledger(lambda method, params: {"error": {"code": -32602, "message": "Invalid param"}})

        with pytest.raises(LedgerError) as exc_info:
            await ledger.get_balance(OWNER)

        assert "Invalid param" in exc_info.value.message
        assert exc_info.value.context.details["rpc_error"]["code"] == -32602
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_http_error_is_retried_then_raised(self):
        ledger, calls = make_ledger(lambda method, params: httpx.Response(503), max_retries=2)

        with pytest.raises(LedgerError) as exc_info:
            await ledger.get_balance(OWNER)

        assert "503" in exc_info.value.message
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self):
        responses = [httpx.Response(502), {"result": {"value": 10}}]
        ledger, calls = make_ledger(lambda method, params: responses.pop(0), max_retries=3)

        assert await ledger.get_balance(OWNER) == 10
        assert len(calls) == 2


class TestWrites:

    @pytest.mark.asyncio
    async def test_simulation_reports_error_and_logs(self):
        def handler(method, params):
            assert method == "simulateTransaction"
            assert params[1]["encoding"] == "base64"
            return {"result": {"value": {
                "err": {"InstructionError": [0, {"Custom": 1}]},
                "logs": ["Program log: insufficient funds"],
                "unitsConsumed": 1400,
            }}}

        ledger, _ = make_ledger(handler)

        simulation = await ledger.simulate_transaction("AAAA")

        assert simulation["error"] == {"InstructionError": [0, {"Custom": 1}]}
        assert simulation["logs"] == ["Program log: insufficient funds"]
        assert simulation["units_consumed"] == 1400

    @pytest.mark.asyncio
    async def test_send_posts_once_and_delegates_rebroadcast(self):
        ledger, calls = make_ledger(lambda method, params: {"result": "Sig111"}, max_retries=5)

        assert await ledger.send_transaction("AAAA") == "Sig111"

        assert len(calls) == 1
        options = calls[0]["params"][1]
        assert options["maxRetries"] == 5
        assert options["skipPreflight"] is True

    @pytest.mark.asyncio
    async def test_send_failure_is_broadcast_failed(self):
        ledger, calls = make_ledger(lambda method, params: httpx.Response(500), max_retries=3)

        with pytest.raises(BroadcastFailed):
            await ledger.send_transaction("AAAA")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_send_without_signature_is_broadcast_failed(self):
        ledger, _ = make_ledger(lambda method, params: {"result": None})

        with pytest.raises(BroadcastFailed):
            await ledger.send_transaction("AAAA")


class TestConfirmation:

    @pytest.mark.asyncio
    async def test_confirms_after_pending_status(self):
        statuses = [None, {"slot": 9, "confirmations": 0, "err": None, "confirmationStatus": "processed"},
                    {"slot": 9, "confirmations": 1, "err": None, "confirmationStatus": "confirmed"}]

        def handler(method, params):
            if method == "getBlockHeight":
                return {"result": 10}
            return {"result": {"value": [statuses.pop(0)]}}

        ledger, _ = make_ledger(handler)

        outcome = await ledger.confirm_transaction("Sig111", BlockhashContext("Hash", 100))

        assert outcome.status == SolanaTransactionStatus.CONFIRMED
        assert outcome.is_success
        assert outcome.slot == 9

    @pytest.mark.asyncio
    async def test_on_chain_error_is_failed_result(self):
        ledger, _ = make_ledger(lambda method, params: {"result": {"value": [
            {"slot": 9, "err": {"InstructionError": [1, {"Custom": 6001}]}, "confirmationStatus": "confirmed"}
        ]}})

        outcome = await ledger.confirm_transaction("Sig111", BlockhashContext("Hash", 100))

        assert outcome.status == SolanaTransactionStatus.FAILED
        assert not outcome.is_success
        assert "6001" in outcome.error

    @pytest.mark.asyncio
    async def test_expired_blockhash_is_unknown_outcome(self):
        def handler(method, params):
            if method == "getBlockHeight":
                return {"result": 151}
            return {"result": {"value": [None]}}

        ledger, _ = make_ledger(handler)

        with pytest.raises(ConfirmationUnknown) as exc_info:
            await ledger.confirm_transaction("Sig111", BlockhashContext("Hash", 150))

        assert exc_info.value.context.signature == "Sig111"

    @pytest.mark.asyncio
    async def test_timeout_is_unknown_outcome(self):
        def handler(method, params):
            if method == "getBlockHeight":
                return {"result": 1}
            return {"result": {"value": [None]}}

        ledger, _ = make_ledger(handler)

        with pytest.raises(ConfirmationUnknown):
            await ledger.confirm_transaction("Sig111", BlockhashContext("Hash", 150), timeout_s=0.05)
