#!/usr/bin/env python3
"""Simple CLI for running and inspecting the treasury burn worker locally"""

import argparse
import asyncio
import json
import sys
from typing import Optional

import httpx

from burn_worker.config import load_settings
from burn_worker.core.sweep.errors import FatalSweepError
from burn_worker.core.sweep.inventory import InventoryScanner
from burn_worker.core.sweep.models import LAMPORTS_PER_SOL, LegStatus, RunResult
from burn_worker.core.sweep.orchestrator import SweepOrchestrator
from burn_worker.logging_config import setup_logging


def print_result(result: RunResult) -> None:
    """Pretty print a run result"""
    status = "✅" if result.success else "❌"
    print(f"\n{status} Run {result.run_id} finished in state '{result.state.value}'")
    print("=" * 50)
    if result.balance_before:
        print(f"Balance before: {result.balance_before.sol:.6f} SOL")
    print(f"Threshold:      {result.threshold_lamports / LAMPORTS_PER_SOL:.6f} SOL")

    if result.swaps:
        print("\nSwaps:")
        print("-" * 50)
        for i, leg in enumerate(result.swaps, 1):
            marker = {
                LegStatus.SUCCEEDED: "✅",
                LegStatus.SKIPPED: "⏭️ ",
                LegStatus.UNCERTAIN: "❔",
            }.get(leg.status, "❌")
            print(f"{i:2d}. {marker} {leg.input_mint[:8]}… amount={leg.input_amount} {leg.status.value}")
            if leg.signature:
                print(f"    sig: {leg.signature}")
            if leg.failure_reason:
                print(f"    reason: {leg.failure_reason}")

    if result.burn:
        print(f"\n🔥 Burn: {result.burn.status.value} amount={result.burn.amount_burned}")
        if result.burn.signature:
            print(f"    sig: {result.burn.signature}")
        if result.burn.failure_reason:
            print(f"    reason: {result.burn.failure_reason}")

    if result.error:
        print(f"\n⚠️  Error: {result.error.get('message')}")


async def cli_run(amount_lamports: Optional[int], as_json: bool) -> int:
    """Run one sweep in-process"""
    config = load_settings().to_sweep_config()
    orchestrator = SweepOrchestrator.from_config(config)
    try:
        result = await orchestrator.run(amount_override=amount_lamports)
    finally:
        await orchestrator.close()

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)
    return 0 if result.success else 1


async def cli_holdings() -> int:
    """List the wallet's non-zero token holdings"""
    config = load_settings().to_sweep_config()
    orchestrator = SweepOrchestrator.from_config(config)
    try:
        lamports = await orchestrator.ledger.get_balance(orchestrator.wallet.address)
        holdings = await InventoryScanner(orchestrator.ledger).list_holdings(orchestrator.wallet.address)
    finally:
        await orchestrator.close()

    print(f"\n🔍 Wallet {orchestrator.wallet.address}")
    print(f"SOL: {lamports / LAMPORTS_PER_SOL:.6f}")
    if not holdings:
        print("No token holdings")
        return 0
    print("-" * 50)
    for i, holding in enumerate(holdings, 1):
        target = " (target)" if holding.mint == config.target_mint else ""
        print(f"{i:2d}. {holding.mint} raw={holding.raw_amount} decimals={holding.decimals}{target}")
    return 0


async def cli_trigger(base_url: str, amount_lamports: Optional[int]) -> int:
    """Call /run-burn on a running worker"""
    settings = load_settings()
    body = {"amount_lamports": amount_lamports} if amount_lamports else None
    async with httpx.AsyncClient(timeout=300) as client:
        response = await client.post(
            f"{base_url.rstrip('/')}/run-burn",
            headers={"x-burn-auth": settings.burn_auth_token},
            json=body,
        )
    print(json.dumps(response.json(), indent=2))
    return 0 if response.status_code == 200 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Treasury burn worker CLI")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run one sweep-and-burn cycle in-process")
    run_parser.add_argument("--amount-lamports", type=int, help="Override the native swap amount")
    run_parser.add_argument("--json", action="store_true", help="Print the raw RunResult JSON")

    subparsers.add_parser("holdings", help="List token holdings of the treasury wallet")

    trigger_parser = subparsers.add_parser("trigger", help="Trigger a run on a running worker")
    trigger_parser.add_argument("--url", default="http://localhost:4000", help="Worker base URL")
    trigger_parser.add_argument("--amount-lamports", type=int, help="Override the native swap amount")

    return parser


async def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(stream=sys.stderr)
    command = args.command.lower()

    try:
        if command == "run":
            return await cli_run(args.amount_lamports, args.json)
        if command == "holdings":
            return await cli_holdings()
        if command == "trigger":
            return await cli_trigger(args.url, args.amount_lamports)
    except FatalSweepError as e:
        print(f"❌ {e.category.value}: {e.message}")
        return 2

    print(f"❌ Unknown command: {command}")
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
