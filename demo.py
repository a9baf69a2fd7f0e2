#!/usr/bin/env python3
"""
demo.py - Walkthrough: One Subscriber Asset from Creation to History

Each step invokes one contract operation against the in-memory world state
and shows what was committed.

WHAT YOU'LL SEE:
  1: Creating an asset
  2: Querying it
  3: A debit
  4: A rejected transaction type
  5: A credit
  6: Replaying the history

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import asyncio
import sys

from asset_ledger import (
    InMemoryWorldState, InvalidArgument,
    loads, asset_at, load_history,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    tick: timedelta = timedelta(minutes=5)

    dealer_id: str = "D1"
    msisdn: str = "9999999999"
    mpin: str = "1234"
    opening_balance: str = "100.0"

    debit_amount: str = "25.5"
    credit_amount: str = "40"


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}\n")


def show_asset(world: InMemoryWorldState):
    asset = loads(world.evaluate("QueryAsset", CONFIG.msisdn))
    print(f"balance={asset['balance']}  transType={asset['transType']!r}  "
          f"transAmount={asset['transAmount']}  remarks={asset['remarks']!r}")


def main():
    world = InMemoryWorldState("demo", initial_time=CONFIG.start_time, tick=CONFIG.tick)

    step_header(1, "Create an asset")
    print(world.submit("CreateAsset", CONFIG.dealer_id, CONFIG.msisdn,
                       CONFIG.mpin, CONFIG.opening_balance, "active"))
    wait_for_enter()

    step_header(2, "Query it")
    print(world.evaluate("QueryAsset", CONFIG.msisdn))
    wait_for_enter()

    step_header(3, "Debit")
    print(world.submit("UpdateBalance", CONFIG.msisdn, CONFIG.debit_amount,
                       "debit", "atm withdrawal"))
    show_asset(world)
    wait_for_enter()

    step_header(4, "Reject an unknown transaction type")
    try:
        world.submit("UpdateBalance", CONFIG.msisdn, "10", "transfer", "nope")
    except InvalidArgument as exc:
        print(f"Rejected: {exc}")
    show_asset(world)
    wait_for_enter()

    step_header(5, "Credit")
    print(world.submit("UpdateBalance", CONFIG.msisdn, CONFIG.credit_amount,
                       "credit", "top up"))
    show_asset(world)
    wait_for_enter()

    step_header(6, "History")
    for entry in loads(world.evaluate("GetAssetHistory", CONFIG.msisdn)):
        value = entry["value"]
        print(f"{entry['timestamp']}  {entry['txId']}  balance={value['balance']}")

    ctx = world.begin()
    history = asyncio.run(load_history(ctx, CONFIG.msisdn))
    world.discard(ctx)
    when = CONFIG.start_time + CONFIG.tick
    print(f"\nBalance as of {when}: {asset_at(history, when).balance}")


if __name__ == "__main__":
    main()
