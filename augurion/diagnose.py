"""
diagnose.py — read a market's global state and reconcile its bet totals

Usage:
  augurion-diagnose --app-id 1120 [--expected-bet 1000000]

`--expected-bet` is the amount the caller placed on EACH side (one YES bet and
one NO bet of the same size). When the recorded totals are exactly twice that,
the report flags a suspected double-recording. The cause is not determined
here: it may be an outdated contract version or a duplicate submission.
"""

import argparse
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from algosdk.v2client import algod as algod_client

from .config import load_config
from .errors import PreconditionError
from .network import get_algod, read_global_state

STATUS_NAMES = {0: "DRAFT", 1: "OPEN", 2: "CLOSED", 3: "RESOLVED"}

POSSIBLE_CAUSES = (
    "deployed approval program is an older contract version",
    "the same bet group was submitted more than once",
)


@dataclass(frozen=True)
class MarketSnapshot:
    app_id: int
    status: int
    yes_total: int
    no_total: int
    total_bets: int
    fee_bps: int
    winning_side: int
    expiry_round: int
    outcome_ref: str

    @property
    def status_name(self) -> str:
        return STATUS_NAMES.get(self.status, f"UNKNOWN({self.status})")


@dataclass
class Diagnosis:
    consistent: bool
    expected_total: Optional[int]
    discrepancy: int
    doubling_suspected: bool
    notes: List[str] = field(default_factory=list)


def _pick(state: dict, *keys, default=None):
    # snake_case first, then the camelCase used by older market versions
    for key in keys:
        if key in state:
            return state[key]
    return default


def _uint(state: dict, *keys) -> int:
    value = _pick(state, *keys, default=0)
    if isinstance(value, bytes):
        return int.from_bytes(value, "big") if value else 0
    return int(value)


def snapshot_from_state(app_id: int, state: dict) -> MarketSnapshot:
    ref = _pick(state, "outcome_ref", "outcomeRef", "marketRef", default=b"")
    if isinstance(ref, bytes):
        ref = ref.decode("utf-8", errors="replace")
    return MarketSnapshot(
        app_id=app_id,
        status=_uint(state, "status"),
        yes_total=_uint(state, "yes_total", "yesTotal"),
        no_total=_uint(state, "no_total", "noTotal"),
        total_bets=_uint(state, "total_bets", "totalBets"),
        fee_bps=_uint(state, "fee_bps", "feeBps"),
        winning_side=_uint(state, "winning_side", "winningSide", "outcome"),
        expiry_round=_uint(state, "expiry_round", "expiryRound"),
        outcome_ref=ref,
    )


def read_market_snapshot(algod: algod_client.AlgodClient, app_id: int) -> MarketSnapshot:
    state = read_global_state(algod, app_id)
    if not state:
        raise PreconditionError(f"App {app_id} has no global state")
    return snapshot_from_state(app_id, state)


def reconcile(snapshot: MarketSnapshot, expected_bet: Optional[int] = None) -> Diagnosis:
    """Pure check of `total_bets == yes_total + no_total`, plus the doubling heuristic."""
    side_sum    = snapshot.yes_total + snapshot.no_total
    discrepancy = snapshot.total_bets - side_sum
    consistent  = discrepancy == 0
    notes = []

    if not consistent:
        notes.append(f"total_bets {snapshot.total_bets} != yes_total + no_total {side_sum}")

    expected_total = None
    doubling = False
    if expected_bet is not None:
        expected_total = 2 * expected_bet
        doubling = (
            expected_bet > 0
            and snapshot.yes_total == 2 * expected_bet
            and snapshot.no_total == 2 * expected_bet
        )
        if doubling:
            notes.append(f"each {expected_bet} bet appears recorded as {2 * expected_bet}; cause not determined")
            notes.extend(f"possible cause: {cause}" for cause in POSSIBLE_CAUSES)
        elif side_sum != expected_total:
            notes.append(f"recorded {side_sum}, expected {expected_total}")

    return Diagnosis(
        consistent=consistent,
        expected_total=expected_total,
        discrepancy=discrepancy,
        doubling_suspected=doubling,
        notes=notes,
    )


def print_report(snapshot: MarketSnapshot, diagnosis: Diagnosis) -> None:
    print(f"=== Diagnosing App ID {snapshot.app_id} ===")
    print(f"    Status      : {snapshot.status_name}")
    print(f"    Outcome ref : {snapshot.outcome_ref}")
    print(f"    YES total   : {snapshot.yes_total}")
    print(f"    NO total    : {snapshot.no_total}")
    print(f"    Total bets  : {snapshot.total_bets}")
    print(f"    Fee (bps)   : {snapshot.fee_bps}")
    print(f"    Expiry round: {snapshot.expiry_round}")
    if diagnosis.consistent:
        print("[OK] total_bets matches yes_total + no_total")
    else:
        print(f"[WARN] Totals differ by {diagnosis.discrepancy}")
    if diagnosis.doubling_suspected:
        print("[WARN] Recorded totals are double the expected bets")
    for note in diagnosis.notes:
        print(f"    - {note}")


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Reconcile an AugurionMarket's bet totals")
    parser.add_argument("--app-id", type=int, required=True, help="Market application id")
    parser.add_argument("--expected-bet", type=int, default=None, help="Amount bet on each side, in microAlgos")
    args = parser.parse_args(argv)

    try:
        algod     = get_algod(load_config())
        snapshot  = read_market_snapshot(algod, args.app_id)
        diagnosis = reconcile(snapshot, args.expected_bet)
    except Exception as e:
        print(f"[ERR] Diagnosis failed: {e}", file=sys.stderr)
        sys.exit(1)
    print_report(snapshot, diagnosis)


if __name__ == "__main__":
    main()
