"""
market.py — AugurionMarket Smart Contract (ARC-4 ABI via PyTeal Router)

One application instance is deployed per prediction market.
The deployer (operator wallet) is the market creator.

Global State (9 slots: 2 bytes + 7 ints):
  creator      → bytes  : deployer address (admin)
  outcome_ref  → bytes  : short on-chain reference, e.g. SA-ENERGY-ESKOM-001
  status       → uint64 : 0 = DRAFT, 1 = OPEN, 2 = CLOSED, 3 = RESOLVED
  yes_total    → uint64 : total microAlgos staked on YES
  no_total     → uint64 : total microAlgos staked on NO
  total_bets   → uint64 : yes_total + no_total, kept for reporting
  fee_bps      → uint64 : fee taken from the pool on payout
  winning_side → uint64 : 0 = none, 1 = YES, 2 = NO
  expiry_round → uint64 : last round (exclusive) on which bets are accepted

Boxes:
  "yes:" + address, "no:" + address → uint64 stake per bettor
  "claimed:" + address              → uint64 flag

ABI Methods:
  configure_market(outcome_ref: byte[], expiry_round: uint64, fee_bps: uint64) → void
  open_market() → void
  bet_yes(payment: pay) → uint64          (returns caller's YES stake)
  bet_no(payment: pay)  → uint64
  resolve_market(winning_side: uint64) → void
  claim_payout() → uint64                 (returns payout in microAlgos)
"""

import pyteal as pt

from .market_logic import (
    KEY_NO_TOTAL,
    KEY_YES_TOTAL,
    NO_PREFIX,
    YES_PREFIX,
    assert_creator,
    handle_bet,
    handle_claim,
    handle_configure,
    handle_create,
    handle_open,
    handle_resolve,
)

# ── ABI Router ────────────────────────────────────────────────────────────────

router = pt.Router(
    name="AugurionMarket",
    bare_calls=pt.BareCallActions(
        no_op=pt.OnCompleteAction.create_only(handle_create()),
        delete_application=pt.OnCompleteAction.call_only(
            pt.Seq(assert_creator(pt.Txn.sender()), pt.Approve())
        ),
    ),
)


# ── configure_market / open_market ────────────────────────────────────────────

@router.method
def configure_market(
    outcome_ref: pt.abi.DynamicBytes,
    expiry_round: pt.abi.Uint64,
    fee_bps: pt.abi.Uint64,
) -> pt.Expr:
    """Called once after deployment; a second call is rejected."""
    return handle_configure(outcome_ref.get(), expiry_round.get(), fee_bps.get())


@router.method
def open_market() -> pt.Expr:
    """DRAFT (configured) → OPEN."""
    return handle_open()


# ── bets ──────────────────────────────────────────────────────────────────────

def _checked_payment(payment: pt.abi.PaymentTransaction) -> pt.Expr:
    pay_txn = payment.get()
    return pt.Seq(
        pt.Assert(
            pay_txn.receiver() == pt.Global.current_application_address(),
            comment="payment must go to contract",
        ),
        pt.Assert(
            pay_txn.sender() == pt.Txn.sender(),
            comment="payment sender must match caller",
        ),
    )


@router.method
def bet_yes(
    payment: pt.abi.PaymentTransaction,
    *,
    output: pt.abi.Uint64,
) -> pt.Expr:
    """
    Atomic group: [pay txn → contract] + [this app call].
    The caller must reference the "yes:" + sender box.
    """
    stake = pt.ScratchVar(pt.TealType.uint64)
    return pt.Seq(
        _checked_payment(payment),
        handle_bet(KEY_YES_TOTAL, YES_PREFIX, payment.get().amount(), pt.Txn.sender(), stake),
        output.set(stake.load()),
    )


@router.method
def bet_no(
    payment: pt.abi.PaymentTransaction,
    *,
    output: pt.abi.Uint64,
) -> pt.Expr:
    """Mirror of bet_yes for NO stakes."""
    stake = pt.ScratchVar(pt.TealType.uint64)
    return pt.Seq(
        _checked_payment(payment),
        handle_bet(KEY_NO_TOTAL, NO_PREFIX, payment.get().amount(), pt.Txn.sender(), stake),
        output.set(stake.load()),
    )


# ── resolve_market / claim_payout ─────────────────────────────────────────────

@router.method
def resolve_market(winning_side: pt.abi.Uint64) -> pt.Expr:
    return handle_resolve(winning_side.get(), pt.Txn.sender())


@router.method
def claim_payout(*, output: pt.abi.Uint64) -> pt.Expr:
    """
    Pays the winner via an inner payment; the outer call must carry
    2x the minimum fee. References the stake box and the claimed box.
    """
    payout = pt.ScratchVar(pt.TealType.uint64)
    return pt.Seq(
        handle_claim(pt.Txn.sender(), payout),
        output.set(payout.load()),
    )
