"""
market_logic.py — Configure / Bet / Resolve / Claim subroutines
Called from market.py to keep the router file readable.
Each function returns a PyTeal Expr.
"""

import pyteal as pt

# ── Global state keys (shared with market.py and augurion.diagnose) ───────────

KEY_STATUS       = pt.Bytes("status")
KEY_YES_TOTAL    = pt.Bytes("yes_total")
KEY_NO_TOTAL     = pt.Bytes("no_total")
KEY_TOTAL_BETS   = pt.Bytes("total_bets")
KEY_FEE_BPS      = pt.Bytes("fee_bps")
KEY_WINNING_SIDE = pt.Bytes("winning_side")
KEY_EXPIRY_ROUND = pt.Bytes("expiry_round")
KEY_CREATOR      = pt.Bytes("creator")
KEY_OUTCOME_REF  = pt.Bytes("outcome_ref")

# ── Box prefixes (one box per bettor per side) ────────────────────────────────

YES_PREFIX     = pt.Bytes("yes:")
NO_PREFIX      = pt.Bytes("no:")
CLAIMED_PREFIX = pt.Bytes("claimed:")

# status: 0 = DRAFT, 1 = OPEN, 2 = CLOSED, 3 = RESOLVED
STATUS_DRAFT    = pt.Int(0)
STATUS_OPEN     = pt.Int(1)
STATUS_RESOLVED = pt.Int(3)

# winning_side: 0 = none, 1 = YES, 2 = NO
SIDE_YES = pt.Int(1)
SIDE_NO  = pt.Int(2)

MAX_REF_LENGTH = 64


# ── Guard helpers ─────────────────────────────────────────────────────────────

def assert_creator(caller: pt.Expr) -> pt.Expr:
    """Abort if caller is not the market creator."""
    return pt.Assert(
        caller == pt.App.globalGet(KEY_CREATOR),
        comment="only creator may call this",
    )


def assert_status(expected: pt.Expr, comment: str) -> pt.Expr:
    return pt.Assert(pt.App.globalGet(KEY_STATUS) == expected, comment=comment)


def assert_before_expiry() -> pt.Expr:
    """expiry_round == 0 means the market never expires."""
    expiry = pt.App.globalGet(KEY_EXPIRY_ROUND)
    return pt.Assert(
        pt.Or(expiry == pt.Int(0), pt.Global.round() < expiry),
        comment="market expired",
    )


def send_algo(receiver: pt.Expr, amount: pt.Expr) -> pt.Expr:
    """
    Inner PaymentTxn: contract pays `amount` microAlgos to `receiver`.
    The outer call covers the fee.
    """
    return pt.InnerTxnBuilder.Execute(
        {
            pt.TxnField.type_enum:  pt.TxnType.Payment,
            pt.TxnField.receiver:   receiver,
            pt.TxnField.amount:     amount,
            pt.TxnField.fee:        pt.Int(0),
        }
    )


# ── Lifecycle ─────────────────────────────────────────────────────────────────

def handle_create() -> pt.Expr:
    """Bare create: every key gets a typed initial value."""
    return pt.Seq(
        pt.App.globalPut(KEY_CREATOR,      pt.Txn.sender()),
        pt.App.globalPut(KEY_OUTCOME_REF,  pt.Bytes("")),
        pt.App.globalPut(KEY_STATUS,       STATUS_DRAFT),
        pt.App.globalPut(KEY_YES_TOTAL,    pt.Int(0)),
        pt.App.globalPut(KEY_NO_TOTAL,     pt.Int(0)),
        pt.App.globalPut(KEY_TOTAL_BETS,   pt.Int(0)),
        pt.App.globalPut(KEY_FEE_BPS,      pt.Int(0)),
        pt.App.globalPut(KEY_WINNING_SIDE, pt.Int(0)),
        pt.App.globalPut(KEY_EXPIRY_ROUND, pt.Int(0)),
        pt.Approve(),
    )


def handle_configure(outcome_ref: pt.Expr, expiry_round: pt.Expr, fee_bps: pt.Expr) -> pt.Expr:
    """
    Set the on-chain reference, expiry round and fee exactly once.
    A configured market has a non-empty outcome_ref.
    """
    return pt.Seq(
        assert_creator(pt.Txn.sender()),
        assert_status(STATUS_DRAFT, "market not in draft"),
        pt.Assert(pt.Len(pt.App.globalGet(KEY_OUTCOME_REF)) == pt.Int(0), comment="already configured"),
        pt.Assert(pt.Len(outcome_ref) > pt.Int(0), comment="outcome_ref cannot be empty"),
        pt.Assert(pt.Len(outcome_ref) <= pt.Int(MAX_REF_LENGTH), comment="outcome_ref too long"),
        pt.Assert(fee_bps <= pt.Int(10_000), comment="fee_bps above 10000"),
        pt.Assert(
            pt.Or(expiry_round == pt.Int(0), expiry_round > pt.Global.round()),
            comment="expiry_round must be in the future",
        ),
        pt.App.globalPut(KEY_OUTCOME_REF,  outcome_ref),
        pt.App.globalPut(KEY_EXPIRY_ROUND, expiry_round),
        pt.App.globalPut(KEY_FEE_BPS,      fee_bps),
    )


def handle_open() -> pt.Expr:
    return pt.Seq(
        assert_creator(pt.Txn.sender()),
        assert_status(STATUS_DRAFT, "market not in draft"),
        pt.Assert(pt.Len(pt.App.globalGet(KEY_OUTCOME_REF)) > pt.Int(0), comment="market not configured"),
        pt.App.globalPut(KEY_STATUS, STATUS_OPEN),
    )


# ── Bet logic ─────────────────────────────────────────────────────────────────

def handle_bet(
    total_key: pt.Expr,
    box_prefix: pt.Expr,
    payment_amount: pt.Expr,
    bettor: pt.Expr,
    stake: pt.ScratchVar,
) -> pt.Expr:
    """
    Core bet logic shared by YES and NO.
      - payment_amount : microAlgos received (from the grouped payment)
      - bettor         : address whose stake box is credited
      - stake          : receives the bettor's stake on this side after the bet
    """
    box_name = pt.Concat(box_prefix, bettor)
    current  = pt.App.box_get(box_name)
    return pt.Seq(
        assert_status(STATUS_OPEN, "market not open"),
        assert_before_expiry(),
        pt.Assert(payment_amount > pt.Int(0), comment="amount must be positive"),
        current,
        stake.store(
            pt.If(current.hasValue())
            .Then(pt.Btoi(current.value()) + payment_amount)
            .Else(payment_amount)
        ),
        pt.App.box_put(box_name, pt.Itob(stake.load())),
        pt.App.globalPut(total_key, pt.App.globalGet(total_key) + payment_amount),
        pt.App.globalPut(KEY_TOTAL_BETS, pt.App.globalGet(KEY_TOTAL_BETS) + payment_amount),
    )


# ── Resolve logic ──────────────────────────────────────────────────────────────

def handle_resolve(winning_side: pt.Expr, caller: pt.Expr) -> pt.Expr:
    """
    Mark market as resolved.
      - winning_side : 1 = YES wins, 2 = NO wins
      - caller       : must be creator
    """
    return pt.Seq(
        assert_creator(caller),
        assert_status(STATUS_OPEN, "market must be open to resolve"),
        pt.Assert(
            pt.Or(winning_side == SIDE_YES, winning_side == SIDE_NO),
            comment="winning_side must be 1 or 2",
        ),
        pt.App.globalPut(KEY_STATUS, STATUS_RESOLVED),
        pt.App.globalPut(KEY_WINNING_SIDE, winning_side),
    )


# ── Claim logic ───────────────────────────────────────────────────────────────

def handle_claim(claimer: pt.Expr, payout: pt.ScratchVar) -> pt.Expr:
    """
    Pay the claimer their pro-rata share of the pool after the fee.

      pool       = yes_total + no_total
      payout_pot = pool - pool * fee_bps / 10000
      payout     = payout_pot * stake / winning_side_total
    """
    winning      = pt.App.globalGet(KEY_WINNING_SIDE)
    stake_prefix = pt.If(winning == SIDE_YES).Then(YES_PREFIX).Else(NO_PREFIX)
    side_total   = pt.If(winning == SIDE_YES) \
                     .Then(pt.App.globalGet(KEY_YES_TOTAL)) \
                     .Else(pt.App.globalGet(KEY_NO_TOTAL))
    pool         = pt.App.globalGet(KEY_YES_TOTAL) + pt.App.globalGet(KEY_NO_TOTAL)

    stake_box   = pt.App.box_get(pt.Concat(stake_prefix, claimer))
    claimed_box = pt.App.box_length(pt.Concat(CLAIMED_PREFIX, claimer))
    payout_pot  = pt.ScratchVar(pt.TealType.uint64)

    return pt.Seq(
        assert_status(STATUS_RESOLVED, "market not resolved"),
        stake_box,
        pt.Assert(stake_box.hasValue(), comment="nothing to claim"),
        claimed_box,
        pt.Assert(pt.Not(claimed_box.hasValue()), comment="already claimed"),
        payout_pot.store(pool - pt.WideRatio([pool, pt.App.globalGet(KEY_FEE_BPS)], [pt.Int(10_000)])),
        payout.store(pt.WideRatio([payout_pot.load(), pt.Btoi(stake_box.value())], [side_total])),
        pt.App.box_put(pt.Concat(CLAIMED_PREFIX, claimer), pt.Itob(pt.Int(1))),
        pt.If(payout.load() > pt.Int(0)).Then(send_algo(receiver=claimer, amount=payout.load())),
    )
