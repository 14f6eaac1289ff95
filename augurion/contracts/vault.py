"""
vault.py — RevenueVault Smart Contract (epoch-based revenue settlement)

Epoch state machine (per epoch id, stored in boxes):
  NONE (no box) → OPEN (1) → CLOSED (2) → SETTLED (3)

Global State (2 slots: 1 bytes + 1 int):
  admin          → bytes  : creator / operator address
  current_epoch  → uint64 : highest epoch id created so far

Boxes, keyed by prefix + itob(epoch_id):
  epoch_status:  uint64
  epoch_start:   uint64 unix ts
  epoch_end:     uint64 unix ts
  epoch_hash:    32-byte accrual report hash
  epoch_net:     uint64 net revenue deposited

ABI Methods (admin only):
  create_epoch(epoch_id, start_ts, end_ts) → void
  close_epoch(epoch_id) → void
  anchor_accrual_report(epoch_id, report_hash: byte[]) → void
  deposit_net_revenue(payment: pay, epoch_id, amount) → uint64

Every call must declare exactly the boxes it touches.
"""

import pyteal as pt

KEY_ADMIN         = pt.Bytes("admin")
KEY_CURRENT_EPOCH = pt.Bytes("current_epoch")

STATUS_NONE    = pt.Int(0)
STATUS_OPEN    = pt.Int(1)
STATUS_CLOSED  = pt.Int(2)

HASH_LENGTH = 32


def epoch_box(prefix: str, epoch_id: pt.Expr) -> pt.Expr:
    return pt.Concat(pt.Bytes(prefix), pt.Itob(epoch_id))


def assert_admin() -> pt.Expr:
    return pt.Assert(pt.Txn.sender() == pt.App.globalGet(KEY_ADMIN), comment="NotAdmin")


@pt.Subroutine(pt.TealType.uint64)
def epoch_status(epoch_id: pt.Expr) -> pt.Expr:
    """Status stored for `epoch_id`, STATUS_NONE when the box is absent."""
    status = pt.App.box_get(epoch_box("epoch_status:", epoch_id))
    return pt.Seq(
        status,
        pt.If(status.hasValue()).Then(pt.Btoi(status.value())).Else(STATUS_NONE),
    )


# ── ABI Router ────────────────────────────────────────────────────────────────

router = pt.Router(
    name="RevenueVault",
    bare_calls=pt.BareCallActions(
        no_op=pt.OnCompleteAction.create_only(
            pt.Seq(
                pt.App.globalPut(KEY_ADMIN, pt.Txn.sender()),
                pt.App.globalPut(KEY_CURRENT_EPOCH, pt.Int(0)),
                pt.Approve(),
            )
        ),
    ),
)


@router.method
def create_epoch(epoch_id: pt.abi.Uint64, start_ts: pt.abi.Uint64, end_ts: pt.abi.Uint64) -> pt.Expr:
    """NONE → OPEN. Boxes: epoch_status, epoch_start, epoch_end."""
    return pt.Seq(
        assert_admin(),
        pt.Assert(epoch_id.get() > pt.Int(0), comment="InvalidEpochId"),
        pt.Assert(start_ts.get() < end_ts.get(), comment="InvalidTimeRange"),
        pt.Assert(epoch_status(epoch_id.get()) == STATUS_NONE, comment="EpochAlreadyExists"),
        pt.App.box_put(epoch_box("epoch_status:", epoch_id.get()), pt.Itob(STATUS_OPEN)),
        pt.App.box_put(epoch_box("epoch_start:", epoch_id.get()), pt.Itob(start_ts.get())),
        pt.App.box_put(epoch_box("epoch_end:", epoch_id.get()), pt.Itob(end_ts.get())),
        pt.If(epoch_id.get() > pt.App.globalGet(KEY_CURRENT_EPOCH)).Then(
            pt.App.globalPut(KEY_CURRENT_EPOCH, epoch_id.get())
        ),
    )


@router.method
def close_epoch(epoch_id: pt.abi.Uint64) -> pt.Expr:
    """OPEN → CLOSED. Boxes: epoch_status."""
    return pt.Seq(
        assert_admin(),
        pt.Assert(epoch_status(epoch_id.get()) == STATUS_OPEN, comment="EpochNotOpen"),
        pt.App.box_put(epoch_box("epoch_status:", epoch_id.get()), pt.Itob(STATUS_CLOSED)),
    )


@router.method
def anchor_accrual_report(epoch_id: pt.abi.Uint64, report_hash: pt.abi.DynamicBytes) -> pt.Expr:
    """Write-once report hash on a CLOSED epoch. Boxes: epoch_status, epoch_hash."""
    existing = pt.App.box_length(epoch_box("epoch_hash:", epoch_id.get()))
    return pt.Seq(
        assert_admin(),
        pt.Assert(epoch_status(epoch_id.get()) == STATUS_CLOSED, comment="EpochNotClosed"),
        pt.Assert(pt.Len(report_hash.get()) == pt.Int(HASH_LENGTH), comment="InvalidReportHash"),
        existing,
        pt.Assert(pt.Not(existing.hasValue()), comment="ReportAlreadyAnchored"),
        pt.App.box_put(epoch_box("epoch_hash:", epoch_id.get()), report_hash.get()),
    )


@router.method
def deposit_net_revenue(
    payment: pt.abi.PaymentTransaction,
    epoch_id: pt.abi.Uint64,
    amount: pt.abi.Uint64,
    *,
    output: pt.abi.Uint64,
) -> pt.Expr:
    """
    Atomic group: [pay txn → vault] + [this app call].
    Boxes: epoch_status, epoch_hash, epoch_net.
    """
    pay_txn  = payment.get()
    anchored = pt.App.box_length(epoch_box("epoch_hash:", epoch_id.get()))
    existing = pt.App.box_length(epoch_box("epoch_net:", epoch_id.get()))
    return pt.Seq(
        assert_admin(),
        pt.Assert(pay_txn.sender() == pt.Txn.sender(), comment="payment sender must match caller"),
        pt.Assert(
            pay_txn.receiver() == pt.Global.current_application_address(),
            comment="payment must go to vault",
        ),
        pt.Assert(amount.get() > pt.Int(0), comment="InvalidDepositAmount"),
        pt.Assert(pay_txn.amount() == amount.get(), comment="payment amount mismatch"),
        pt.Assert(epoch_status(epoch_id.get()) == STATUS_CLOSED, comment="EpochNotClosed"),
        anchored,
        pt.Assert(anchored.hasValue(), comment="ReportNotAnchored"),
        existing,
        pt.Assert(pt.Not(existing.hasValue()), comment="AlreadyDeposited"),
        pt.App.box_put(epoch_box("epoch_net:", epoch_id.get()), pt.Itob(amount.get())),
        output.set(amount.get()),
    )
