"""
Module: ledger_engines.fifo
Responsibility:
    Apply a counterparty's net settlement pool to its trades oldest-first
    and report how much of the pool lands on a given trade leg.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The FIFO queue and payment events are supplied by the caller.

Algorithm (per trade, per currency):
    1. net = sum of signed payment events (exact Decimal).
    2. effective pool = net for they_owe_us, -net for we_owe_them.
    3. effective pool <= 0 -> nothing applied.
    4. Walk the counterparty's creation-ordered queue up to the target
       trade; every earlier trade whose obligation in the same currency has
       the same direction and a positive amount drains
       min(pool, obligation) from the pool.
    5. Applied to the target = min(remaining pool, target obligation).

Invariants enforced:
    - 0 <= applied <= obligation.amount.
    - Determinism: the result depends only on (queue, events); it can be
      recomputed from scratch at any time.
    - Exact Decimal subtraction; no epsilon comparisons.
    - ``settlement_applied_to`` for any trade equals that trade's line in
      ``allocate_queue`` for the same inputs (verification mode).

Usage:
    from ledger_engines.fifo import settlement_applied_to

    applied = settlement_applied_to(
        trade=trade,
        currency=Currency.AED,
        obligation=obligation,
        events=events,
        queue=queue,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.netting import PaymentEvent, net_settlement
from ledger_engines.obligation import (
    Obligation,
    ObligationDirection,
    resolve_obligation,
)
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.currency import Currency
from ledger_kernel.domain.dtos import TradeView
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")

_ZERO = Decimal("0")


def effective_pool(
    events: Sequence[PaymentEvent],
    direction: ObligationDirection,
) -> Decimal:
    """Net settlement reinterpreted for ``direction``.  May be negative."""
    return net_settlement(events) * direction.pool_sign


@traced_engine(
    "fifo_allocator",
    "1.0",
    fingerprint_fields=("trade", "currency", "obligation", "events"),
)
def settlement_applied_to(
    trade: TradeView,
    currency: Currency,
    obligation: Obligation,
    events: Sequence[PaymentEvent],
    queue: Sequence[TradeView],
) -> Decimal:
    """
    Amount of the counterparty's pool applied to ``trade``'s leg in ``currency``.

    Preconditions:
        - ``obligation`` is ``resolve_obligation(trade, currency)``.
        - ``queue`` is the counterparty's trades ordered by creation time.
        - ``events`` is the netted event sequence for the same
          counterparty+currency.
    Postconditions:
        - Returns a Decimal in [0, obligation.amount].
        - Returns 0 when the trade is not in ``queue``.
    """
    if obligation.is_zero:
        return _ZERO

    pool = effective_pool(events, obligation.direction)
    if pool <= _ZERO:
        return _ZERO

    position = next((i for i, t in enumerate(queue) if t.id == trade.id), None)
    if position is None:
        logger.warning("fifo_trade_not_in_queue", extra={
            "trade_id": trade.id,
            "counterparty_id": trade.counterparty_id,
            "queue_length": len(queue),
        })
        return _ZERO

    for earlier in queue[:position]:
        if pool <= _ZERO:
            break
        earlier_obligation = resolve_obligation(earlier, currency)
        if (
            earlier_obligation.direction == obligation.direction
            and earlier_obligation.amount > _ZERO
        ):
            pool -= min(pool, earlier_obligation.amount)

    return min(pool, obligation.amount)


@dataclass(frozen=True)
class FifoAllocationLine:
    """
    Share of the pool landing on one trade leg.

    Guarantees:
        - ``applied + remaining == obligation``.
    """

    trade_id: int
    trade_number: str
    obligation: Decimal
    applied: Decimal
    remaining: Decimal
    is_fully_settled: bool


@dataclass(frozen=True)
class FifoAllocation:
    """
    Whole-queue allocation of one counterparty+currency+direction pool.

    Guarantees:
        - Lines are in FIFO (creation) order and only include trades with a
          positive obligation in ``direction``.
        - When ``effective_pool > 0``:
          ``sum(applied) + unallocated == effective_pool``.
    """

    counterparty_id: int
    currency: Currency
    direction: ObligationDirection
    effective_pool: Decimal
    lines: tuple[FifoAllocationLine, ...]
    unallocated: Decimal

    @property
    def total_applied(self) -> Decimal:
        return sum((line.applied for line in self.lines), _ZERO)

    def applied_to(self, trade_id: int) -> Decimal:
        """Applied amount for ``trade_id`` (0 when it has no line)."""
        return next(
            (line.applied for line in self.lines if line.trade_id == trade_id),
            _ZERO,
        )


@traced_engine(
    "fifo_allocator.queue",
    "1.0",
    fingerprint_fields=("counterparty_id", "currency", "direction", "events"),
)
def allocate_queue(
    counterparty_id: int,
    currency: Currency,
    direction: ObligationDirection,
    events: Sequence[PaymentEvent],
    queue: Sequence[TradeView],
) -> FifoAllocation:
    """
    Pour the pool through the whole queue in one pass.

    This is the verification mode of the allocator: it reports the FIFO
    order in which payments land on trades and must agree with
    ``settlement_applied_to`` for every trade in the queue.
    """
    pool = effective_pool(events, direction)
    remaining_pool = pool if pool > _ZERO else _ZERO
    lines: list[FifoAllocationLine] = []

    for trade in queue:
        obligation = resolve_obligation(trade, currency)
        if obligation.direction != direction or obligation.amount <= _ZERO:
            continue

        applied = min(remaining_pool, obligation.amount)
        remaining_pool -= applied
        remaining = obligation.amount - applied

        lines.append(
            FifoAllocationLine(
                trade_id=trade.id,
                trade_number=trade.trade_number,
                obligation=obligation.amount,
                applied=applied,
                remaining=remaining,
                is_fully_settled=remaining == _ZERO,
            )
        )

    logger.info("fifo_queue_allocated", extra={
        "counterparty_id": counterparty_id,
        "currency": currency.value,
        "direction": direction.value,
        "effective_pool": str(pool),
        "unallocated": str(remaining_pool),
        "line_count": len(lines),
        "trades_funded": sum(1 for line in lines if line.applied > _ZERO),
    })

    return FifoAllocation(
        counterparty_id=counterparty_id,
        currency=currency,
        direction=direction,
        effective_pool=pool,
        lines=tuple(lines),
        unallocated=remaining_pool,
    )
