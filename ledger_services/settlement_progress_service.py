"""
ledger_services.settlement_progress_service -- FIFO settlement progress projection.

Responsibility:
    Project how far each trade's AED and TOMAN legs are settled, computed
    from scratch out of the raw payment receipts.  Composes the pure
    engines (obligation, netting, FIFO allocation, progress ratio) with an
    injected ``LedgerStore``.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Reads through a LedgerStore only; performs no writes.

Invariants enforced:
    - 0 <= progress <= 1 for every (trade, currency).
    - A currency with a zero obligation always reports progress 0.
    - A trade without a counterparty reports 0 for both currencies.
    - Idempotence: two runs over the same ledger state return equal
      results.  Nothing computed is persisted or carried between calls.
    - Each (trade, currency) pair is computed independently; within one
      call the counterparty's queue and events are read once and reused,
      which cannot change any result.

Failure modes:
    - LedgerStoreError from the store propagates unchanged.
    - TradeNotFoundError from the single-trade entry points.

Audit relevance:
    ``verify_persisted_settlement`` compares the settled amounts written by
    SettlementService with the recomputed applied amounts and reports every
    leg that drifted.  Engine invocations emit LEDGER_ENGINE_TRACE records.

Usage:
    from ledger_services import SettlementProgressService

    service = SettlementProgressService.for_session(session)
    progress = service.calculate_progress_for_trades(trades)
    progress[trade.id].progress_aed
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_config.schema import SettlementConfig
from ledger_engines.fifo import FifoAllocation, allocate_queue, settlement_applied_to
from ledger_engines.netting import PaymentEvent, net_payment_events, net_settlement
from ledger_engines.obligation import (
    Obligation,
    ObligationDirection,
    is_degenerate,
    resolve_obligation,
)
from ledger_engines.progress import TradeProgress, progress_ratio
from ledger_kernel.domain.currency import LEDGER_CURRENCIES, Currency, parse_currency
from ledger_kernel.domain.dtos import SettlementLeg, TradeView
from ledger_kernel.exceptions import TradeNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.ledger_store import LedgerSelector, LedgerStore

logger = get_logger("services.settlement_progress")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class LegProgress:
    """Settlement detail of one trade leg."""

    leg: SettlementLeg
    currency: Currency
    direction: ObligationDirection
    obligation: Decimal
    applied: Decimal
    remaining: Decimal
    ratio: Decimal


@dataclass(frozen=True)
class TradeSettlementProgress:
    """Per-leg settlement detail of one trade."""

    trade_id: int
    trade_number: str
    counterparty_id: int | None
    legs: tuple[LegProgress, ...]
    progress: TradeProgress

    def leg(self, leg: SettlementLeg) -> LegProgress | None:
        return next((line for line in self.legs if line.leg is leg), None)


@dataclass(frozen=True)
class CounterpartyAllocation:
    """Both FIFO queues of one counterparty in one currency."""

    counterparty_id: int
    currency: Currency
    net_settlement: Decimal
    event_count: int
    they_owe_us: FifoAllocation
    we_owe_them: FifoAllocation


@dataclass(frozen=True)
class SettlementDrift:
    """
    A leg whose persisted settled amount differs from the recomputed one.

    ``difference = persisted - recomputed``.
    """

    trade_id: int
    trade_number: str
    leg: SettlementLeg
    currency: Currency
    persisted: Decimal
    recomputed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.persisted - self.recomputed


class SettlementProgressService:
    """
    Read-only settlement progress projector.

    Contract:
        Receives a LedgerStore via constructor injection.  All reads for
        one call go through that store, so an SQL-backed store gives one
        snapshot per call.
    Guarantees:
        - ``calculate_progress_for_trades`` returns one TradeProgress per
          input trade, keyed by trade id.
        - Results depend only on the store's trades and payment rows.
    Non-goals:
        - Does not persist progress.
        - Does not decide trade status; see SettlementService.
    """

    def __init__(
        self,
        store: LedgerStore,
        ratio_places: int | None = None,
    ):
        self.store = store
        self.ratio_places = ratio_places

    @classmethod
    def for_session(
        cls,
        session: Session,
        config: SettlementConfig | None = None,
    ) -> SettlementProgressService:
        """Build a projector over an SQL session, optionally configured."""
        store = LedgerSelector(session)
        if config is None:
            return cls(store)
        return cls(store, ratio_places=config.settlement.ratio_places)

    # =========================================================================
    # Projection
    # =========================================================================

    def calculate_progress_for_trades(
        self,
        trades: Iterable[TradeView],
    ) -> dict[int, TradeProgress]:
        """
        Compute AED and TOMAN progress for each trade.

        Args:
            trades: Trades to project, in any order.

        Returns:
            Mapping of trade id to TradeProgress.
        """
        cache = _ReadCache(self.store)
        results: dict[int, TradeProgress] = {}

        for trade in trades:
            progress, _ = self._project(trade, cache)
            results[trade.id] = progress

        logger.info("progress_projection_completed", extra={
            "trade_count": len(results),
            "counterparty_count": cache.counterparty_count,
            "fully_settled": sum(1 for p in results.values() if p.is_fully_settled),
        })
        return results

    def recompute_progress(self, trade_id: int) -> TradeProgress:
        """
        Project a single trade by id.

        Raises:
            TradeNotFoundError: If the trade doesn't exist.
        """
        trade = self._get_trade(trade_id)
        return self.calculate_progress_for_trades([trade])[trade.id]

    def get_trade_settlement_progress(self, trade_id: int) -> TradeSettlementProgress:
        """
        Per-leg obligation, applied amount, remaining amount and ratio.

        The legs and the summary progress come from the same reads.

        Raises:
            TradeNotFoundError: If the trade doesn't exist.
        """
        trade = self._get_trade(trade_id)
        progress, applied_by_currency = self._project(trade, _ReadCache(self.store))
        legs: list[LegProgress] = []

        for leg, currency in (
            (SettlementLeg.BASE, trade.base_currency),
            (SettlementLeg.QUOTE, trade.quote_currency),
        ):
            if currency not in applied_by_currency:
                continue
            obligation, applied = applied_by_currency[currency]
            if obligation.is_zero:
                continue
            legs.append(
                LegProgress(
                    leg=leg,
                    currency=currency,
                    direction=obligation.direction,
                    obligation=obligation.amount,
                    applied=applied,
                    remaining=obligation.amount - applied,
                    ratio=progress.for_currency(currency),
                )
            )

        return TradeSettlementProgress(
            trade_id=trade.id,
            trade_number=trade.trade_number,
            counterparty_id=trade.counterparty_id,
            legs=tuple(legs),
            progress=progress,
        )

    # =========================================================================
    # Verification
    # =========================================================================

    def get_counterparty_allocation(
        self,
        counterparty_id: int,
        currency: Currency | str,
    ) -> CounterpartyAllocation:
        """
        Allocate the counterparty's pool through its whole queue, once per
        direction, in FIFO order.
        """
        currency = parse_currency(currency)
        cache = _ReadCache(self.store)
        events = cache.events(counterparty_id, currency)
        queue = cache.queue(counterparty_id)

        with LogContext.bind(counterparty_id=counterparty_id, currency=currency.value):
            they_owe_us, we_owe_them = (
                allocate_queue(
                    counterparty_id=counterparty_id,
                    currency=currency,
                    direction=direction,
                    events=events,
                    queue=queue,
                )
                for direction in (
                    ObligationDirection.THEY_OWE_US,
                    ObligationDirection.WE_OWE_THEM,
                )
            )

        return CounterpartyAllocation(
            counterparty_id=counterparty_id,
            currency=currency,
            net_settlement=net_settlement(events),
            event_count=len(events),
            they_owe_us=they_owe_us,
            we_owe_them=we_owe_them,
        )

    def verify_persisted_settlement(
        self,
        trade_ids: Iterable[int] | None = None,
    ) -> list[SettlementDrift]:
        """
        Compare persisted settled amounts with recomputed applied amounts.

        Args:
            trade_ids: Trades to check; all trades when None.

        Returns:
            One SettlementDrift per leg whose amounts differ, in trade id
            order.  Empty when everything agrees.
        """
        cache = _ReadCache(self.store)
        drifts: list[SettlementDrift] = []
        checked = 0

        for trade in self.store.get_trades(trade_ids):
            checked += 1
            for leg, currency, persisted in (
                (SettlementLeg.BASE, trade.base_currency, trade.base_settled_amount),
                (SettlementLeg.QUOTE, trade.quote_currency, trade.quote_settled_amount),
            ):
                _, recomputed = self._applied(trade, currency, cache)
                if persisted != recomputed:
                    drifts.append(
                        SettlementDrift(
                            trade_id=trade.id,
                            trade_number=trade.trade_number,
                            leg=leg,
                            currency=currency,
                            persisted=persisted,
                            recomputed=recomputed,
                        )
                    )

        if drifts:
            logger.warning("settlement_drift_detected", extra={
                "trades_checked": checked,
                "drift_count": len(drifts),
                "trade_ids": sorted({d.trade_id for d in drifts}),
            })
        else:
            logger.info("settlement_drift_none", extra={"trades_checked": checked})
        return drifts

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_trade(self, trade_id: int) -> TradeView:
        trade = self.store.get_trade(trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        return trade

    def _project(
        self,
        trade: TradeView,
        cache: _ReadCache,
    ) -> tuple[TradeProgress, dict[Currency, tuple[Obligation, Decimal]]]:
        """Progress for both ledger currencies plus the obligation and applied amount behind each."""
        with LogContext.bind(trade_id=trade.id, counterparty_id=trade.counterparty_id):
            if is_degenerate(trade):
                logger.warning("progress_degenerate_trade", extra={
                    "base_currency": trade.base_currency,
                    "quote_currency": trade.quote_currency,
                    "amount": str(trade.amount),
                    "rate": str(trade.rate),
                })
            applied_by_currency = {
                currency: self._applied(trade, currency, cache)
                for currency in LEDGER_CURRENCIES
            }

        ratios = {
            currency: progress_ratio(applied, obligation.amount, self.ratio_places)
            for currency, (obligation, applied) in applied_by_currency.items()
        }
        progress = TradeProgress(
            trade_id=trade.id,
            progress_aed=ratios[Currency.AED],
            progress_toman=ratios[Currency.TOMAN],
            base_currency=trade.base_currency,
            quote_currency=trade.quote_currency,
        )
        return progress, applied_by_currency

    def _applied(
        self,
        trade: TradeView,
        currency: Currency,
        cache: _ReadCache,
    ) -> tuple[Obligation, Decimal]:
        obligation = resolve_obligation(trade, currency)
        if obligation.is_zero or trade.counterparty_id is None:
            return obligation, _ZERO

        applied = settlement_applied_to(
            trade=trade,
            currency=currency,
            obligation=obligation,
            events=cache.events(trade.counterparty_id, currency),
            queue=cache.queue(trade.counterparty_id),
        )
        return obligation, applied


class _ReadCache:
    """Per-call memo of counterparty queues and netted events."""

    def __init__(self, store: LedgerStore):
        self._store = store
        self._queues: dict[int, list[TradeView]] = {}
        self._events: dict[tuple[int, Currency], tuple[PaymentEvent, ...]] = {}

    @property
    def counterparty_count(self) -> int:
        return len(self._queues)

    def queue(self, counterparty_id: int) -> list[TradeView]:
        if counterparty_id not in self._queues:
            self._queues[counterparty_id] = self._store.get_trades_for_counterparty(
                counterparty_id
            )
        return self._queues[counterparty_id]

    def events(self, counterparty_id: int, currency: Currency) -> tuple[PaymentEvent, ...]:
        key = (counterparty_id, currency)
        if key not in self._events:
            rows = self._store.get_payment_rows_for_counterparty(counterparty_id, currency)
            self._events[key] = net_payment_events(
                rows=rows,
                counterparty_id=counterparty_id,
                currency=currency,
            )
        return self._events[key]
