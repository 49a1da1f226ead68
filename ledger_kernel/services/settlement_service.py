"""
SettlementService -- persisted per-receipt FIFO settlement.

Responsibility:
    Applies a payment receipt to the counterparty's unsettled trades in
    creation order and records each application as a ``TradeSettlement``
    row, updating the trade's settled amounts, fully-settled flags, status
    and last settlement date.  Also reverses a receipt's settlements and
    rebuilds all settlement data from scratch.

Architecture position:
    Kernel > Services -- imperative shell.  Extends BaseService; flushes
    within the caller's transaction and never commits.

Invariants enforced:
    - Per trade, the settled amount on a leg never exceeds the leg's
      obligation (amount for BASE, total_value for QUOTE).
    - fifo_sequence for a new row = previous max for (trade, leg) + 1.
    - Status: COMPLETED when both legs are fully settled, PARTIAL when
      either leg has a positive settled amount, otherwise PENDING.
    - A receipt already carrying settlement rows is not applied twice.
    - Soft-deleted receipts are not applied (configurable).

Failure modes:
    - ReceiptNotFoundError for an unknown receipt id.
    - UnsupportedCurrencyError if a stored currency code is not AED/TOMAN.

Audit relevance:
    This is the incremental record of which receipt paid which trade.  It
    is not the source of truth for progress: SettlementProgressService
    recomputes progress from the raw receipts and can report drift between
    the two.

Usage:
    service = SettlementService(session, clock=DeterministicClock())
    outcome = service.process_receipt(receipt_id)
    session.commit()
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.currency import Currency, parse_currency
from ledger_kernel.domain.dtos import SettlementLeg, TradeStatus
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.party import BankAccount
from ledger_kernel.models.receipt import PaymentReceipt
from ledger_kernel.models.trade import Trade, TradeSettlement
from ledger_kernel.services.base import BaseService

if TYPE_CHECKING:
    from ledger_config.schema import SettlementConfig

logger = get_logger("services.settlement")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class SettlementLineInfo:
    """One receipt-to-trade-leg application."""

    trade_id: int
    trade_number: str
    counterparty_id: int
    leg: SettlementLeg
    currency: Currency
    settled_amount: Decimal
    fifo_sequence: int


@dataclass(frozen=True)
class SettlementOutcome:
    """
    Result of processing one receipt.

    ``skipped_reason`` is set (and ``lines`` empty) when the receipt was
    not applied: ``deleted``, ``already_processed`` or ``no_counterparty``.
    """

    receipt_id: int
    currency: Currency
    counterparty_ids: tuple[int, ...]
    lines: tuple[SettlementLineInfo, ...]
    skipped_reason: str | None = None

    @property
    def was_applied(self) -> bool:
        return self.skipped_reason is None

    @property
    def total_settled(self) -> Decimal:
        return sum((line.settled_amount for line in self.lines), _ZERO)


@dataclass(frozen=True)
class ReprocessSummary:
    """Counts from a full settlement rebuild."""

    receipts_seen: int
    receipts_applied: int
    receipts_skipped: int
    settlements_recorded: int


class SettlementService(BaseService[TradeSettlement]):
    """
    Writer service for persisted trade settlements.

    Contract:
        Receives Session and Clock via constructor injection.  Every public
        method flushes; none commits.
    Guarantees:
        - ``process_receipt`` walks trades with status != COMPLETED in
          creation order; base leg before quote leg on each trade.
        - ``reverse_receipt_settlement`` leaves trades exactly as if the
          receipt had never been processed, apart from fifo_sequence gaps.
    Non-goals:
        - Direction of the money is not considered here; a receipt's full
          amount is applied to whichever leg matches its currency.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        skip_deleted: bool = True,
    ):
        super().__init__(session, clock)
        self.skip_deleted = skip_deleted

    @classmethod
    def from_config(
        cls,
        session: Session,
        config: SettlementConfig,
        clock: Clock | None = None,
    ) -> SettlementService:
        return cls(
            session,
            clock=clock,
            skip_deleted=config.settlement.skip_deleted_on_process,
        )

    # =========================================================================
    # Processing
    # =========================================================================

    def process_receipt(self, receipt_id: int) -> SettlementOutcome:
        """
        Apply a receipt to its counterparties' unsettled trades.

        AED receipts settle against the receipt's trading party.  TOMAN
        receipts settle against the trading party when the receipt carries
        both trading_party_id and receipt_type; otherwise against the
        receiving account's owner first and the payer second, each with
        the receipt's full amount.

        Raises:
            ReceiptNotFoundError: If the receipt doesn't exist.
        """
        receipt = self._require_receipt(receipt_id)
        currency = parse_currency(receipt.currency)

        with LogContext.bind(receipt_id=receipt.id, currency=currency.value):
            if receipt.is_deleted and self.skip_deleted:
                logger.info("settlement_receipt_skipped", extra={"reason": "deleted"})
                return self._skipped(receipt, currency, "deleted")

            if self._has_settlements(receipt.id):
                logger.warning(
                    "settlement_receipt_skipped",
                    extra={"reason": "already_processed"},
                )
                return self._skipped(receipt, currency, "already_processed")

            counterparty_ids = self._target_counterparties(receipt, currency)
            if not counterparty_ids:
                logger.info(
                    "settlement_receipt_skipped",
                    extra={"reason": "no_counterparty"},
                )
                return self._skipped(receipt, currency, "no_counterparty")

            lines: list[SettlementLineInfo] = []
            for counterparty_id in counterparty_ids:
                lines.extend(
                    self._apply_to_counterparty(
                        receipt, currency, counterparty_id, Decimal(receipt.amount)
                    )
                )

            self.session.flush()

            outcome = SettlementOutcome(
                receipt_id=receipt.id,
                currency=currency,
                counterparty_ids=counterparty_ids,
                lines=tuple(lines),
            )
            logger.info("settlement_receipt_processed", extra={
                "counterparty_ids": list(counterparty_ids),
                "line_count": len(lines),
                "total_settled": str(outcome.total_settled),
                "receipt_amount": str(receipt.amount),
            })
            return outcome

    def reverse_receipt_settlement(self, receipt_id: int) -> tuple[SettlementLineInfo, ...]:
        """
        Remove every settlement row recorded for a receipt and roll the
        affected trades back.

        Returns:
            The reversed lines, in the order they were recorded.

        Raises:
            ReceiptNotFoundError: If the receipt doesn't exist.
        """
        receipt = self._require_receipt(receipt_id)

        settlements = self.session.execute(
            select(TradeSettlement)
            .where(TradeSettlement.receipt_id == receipt.id)
            .order_by(TradeSettlement.id)
        ).scalars().all()

        reversed_lines: list[SettlementLineInfo] = []
        touched: dict[int, Trade] = {}

        for settlement in settlements:
            trade = settlement.trade
            leg = SettlementLeg(settlement.settlement_type)
            amount = Decimal(settlement.settled_amount)

            self._add_settled(trade, leg, -amount)
            touched[trade.id] = trade

            reversed_lines.append(
                SettlementLineInfo(
                    trade_id=trade.id,
                    trade_number=trade.trade_number,
                    counterparty_id=trade.counterparty_id,
                    leg=leg,
                    currency=parse_currency(settlement.currency),
                    settled_amount=amount,
                    fifo_sequence=settlement.fifo_sequence,
                )
            )
            self.session.delete(settlement)

        self.session.flush()

        for trade in touched.values():
            trade.last_settlement_date = self.session.execute(
                select(func.max(TradeSettlement.settlement_date))
                .where(TradeSettlement.trade_id == trade.id)
            ).scalar()
            self._refresh_status(trade)

        self.session.flush()

        logger.info("settlement_receipt_reversed", extra={
            "receipt_id": receipt.id,
            "line_count": len(reversed_lines),
            "trade_ids": sorted(touched),
        })
        return tuple(reversed_lines)

    def reprocess_all_receipts(self) -> ReprocessSummary:
        """
        Rebuild all settlement data.

        Clears every TradeSettlement row and resets trade settlement
        fields, then processes every receipt in creation order.
        """
        self.session.flush()
        self.session.execute(delete(TradeSettlement))
        self.session.execute(
            update(Trade).values(
                base_settled_amount=_ZERO,
                quote_settled_amount=_ZERO,
                is_base_fully_settled=False,
                is_quote_fully_settled=False,
                status=TradeStatus.PENDING.value,
                last_settlement_date=None,
            )
        )
        self.session.expire_all()

        receipt_ids = self.session.execute(
            select(PaymentReceipt.id).order_by(
                PaymentReceipt.created_at.asc(),
                PaymentReceipt.id.asc(),
            )
        ).scalars().all()

        applied = 0
        recorded = 0
        for receipt_id in receipt_ids:
            outcome = self.process_receipt(receipt_id)
            if outcome.was_applied:
                applied += 1
                recorded += len(outcome.lines)

        summary = ReprocessSummary(
            receipts_seen=len(receipt_ids),
            receipts_applied=applied,
            receipts_skipped=len(receipt_ids) - applied,
            settlements_recorded=recorded,
        )
        logger.info("settlement_reprocess_completed", extra={
            "receipts_seen": summary.receipts_seen,
            "receipts_applied": summary.receipts_applied,
            "settlements_recorded": summary.settlements_recorded,
        })
        return summary

    # =========================================================================
    # Internals
    # =========================================================================

    def _has_settlements(self, receipt_id: int) -> bool:
        count = self.session.execute(
            select(func.count(TradeSettlement.id))
            .where(TradeSettlement.receipt_id == receipt_id)
        ).scalar_one()
        return count > 0

    def _skipped(
        self,
        receipt: PaymentReceipt,
        currency: Currency,
        reason: str,
    ) -> SettlementOutcome:
        return SettlementOutcome(
            receipt_id=receipt.id,
            currency=currency,
            counterparty_ids=(),
            lines=(),
            skipped_reason=reason,
        )

    def _target_counterparties(
        self,
        receipt: PaymentReceipt,
        currency: Currency,
    ) -> tuple[int, ...]:
        if currency == Currency.AED:
            if receipt.trading_party_id is None:
                return ()
            return (receipt.trading_party_id,)

        if receipt.trading_party_id is not None and receipt.receipt_type:
            return (receipt.trading_party_id,)

        targets: list[int] = []
        if receipt.receiver_account_id is not None:
            account = self.session.get(BankAccount, receipt.receiver_account_id)
            if account is not None:
                targets.append(account.counterpart_id)

        # Payer second, only when it is not the receiving account's owner
        if receipt.payer_id is not None and receipt.payer_id not in targets:
            targets.append(receipt.payer_id)

        return tuple(targets)

    def _apply_to_counterparty(
        self,
        receipt: PaymentReceipt,
        currency: Currency,
        counterparty_id: int,
        amount: Decimal,
    ) -> list[SettlementLineInfo]:
        trades = self.session.execute(
            select(Trade)
            .where(
                Trade.counterparty_id == counterparty_id,
                Trade.status != TradeStatus.COMPLETED.value,
            )
            .order_by(Trade.created_at.asc(), Trade.id.asc())
        ).scalars().all()

        remaining = amount
        lines: list[SettlementLineInfo] = []

        for trade in trades:
            if remaining <= _ZERO:
                break

            for leg in (SettlementLeg.BASE, SettlementLeg.QUOTE):
                if remaining <= _ZERO:
                    break
                if currency.value != self._leg_currency(trade, leg):
                    continue

                unsettled = self._obligation(trade, leg) - self._settled(trade, leg)
                if unsettled <= _ZERO:
                    continue

                applied = min(remaining, unsettled)
                lines.append(
                    self._record_settlement(trade, receipt, currency, leg, applied)
                )
                remaining -= applied

        if remaining > _ZERO:
            logger.info("settlement_amount_unapplied", extra={
                "counterparty_id": counterparty_id,
                "unapplied": str(remaining),
            })
        return lines

    def _record_settlement(
        self,
        trade: Trade,
        receipt: PaymentReceipt,
        currency: Currency,
        leg: SettlementLeg,
        amount: Decimal,
    ) -> SettlementLineInfo:
        previous = self.session.execute(
            select(func.coalesce(func.max(TradeSettlement.fifo_sequence), 0))
            .where(
                TradeSettlement.trade_id == trade.id,
                TradeSettlement.settlement_type == leg.value,
            )
        ).scalar_one()
        today = self.clock.today()

        settlement = TradeSettlement(
            trade_id=trade.id,
            receipt_id=receipt.id,
            currency=currency.value,
            settled_amount=amount,
            settlement_type=leg.value,
            settlement_date=today,
            fifo_sequence=previous + 1,
        )
        self.session.add(settlement)

        self._add_settled(trade, leg, amount)
        trade.last_settlement_date = today
        self._refresh_status(trade)
        self.session.flush()

        return SettlementLineInfo(
            trade_id=trade.id,
            trade_number=trade.trade_number,
            counterparty_id=trade.counterparty_id,
            leg=leg,
            currency=currency,
            settled_amount=amount,
            fifo_sequence=settlement.fifo_sequence,
        )

    @staticmethod
    def _leg_currency(trade: Trade, leg: SettlementLeg) -> str:
        return trade.base_currency if leg is SettlementLeg.BASE else trade.quote_currency

    @staticmethod
    def _obligation(trade: Trade, leg: SettlementLeg) -> Decimal:
        value = trade.amount if leg is SettlementLeg.BASE else trade.total_value
        return Decimal(value)

    @staticmethod
    def _settled(trade: Trade, leg: SettlementLeg) -> Decimal:
        value = (
            trade.base_settled_amount
            if leg is SettlementLeg.BASE
            else trade.quote_settled_amount
        )
        return Decimal(value or 0)

    def _add_settled(self, trade: Trade, leg: SettlementLeg, delta: Decimal) -> None:
        new_amount = self._settled(trade, leg) + delta
        if new_amount < _ZERO:
            new_amount = _ZERO
        if leg is SettlementLeg.BASE:
            trade.base_settled_amount = new_amount
        else:
            trade.quote_settled_amount = new_amount

    def _refresh_status(self, trade: Trade) -> None:
        base_settled = self._settled(trade, SettlementLeg.BASE)
        quote_settled = self._settled(trade, SettlementLeg.QUOTE)

        trade.is_base_fully_settled = base_settled >= self._obligation(trade, SettlementLeg.BASE)
        trade.is_quote_fully_settled = quote_settled >= self._obligation(trade, SettlementLeg.QUOTE)

        if trade.is_base_fully_settled and trade.is_quote_fully_settled:
            status = TradeStatus.COMPLETED
        elif base_settled > _ZERO or quote_settled > _ZERO:
            status = TradeStatus.PARTIAL
        else:
            status = TradeStatus.PENDING

        if trade.status != status.value:
            logger.info("trade_settlement_status_changed", extra={
                "trade_id": trade.id,
                "trade_number": trade.trade_number,
                "from_status": trade.status,
                "to_status": status.value,
            })
            trade.status = status.value
