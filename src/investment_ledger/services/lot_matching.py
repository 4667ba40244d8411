"""FIFO gain realization: settles a sale against the oldest open lots."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from investment_ledger.domain.transactions import RealizedGain, TaxLot
from investment_ledger.domain.value_objects import (
    DEFAULT_LONG_TERM_THRESHOLD_DAYS,
    DEFAULT_QUANTITY_TOLERANCE,
    is_long_term,
    quantize_money,
)
from investment_ledger.exceptions import InsufficientHoldingsError
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import (
    LedgerDatabase,
    RealizedGainRepository,
)
from investment_ledger.services.tax_lots import TaxLotStore

logger = get_logger(__name__)


@dataclass
class LotDraw:
    """One planned draw against one lot, computed before anything is written."""

    lot: TaxLot
    quantity: Decimal


class GainRealizationEngine:
    """Matches a sale against open lots in FIFO order.

    Every lot the sale touches produces exactly one RealizedGain. The whole
    settlement is planned in memory first; nothing is written unless the open
    lots can cover the full quantity.
    """

    def __init__(
        self,
        tax_lot_store: TaxLotStore,
        realized_gain_repo: RealizedGainRepository,
        database: LedgerDatabase,
        long_term_threshold_days: int = DEFAULT_LONG_TERM_THRESHOLD_DAYS,
        quantity_tolerance: Decimal = DEFAULT_QUANTITY_TOLERANCE,
    ) -> None:
        self._tax_lot_store = tax_lot_store
        self._realized_gain_repo = realized_gain_repo
        self._db = database
        self._long_term_threshold_days = long_term_threshold_days
        self._tolerance = quantity_tolerance

    @property
    def long_term_threshold_days(self) -> int:
        return self._long_term_threshold_days

    @property
    def quantity_tolerance(self) -> Decimal:
        return self._tolerance

    def plan_sale(
        self, lots: list[TaxLot], quantity_sold: Decimal, asset_label: str = ""
    ) -> list[LotDraw]:
        """Walk ``lots`` in the given order and decide how much to take from each.

        Raises:
            InsufficientHoldingsError: If the lots cannot cover the quantity.
        """
        draws: list[LotDraw] = []
        remaining_to_sell = quantity_sold
        for lot in lots:
            if remaining_to_sell <= Decimal("0"):
                break
            draw_qty = min(lot.remaining_quantity, remaining_to_sell)
            if draw_qty <= Decimal("0"):
                continue
            draws.append(LotDraw(lot=lot, quantity=draw_qty))
            remaining_to_sell -= draw_qty

        if remaining_to_sell > self._tolerance:
            available = sum((lot.remaining_quantity for lot in lots), Decimal("0"))
            raise InsufficientHoldingsError(
                asset=asset_label, requested=quantity_sold, available=available
            )
        return draws

    def settle_sale(
        self,
        owner_id: UUID,
        sell_transaction_id: UUID,
        asset_id: UUID,
        quantity_sold: Decimal,
        price_per_unit: Decimal,
        sale_date: date,
        *,
        symbol: str | None = None,
    ) -> list[RealizedGain]:
        """Consume open lots oldest-first and record one gain per lot touched.

        Runs inside the caller's unit of work when there is one, otherwise in
        its own. Lots are read under lock so concurrent sales of the same
        asset are serialised.

        Raises:
            InsufficientHoldingsError: If the open lots hold less than
                ``quantity_sold``. No lot or gain is written in that case.
        """
        label = symbol or str(asset_id)
        with self._db.unit_of_work():
            lots = self._tax_lot_store.lots_for_sale(owner_id, asset_id)
            try:
                draws = self.plan_sale(lots, quantity_sold, label)
            except InsufficientHoldingsError as e:
                logger.warning(
                    "insufficient_holdings",
                    owner_id=str(owner_id),
                    asset=label,
                    requested=e.requested,
                    available=e.available,
                )
                raise

            gains: list[RealizedGain] = []
            for draw in draws:
                gain = self._realize(
                    owner_id, sell_transaction_id, draw, price_per_unit, sale_date
                )
                draw.lot.draw(draw.quantity)
                self._tax_lot_store.save(draw.lot)
                self._realized_gain_repo.add(gain)
                gains.append(gain)

        logger.info(
            "sale_settled",
            owner_id=str(owner_id),
            sell_transaction_id=str(sell_transaction_id),
            asset=label,
            quantity=quantity_sold,
            lots_touched=len(gains),
            gain_loss=sum((g.gain_loss for g in gains), Decimal("0")),
        )
        return gains

    def _realize(
        self,
        owner_id: UUID,
        sell_transaction_id: UUID,
        draw: LotDraw,
        price_per_unit: Decimal,
        sale_date: date,
    ) -> RealizedGain:
        lot = draw.lot
        holding_days = lot.holding_period_days(sale_date)
        return RealizedGain(
            owner_id=owner_id,
            sell_transaction_id=sell_transaction_id,
            tax_lot_id=lot.id,
            asset_id=lot.asset_id,
            quantity_sold=draw.quantity,
            cost_basis=quantize_money(draw.quantity * lot.cost_basis_per_unit),
            proceeds=quantize_money(draw.quantity * price_per_unit),
            holding_period_days=holding_days,
            is_long_term=is_long_term(holding_days, self._long_term_threshold_days),
            sale_date=sale_date,
        )
