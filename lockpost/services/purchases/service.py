"""
PurchaseService: журнал покупок и счётчики ресурса.
Pending-строка и инкремент счётчиков коммитятся одной транзакцией до settle.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from lockpost.models.purchase import (
    PURCHASE_PENDING,
    PURCHASE_SETTLE_FAILED,
    PURCHASE_SETTLED,
    Purchase,
)
from lockpost.models.resource import Resource
from lockpost.services.payments.models import SettlementReceipt

logger = logging.getLogger(__name__)


class PurchaseService:
    def __init__(self, db: Session):
        self.db = db

    def record_pending(self, resource: Resource, network: str) -> Purchase:
        purchase = Purchase(
            resource_id=resource.id,
            amount_minor_units=resource.price_minor_units,
            currency=resource.currency,
            chain=resource.chain,
            network=network,
            status=PURCHASE_PENDING,
        )
        self.db.add(purchase)
        # Атомарный инкремент в БД, без read-modify-write
        self.db.execute(
            update(Resource)
            .where(Resource.id == resource.id)
            .values(
                total_purchases=Resource.total_purchases + 1,
                total_revenue_minor_units=Resource.total_revenue_minor_units + resource.price_minor_units,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(purchase)
        return purchase

    def mark_settled(self, purchase: Purchase, receipt: SettlementReceipt) -> Purchase:
        purchase.status = PURCHASE_SETTLED
        purchase.settlement_reference = receipt.transaction
        purchase.payer = receipt.payer
        purchase.settled_at = datetime.now(timezone.utc)
        self.db.commit()
        return purchase

    def mark_settle_failed(self, purchase: Purchase) -> Purchase:
        purchase.status = PURCHASE_SETTLE_FAILED
        self.db.commit()
        return purchase

    def list_for_resource(self, resource_id: str) -> list[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.resource_id == resource_id)
            .order_by(Purchase.created_at.asc())
            .all()
        )
