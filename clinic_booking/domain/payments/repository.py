"""Payment repository - Database operations for payments"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Payment, PaymentMethod


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_by_reference_for_update(
        db: Session, reference: str, method: PaymentMethod
    ) -> Optional[Payment]:
        """Find the payment a gateway reference belongs to, under a row lock"""
        return (
            db.query(Payment)
            .filter(Payment.transaction_id == reference, Payment.method == method)
            .with_for_update()
            .populate_existing()
            .first()
        )
