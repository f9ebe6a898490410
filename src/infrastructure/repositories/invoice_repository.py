# src/infrastructure/repositories/invoice_repository.py

from datetime import datetime

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select

from src.infrastructure.db.models import Invoice


class InvoiceRepository:

    def __init__(self, db: Session):
        self.db = db

    def _with_lines(self):
        return select(Invoice).options(selectinload(Invoice.line_items))

    def get_by_id(self, invoice_id: int) -> Invoice | None:
        stmt = self._with_lines().where(Invoice.id == invoice_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_booking_id(self, booking_id: int) -> Invoice | None:
        stmt = self._with_lines().where(Invoice.booking_id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_number(self, invoice_number: str) -> Invoice | None:
        stmt = self._with_lines().where(Invoice.invoice_number == invoice_number)
        return self.db.execute(stmt).scalar_one_or_none()

    def count_for_year(self, year: int) -> int:
        # Numbers carry the year, so the prefix is the source of truth.
        stmt = select(func.count(Invoice.id)).where(
            Invoice.invoice_number.like(f"INV-{year}-%")
        )
        return self.db.execute(stmt).scalar_one()

    def number_exists(self, invoice_number: str) -> bool:
        stmt = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        return self.db.execute(stmt).first() is not None

    def list_between(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Invoice]:
        stmt = select(Invoice)
        if start is not None:
            stmt = stmt.where(Invoice.invoice_date >= start)
        if end is not None:
            stmt = stmt.where(Invoice.invoice_date <= end)
        return list(self.db.execute(stmt.order_by(Invoice.id)).scalars().all())

    def add(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        return invoice
