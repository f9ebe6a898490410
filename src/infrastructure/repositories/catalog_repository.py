# src/infrastructure/repositories/catalog_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Customer, Hall, ServiceItem, Vendor


class CatalogRepository:
    """Read access to halls, vendors, service items and customers."""

    def __init__(self, db: Session):
        self.db = db

    def get_hall(self, hall_id: int) -> Hall | None:
        return self.db.get(Hall, hall_id)

    def get_vendor(self, vendor_id: int) -> Vendor | None:
        return self.db.get(Vendor, vendor_id)

    def get_service_item(self, service_item_id: int) -> ServiceItem | None:
        return self.db.get(ServiceItem, service_item_id)

    def get_customer(self, customer_id: int) -> Customer | None:
        stmt = (
            select(Customer)
            .where(Customer.id == customer_id)
            .options(selectinload(Customer.addresses))
        )
        return self.db.execute(stmt).scalar_one_or_none()
