from decimal import Decimal

from sqlalchemy import select

from src.infrastructure.db.models import (
    Customer,
    CustomerAddress,
    Hall,
    ServiceItem,
    Vendor,
)
from src.infrastructure.db.session import SessionLocal


def seed_halls(db) -> None:
    hall_defs = [
        {
            "name": "Al Noor Grand Hall",
            "city": "Riyadh",
            "address": "King Fahd Road, Al Olaya",
            "vat_number": "310123456700003",
            "weekday_rate": Decimal("12000.00"),
            "weekend_rate": Decimal("18000.00"),
        },
        {
            "name": "Corniche Pearl Ballroom",
            "city": "Jeddah",
            "address": "Corniche Road, Al Shati",
            "vat_number": None,
            "weekday_rate": Decimal("9500.00"),
            "weekend_rate": Decimal("14000.00"),
        },
    ]

    for item in hall_defs:
        existing = db.execute(
            select(Hall).where(Hall.name == item["name"])
        ).scalar_one_or_none()
        if existing:
            for field, value in item.items():
                setattr(existing, field, value)
            existing.is_active = True
            continue

        db.add(Hall(is_active=True, **item))


def seed_vendors(db) -> None:
    vendor_defs = [
        {
            "name": "Royal Catering Co.",
            "services": [
                ("Dinner Buffet (per 100 guests)", Decimal("7500.00")),
                ("Arabic Coffee Station", Decimal("1200.00")),
            ],
        },
        {
            "name": "Bloom Floral Design",
            "services": [
                ("Stage Flower Arrangement", Decimal("4200.00")),
                ("Table Centerpieces (set of 20)", Decimal("1800.00")),
            ],
        },
        {
            "name": "Lumen Photography",
            "services": [
                ("Event Photography Package", Decimal("3500.00")),
            ],
        },
    ]

    for item in vendor_defs:
        vendor = db.execute(
            select(Vendor).where(Vendor.name == item["name"])
        ).scalar_one_or_none()
        if vendor is None:
            vendor = Vendor(name=item["name"])
            db.add(vendor)
            db.flush()

        for service_name, price in item["services"]:
            existing = db.execute(
                select(ServiceItem)
                .where(ServiceItem.vendor_id == vendor.id)
                .where(ServiceItem.name == service_name)
            ).scalar_one_or_none()
            if existing:
                existing.price = price
                continue
            db.add(ServiceItem(vendor_id=vendor.id, name=service_name, price=price))


def seed_customers(db) -> None:
    customer_defs = [
        {
            "first_name": "Sara",
            "last_name": "Al-Qahtani",
            "email": "sara@example.com",
            "address": ("Prince Sultan Street", "Riyadh", "12211"),
        },
        {
            "first_name": "Omar",
            "last_name": "Haddad",
            "email": "omar@example.com",
            "address": None,
        },
    ]

    for item in customer_defs:
        existing = db.execute(
            select(Customer).where(Customer.email == item["email"])
        ).scalar_one_or_none()
        if existing:
            continue

        customer = Customer(
            first_name=item["first_name"],
            last_name=item["last_name"],
            email=item["email"],
        )
        if item["address"]:
            street, city, zip_code = item["address"]
            customer.addresses.append(CustomerAddress(street=street, city=city, zip_code=zip_code))
        db.add(customer)


def main() -> None:
    db = SessionLocal()
    try:
        seed_halls(db)
        seed_vendors(db)
        seed_customers(db)
        db.commit()
        print("Seed complete: 2 halls, 3 vendors with services, 2 customers added.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
