# src/config.py

import json
import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


DEFAULT_TAX_RATES = {
    "Riyadh": Decimal("0.15"),
    "Jeddah": Decimal("0.15"),
    "Dammam": Decimal("0.15"),
    "DEFAULT": Decimal("0.15"),
}


class PlatformIdentity(BaseModel):
    """Seller identity used when a hall carries no address or VAT number."""

    name: str = "HallApp Platform"
    vat_number: str = "300000000000003"
    cr_number: str = "1010000000"
    address: str = "Riyadh, Saudi Arabia"
    city: str = "Riyadh"
    postal_code: str = "12345"
    country_code: str = "SA"


class Settings(BaseModel):
    tax_rates: dict[str, Decimal] = Field(default_factory=lambda: dict(DEFAULT_TAX_RATES))
    currency: str = "SAR"
    platform: PlatformIdentity = Field(default_factory=PlatformIdentity)
    invoice_number_max_retries: int = 5
    status_transition_max_retries: int = 3
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None


def _tax_rates_from_env() -> dict[str, Decimal]:
    raw = os.getenv("TAX_RATES")
    if not raw:
        return dict(DEFAULT_TAX_RATES)

    rates = {region: Decimal(str(rate)) for region, rate in json.loads(raw).items()}
    # Unknown regions always need somewhere to fall back to.
    rates.setdefault("DEFAULT", DEFAULT_TAX_RATES["DEFAULT"])
    return rates


def load_settings() -> Settings:
    defaults = PlatformIdentity()
    platform = PlatformIdentity(
        name=os.getenv("PLATFORM_NAME", defaults.name),
        vat_number=os.getenv("PLATFORM_VAT_NUMBER", defaults.vat_number),
        cr_number=os.getenv("PLATFORM_CR_NUMBER", defaults.cr_number),
        address=os.getenv("PLATFORM_ADDRESS", defaults.address),
        city=os.getenv("PLATFORM_CITY", defaults.city),
        postal_code=os.getenv("PLATFORM_POSTAL_CODE", defaults.postal_code),
        country_code=os.getenv("PLATFORM_COUNTRY_CODE", defaults.country_code),
    )
    return Settings(
        tax_rates=_tax_rates_from_env(),
        currency=os.getenv("DEFAULT_CURRENCY", "SAR"),
        platform=platform,
        invoice_number_max_retries=int(os.getenv("INVOICE_NUMBER_MAX_RETRIES", "5")),
        status_transition_max_retries=int(os.getenv("STATUS_TRANSITION_MAX_RETRIES", "3")),
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
