# src/domain/zatca.py
"""
Tamper-evidence fields for issued invoices.

The QR payload is the simplified ZATCA TLV scheme: five (tag, length,
UTF-8 value) records, concatenated and base64-encoded. The hash is a
SHA-256 over the pipe-joined identifying fields. Both are computed once,
from the frozen values, at generation time.
"""

import base64
import hashlib
from datetime import datetime, timezone
from decimal import Decimal

from src.domain.financials import format_amount

SELLER_NAME_TAG = 1
VAT_NUMBER_TAG = 2
TIMESTAMP_TAG = 3
TOTAL_WITH_VAT_TAG = 4
VAT_AMOUNT_TAG = 5

MAX_TLV_VALUE_BYTES = 255


def truncate_utf8(value: str, limit: int = MAX_TLV_VALUE_BYTES) -> str:
    """Cut ``value`` to at most ``limit`` UTF-8 bytes without splitting a character."""
    return value.encode("utf-8")[:limit].decode("utf-8", "ignore")


def encode_tlv(tag: int, value: str) -> bytes:
    if not 0 < tag < 256:
        raise ValueError(f"TLV tag out of range: {tag}")
    encoded = truncate_utf8(value).encode("utf-8")
    return bytes([tag, len(encoded)]) + encoded


def decode_tlv(payload: bytes) -> dict[int, str]:
    records = {}
    offset = 0
    while offset < len(payload):
        if offset + 2 > len(payload):
            raise ValueError(f"Truncated TLV header at offset {offset}")
        tag, length = payload[offset], payload[offset + 1]
        start = offset + 2
        if start + length > len(payload):
            raise ValueError(f"Truncated TLV value for tag {tag}")
        records[tag] = payload[start:start + length].decode("utf-8")
        offset = start + length
    return records


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def qr_timestamp(invoice_date: datetime) -> str:
    return _as_utc(invoice_date).strftime("%Y-%m-%dT%H:%M:%SZ")


def roundtrip_timestamp(invoice_date: datetime) -> str:
    return _as_utc(invoice_date).isoformat(timespec="microseconds")


def build_qr_payload(
    seller_name: str,
    vat_number: str,
    invoice_date: datetime,
    total_with_tax: Decimal,
    tax_amount: Decimal,
) -> str:
    tlv = b"".join(
        [
            encode_tlv(SELLER_NAME_TAG, seller_name),
            encode_tlv(VAT_NUMBER_TAG, vat_number),
            encode_tlv(TIMESTAMP_TAG, qr_timestamp(invoice_date)),
            encode_tlv(TOTAL_WITH_VAT_TAG, format_amount(total_with_tax)),
            encode_tlv(VAT_AMOUNT_TAG, format_amount(tax_amount)),
        ]
    )
    return base64.b64encode(tlv).decode("ascii")


def build_invoice_hash(
    invoice_number: str,
    vat_number: str,
    invoice_date: datetime,
    total_with_tax: Decimal,
    tax_amount: Decimal,
) -> str:
    data = "|".join(
        [
            invoice_number,
            vat_number,
            roundtrip_timestamp(invoice_date),
            format_amount(total_with_tax),
            format_amount(tax_amount),
        ]
    )
    digest = hashlib.sha256(data.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")
