# tests/unit/test_zatca.py

import base64
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.domain.zatca import build_invoice_hash, build_qr_payload, decode_tlv, encode_tlv

INVOICE_DATE = datetime(2026, 3, 13, 18, 30, 5, 123456, tzinfo=timezone.utc)


def _hash(**overrides):
    fields = {
        "invoice_number": "INV-2026-000001",
        "vat_number": "310123456700003",
        "invoice_date": INVOICE_DATE,
        "total_with_tax": Decimal("1150.00"),
        "tax_amount": Decimal("150.00"),
    }
    fields.update(overrides)
    return build_invoice_hash(**fields)


def _qr(**overrides):
    fields = {
        "seller_name": "Al Noor Grand Hall",
        "vat_number": "310123456700003",
        "invoice_date": INVOICE_DATE,
        "total_with_tax": Decimal("1150.00"),
        "tax_amount": Decimal("150.00"),
    }
    fields.update(overrides)
    return build_qr_payload(**fields)


def test_tlv_record_layout():
    assert encode_tlv(1, "Hall") == b"\x01\x04Hall"


def test_tlv_counts_utf8_bytes():
    record = encode_tlv(1, "قاعة")
    assert record[1] == len("قاعة".encode("utf-8"))


def test_tlv_truncates_oversized_value():
    record = encode_tlv(1, "x" * 300)

    assert record[1] == 255
    assert decode_tlv(record) == {1: "x" * 255}


def test_tlv_truncation_keeps_whole_characters():
    name = "ق" * 128

    record = encode_tlv(1, name)

    assert record[1] == 254
    assert decode_tlv(record) == {1: "ق" * 127}


def test_tlv_rejects_out_of_range_tag():
    with pytest.raises(ValueError):
        encode_tlv(256, "Hall")


@pytest.mark.parametrize("payload", [b"\x01", b"\x01\x05Hal", b"\x01\x04Hall\x02"])
def test_truncated_tlv_is_rejected(payload):
    with pytest.raises(ValueError):
        decode_tlv(payload)


def test_qr_payload_carries_five_tags():
    payload = build_qr_payload(
        seller_name="Al Noor Grand Hall",
        vat_number="310123456700003",
        invoice_date=INVOICE_DATE,
        total_with_tax=Decimal("1150"),
        tax_amount=Decimal("150"),
    )

    records = decode_tlv(base64.b64decode(payload))

    assert records == {
        1: "Al Noor Grand Hall",
        2: "310123456700003",
        3: "2026-03-13T18:30:05Z",
        4: "1150.00",
        5: "150.00",
    }


def test_qr_timestamp_is_normalised_to_utc():
    riyadh = timezone(timedelta(hours=3))
    payload = build_qr_payload("Hall", "3001", INVOICE_DATE.astimezone(riyadh), Decimal("1"), Decimal("0"))

    assert decode_tlv(base64.b64decode(payload))[3] == "2026-03-13T18:30:05Z"


def test_qr_is_deterministic():
    assert _qr() == _qr()


@pytest.mark.parametrize(
    "override",
    [
        {"seller_name": "Al Noor Grand Hall 2"},
        {"vat_number": "310123456700004"},
        {"invoice_date": INVOICE_DATE + timedelta(seconds=1)},
        {"total_with_tax": Decimal("1150.01")},
        {"tax_amount": Decimal("150.01")},
    ],
)
def test_qr_changes_with_every_field(override):
    assert _qr(**override) != _qr()


def test_qr_accepts_long_arabic_seller_name():
    records = decode_tlv(base64.b64decode(_qr(seller_name="ق" * 128)))

    assert records[1] == "ق" * 127
    assert records[4] == "1150.00"


def test_hash_is_deterministic():
    assert _hash() == _hash()
    assert len(base64.b64decode(_hash())) == 32


@pytest.mark.parametrize(
    "override",
    [
        {"invoice_number": "INV-2026-000002"},
        {"vat_number": "310123456700004"},
        {"invoice_date": INVOICE_DATE + timedelta(microseconds=1)},
        {"total_with_tax": Decimal("1150.01")},
        {"tax_amount": Decimal("150.01")},
    ],
)
def test_hash_changes_with_every_field(override):
    assert _hash(**override) != _hash()


def test_naive_dates_are_treated_as_utc():
    assert _hash(invoice_date=INVOICE_DATE.replace(tzinfo=None)) == _hash()
