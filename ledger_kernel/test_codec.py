"""
Ledger Kernel — Import Normalization + Share-Link Tests

Run:  pytest ledger_kernel/test_codec.py
"""

from __future__ import annotations

import base64
import json
import os
import sys
from urllib.parse import parse_qs, urlparse

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ledger_kernel.codec import (
    ShareLinkError, build_share_link, decode_share_data, encode_share_data,
    infer_role_type, normalize_positions,
)
from ledger_kernel.domain_types import BILLABLE, NON_BILLABLE, GlobalSettings
from ledger_kernel.hashing import canonical_hash
from ledger_kernel.store import PositionStore

DEFAULTS = GlobalSettings()


def _encode(obj) -> str:
    return base64.b64encode(json.dumps(obj).encode("utf-8")).decode("ascii")


# ───────────────────────────────────────────────────────────────
# Normalization
# ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("role, expected", [
    ("CEO", NON_BILLABLE),
    ("coo", NON_BILLABLE),
    ("Chief Marketing Officer", NON_BILLABLE),
    ("CTO & Co-founder", NON_BILLABLE),
    ("Senior Developer", BILLABLE),
    ("Director of Client Services", BILLABLE),
    ("", BILLABLE),
])
def test_infer_role_type(role, expected):
    assert infer_role_type(role) == expected


def test_normalize_infers_and_zeroes_c_suite():
    [ceo, dev] = normalize_positions([
        {"id": "ceo", "role": "CEO", "salary": 250000, "rate": 500, "utilization": 20},
        {"id": "dev", "role": "Dev", "salary": 90000, "rate": 140, "utilization": 100,
         "managerId": "ceo"},
    ], DEFAULTS)

    assert ceo.role_type == NON_BILLABLE
    assert (ceo.rate, ceo.utilization) == (0.0, 0.0)
    assert ceo.financials.revenue == 0
    assert dev.role_type == BILLABLE
    assert dev.financials.revenue == pytest.approx(215600)


def test_normalize_keeps_explicit_role_type():
    [p] = normalize_positions([{"role": "CEO", "roleType": "billable", "rate": 300}], DEFAULTS)
    assert p.role_type == BILLABLE
    assert p.rate == 300


def test_normalize_explicit_non_billable_zeroes_rate():
    [p] = normalize_positions(
        [{"role": "Ops", "roleType": "nonBillable", "rate": 300, "utilization": 50}], DEFAULTS,
    )
    assert (p.rate, p.utilization) == (0.0, 0.0)


def test_normalize_ignores_stored_financials():
    [p] = normalize_positions(
        [{"id": "x", "role": "Dev", "salary": 100, "totalSalary": 1, "revenue": 1e9}], DEFAULTS,
    )
    assert p.financials.total_salary == pytest.approx(130)
    assert p.financials.revenue == 0


def test_normalize_coerces_bad_numbers():
    [p] = normalize_positions([{"role": "Dev", "salary": "lots", "rate": None}], DEFAULTS)
    assert (p.salary, p.rate) == (0.0, 0.0)


def test_normalize_regenerates_missing_and_duplicate_ids():
    positions = normalize_positions(
        [{"role": "A"}, {"id": "dup", "role": "B"}, {"id": "dup", "role": "C"}], DEFAULTS,
    )
    ids = [p.id for p in positions]
    assert len(set(ids)) == 3
    assert ids[1] == "dup"
    assert ids[0] and ids[2] != "dup"


@pytest.mark.parametrize("payload", [None, {"role": "x"}, "text", [1, 2], [{"salary": 1}]])
def test_normalize_rejects_bad_shape(payload):
    with pytest.raises(ValueError):
        normalize_positions(payload, DEFAULTS)


# ───────────────────────────────────────────────────────────────
# Share links
# ───────────────────────────────────────────────────────────────

def test_share_round_trip_preserves_chart():
    store = PositionStore()
    store.load_sample_data()
    shared = store.positions

    decoded = decode_share_data(encode_share_data(shared), DEFAULTS)
    assert canonical_hash(decoded, DEFAULTS) == canonical_hash(shared, DEFAULTS)
    assert decoded == shared


def test_share_link_puts_data_in_query():
    store = PositionStore()
    store.load_sample_data()
    link = build_share_link("https://ledger.example.com/", store.positions)

    parsed = urlparse(link)
    assert parsed.netloc == "ledger.example.com"
    [data] = parse_qs(parsed.query)["data"]
    assert len(decode_share_data(data, DEFAULTS)) == 13


def test_share_link_appends_to_existing_query():
    link = build_share_link("https://x.test/?view=tree", [])
    assert link.startswith("https://x.test/?view=tree&data=")


def test_share_data_survives_plus_to_space():
    store = PositionStore()
    store.load_sample_data()
    encoded = encode_share_data(store.positions)
    mangled = encoded.replace("+", " ")
    assert len(decode_share_data(mangled, DEFAULTS)) == 13


def test_share_data_unicode_roles():
    encoded = _encode([{"id": "a", "role": "Directrice générale"}])
    [p] = decode_share_data(encoded, DEFAULTS)
    assert p.role == "Directrice générale"


@pytest.mark.parametrize("encoded", [
    "",
    "!!!not base64!!!",
    base64.b64encode(b"not json").decode(),
    base64.b64encode(b"\xff\xfe").decode(),
])
def test_decode_rejects_garbage(encoded):
    with pytest.raises(ShareLinkError):
        decode_share_data(encoded, DEFAULTS)


def test_decode_rejects_wrong_shape():
    with pytest.raises(ShareLinkError):
        decode_share_data(_encode({"positions": []}), DEFAULTS)


def test_share_link_error_is_value_error():
    assert issubclass(ShareLinkError, ValueError)
