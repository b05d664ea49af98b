"""
Ledger Kernel — Import Normalization + Share-Link Codec

Anything that enters a chart from outside (saved documents, share links)
passes through normalize_positions before its derived fields are trusted.

Share-link format:
    <base_url>?data=<base64(UTF-8 JSON array of position dicts)>
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from typing import Any, Iterable, List
from urllib.parse import urlencode

from .constants import C_SUITE_PATTERN, SHARE_QUERY_PARAM
from .domain_types import (
    BILLABLE, NON_BILLABLE, ROLE_TYPES, GlobalSettings, Position, coerce_number,
)
from .financials import compute_with_settings

logger = logging.getLogger(__name__)


class ShareLinkError(ValueError):
    """Raised when share-link data cannot be decoded into positions."""


def new_position_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def infer_role_type(role: str) -> str:
    """C-suite titles default to non-billable, everyone else to billable."""
    return NON_BILLABLE if C_SUITE_PATTERN.match(role or "") else BILLABLE


def normalize_positions(
    raw_positions: Any, settings: GlobalSettings,
) -> List[Position]:
    """
    Turn untrusted position dicts into consistent Positions.

      - roleType missing or unknown -> inferred from the role name
      - non-billable -> rate and utilization forced to 0
      - numeric fields coerced (invalid -> 0)
      - missing or duplicate ids -> freshly generated
      - financials recomputed under *settings*; stored ones are ignored

    Raises ValueError if the payload is not a list of objects with a role.
    """
    if not isinstance(raw_positions, list):
        raise ValueError(
            f"Expected a list of positions, got {type(raw_positions).__name__}"
        )

    positions: List[Position] = []
    seen_ids = set()

    for i, raw in enumerate(raw_positions):
        if not isinstance(raw, dict) or "role" not in raw:
            raise ValueError(f"Position at index {i} is not an object with a role")

        role = str(raw.get("role") or "")
        role_type = raw.get("roleType")
        if role_type not in ROLE_TYPES:
            role_type = infer_role_type(role)

        position_id = raw.get("id")
        if not position_id or not isinstance(position_id, str) or position_id in seen_ids:
            if position_id:
                logger.warning("Duplicate position id %r at index %d, regenerating", position_id, i)
            position_id = new_position_id()
        seen_ids.add(position_id)

        rate = coerce_number(raw.get("rate"))
        utilization = coerce_number(raw.get("utilization"))
        if role_type == NON_BILLABLE:
            rate = 0.0
            utilization = 0.0

        position = Position(
            id=position_id,
            role=role,
            manager_id=raw.get("managerId") or None,
            role_type=role_type,
            salary=coerce_number(raw.get("salary")),
            rate=rate,
            utilization=utilization,
        )
        position.financials = compute_with_settings(position, settings)
        positions.append(position)

    return positions


# ---------------------------------------------------------------------------
# Share links
# ---------------------------------------------------------------------------

def encode_share_data(positions: Iterable[Position]) -> str:
    """Base64 of the positions' JSON wire shape."""
    payload = json.dumps([p.to_dict() for p in positions], ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def build_share_link(base_url: str, positions: Iterable[Position]) -> str:
    query = urlencode({SHARE_QUERY_PARAM: encode_share_data(positions)})
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


def decode_share_data(encoded: str, settings: GlobalSettings) -> List[Position]:
    """
    Decode a share-link ``data`` value into normalized positions.

    Raises ShareLinkError on bad base64, bad JSON or a bad payload shape.
    """
    # Query-string parsing may have turned '+' into ' '
    cleaned = (encoded or "").strip().replace(" ", "+")
    if not cleaned:
        raise ShareLinkError("Share data is empty")
    try:
        decoded = base64.b64decode(cleaned, validate=True).decode("utf-8")
        raw = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ShareLinkError(f"Share data is not valid base64 JSON: {exc}") from exc

    try:
        return normalize_positions(raw, settings)
    except ValueError as exc:
        raise ShareLinkError(str(exc)) from exc
