"""
Ledger Kernel — Canonical Hashing

Deterministic canonical serialization + SHA-256 hashing of a chart.

Rules:
  - Positions sorted by id
  - Input fields only; derived fields follow from inputs + settings
  - Settings fields in fixed order
  - Numbers as floats, so 30 and 30.0 hash alike
  - UTF-8 JSON, no whitespace
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Sequence

from .domain_types import GlobalSettings, Position


def canonical_serialize(
    positions: Sequence[Position], settings: GlobalSettings,
) -> bytes:
    obj = _build_canonical_dict(positions, settings)
    return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=False).encode("utf-8")


def canonical_hash(positions: Sequence[Position], settings: GlobalSettings) -> str:
    """SHA-256 of canonical serialization. Lowercase hex string."""
    return hashlib.sha256(canonical_serialize(positions, settings)).hexdigest()


def _build_canonical_dict(
    positions: Sequence[Position], settings: GlobalSettings,
) -> Dict[str, Any]:
    return {
        "ledger_version": 1,
        "positions": [
            {
                "id": p.id,
                "role": p.role,
                "manager_id": p.manager_id,
                "role_type": p.role_type,
                "salary": float(p.salary),
                "rate": float(p.rate),
                "utilization": float(p.utilization),
            }
            for p in sorted(positions, key=lambda p: p.id)
        ],
        "settings": {
            "benefits_percent": float(settings.benefits_percent),
            "overhead_percent": float(settings.overhead_percent),
            "work_week_hours": float(settings.work_week_hours),
        },
    }
