"""Seed data shared by the dualstore tests."""

from __future__ import annotations

from typing import Any

STAMP = "2024-01-01T00:00:00.000Z"


def make_vehicles() -> dict[str, dict[str, Any]]:
    """Five vehicles, three of them run by OP1. v5 has no seat count."""
    return {
        "v1": {"name": "Bravo", "operator_id": "OP1", "seats": 45, "active": True, "updated_at": STAMP},
        "v2": {"name": "Alpha", "operator_id": "OP2", "seats": 16, "active": True, "updated_at": STAMP},
        "v3": {"name": "Delta", "operator_id": "OP1", "seats": 29, "active": False, "updated_at": STAMP},
        "v4": {"name": "Charlie", "operator_id": "OP1", "seats": 45, "active": True, "updated_at": STAMP},
        "v5": {"name": "Echo", "operator_id": "OP3", "active": True, "updated_at": STAMP},
    }


def make_drivers() -> dict[str, dict[str, Any]]:
    return {
        "d1": {"full_name": "Nguyen Van A", "isActive": True, "updated_at": STAMP},
        "d2": {"full_name": "Tran Thi B", "isActive": True, "updated_at": STAMP},
        "d3": {"full_name": "Le Van C", "isActive": True, "updated_at": STAMP},
    }


def make_dataset() -> dict[str, dict[str, dict[str, Any]]]:
    return {"vehicles": make_vehicles(), "drivers": make_drivers()}
