from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi.encoders import jsonable_encoder

from portal.core.logging import get_audit_logger


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    if isinstance(old, dict) and isinstance(new, dict):
        keys = set(old.keys()) | set(new.keys())
        for key in keys:
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(diff_values(old.get(key), new.get(key), path))
        return changes
    if old != new:
        changes[prefix or "value"] = {"from": old, "to": new}
    return changes


def _build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    keys = list(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"{action}: {snippet}{suffix}"


def record_audit_event(
    action: str,
    *,
    actor_id: Any,
    resource_id: Any,
    old_value: Any = None,
    new_value: Any = None,
) -> dict[str, Any]:
    """Write one audit entry to the audit stream and return the payload that was logged."""
    old_serialized = serialize_for_audit(old_value) if old_value is not None else None
    new_serialized = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if old_serialized is not None or new_serialized is not None:
        changes = diff_values(old_serialized, new_serialized)
    entry = {
        "action": action,
        "actor_id": str(actor_id) if actor_id is not None else None,
        "resource_type": "applicant",
        "resource_id": str(resource_id),
        "summary": _build_summary(action, changes),
        "changes": changes or {},
    }
    get_audit_logger().info(entry["summary"], extra={"audit": entry})
    return entry
