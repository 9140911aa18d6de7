"""Before/after snapshots of pydantic records.

Callers take a snapshot when a record is loaded and compare it with the record
when it is written back, so that only changed fields are persisted or pushed
to the billing provider.
"""

from typing import Any, Iterable, Optional

from pydantic import BaseModel


def take_snapshot(record: BaseModel, fields: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """Capture the current values of ``fields`` (all fields when None)."""
    values = record.model_dump()
    if fields is None:
        return values
    return {field: values[field] for field in fields}


def snapshot_diff(
    before: dict[str, Any], record: BaseModel, fields: Optional[Iterable[str]] = None
) -> dict[str, Any]:
    """Return the fields of ``record`` whose values differ from ``before``.

    A field missing from ``before`` counts as changed.
    """
    after = take_snapshot(record, list(fields) if fields is not None else None)
    return {key: value for key, value in after.items() if key not in before or before[key] != value}
