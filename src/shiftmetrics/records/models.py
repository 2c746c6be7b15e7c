"""Pydantic models describing shift and activity rows read from the store."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator

__all__ = ["ShiftType", "Shift", "ActivityRecord", "ShiftWithActivities"]

SubjectId = int
ShiftId = int

_DAY_TOKENS = {"DS", "D", "DAY", "DAYS", "DAY SHIFT"}
_NIGHT_TOKENS = {"NS", "N", "NIGHT", "NIGHTS", "NIGHT SHIFT"}


class ShiftType(str, Enum):
    DAY = "DS"
    NIGHT = "NS"


def _load_json_object(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {}
    return value


class Shift(BaseModel):
    """One worked shift for one subject.

    Attributes
    ----------
    id:
        Store identifier; activity records reference it through ``shift_id``.
    date:
        Calendar day the shift is booked against (not the computation date).
    shift_type:
        ``DS``/``NS`` tag. Unrecognised tags become ``None`` and are left out of the
        day/night comparison.
    subject_id:
        Owning subject (user) id.
    totals:
        Stored aggregate ``{activity: {sub_activity: {field: value}}}`` kept by the
        data-entry layer. Only used by the stored-totals reduction path. JSON text is
        accepted; anything that is not an object becomes ``{}``.
    """

    id: ShiftId
    date: dt.date
    shift_type: ShiftType | None = None
    subject_id: SubjectId
    totals: dict[str, Any] = {}

    @field_validator("shift_type", mode="before")
    @classmethod
    def _normalise_shift_type(cls, value: Any) -> ShiftType | None:
        if value is None or isinstance(value, ShiftType):
            return value
        token = " ".join(str(value).split()).upper()
        if token in _DAY_TOKENS:
            return ShiftType.DAY
        if token in _NIGHT_TOKENS:
            return ShiftType.NIGHT
        return None

    @field_validator("totals", mode="before")
    @classmethod
    def _coerce_totals(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        value = _load_json_object(value)
        return dict(value) if isinstance(value, dict) else {}


class ActivityRecord(BaseModel):
    """One logged activity within a shift.

    ``values`` is the free-form field map captured by the form layer. Keys and casing
    vary between form revisions; the activity decoders resolve aliases.
    """

    shift_id: ShiftId
    activity: str = ""
    sub_activity: str = ""
    values: dict[str, Any] = {}
    loads: list[dict[str, Any]] | None = None
    location: str | None = None

    @field_validator("activity", "sub_activity", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> dict[str, Any]:
        value = _load_json_object(value)
        return dict(value) if isinstance(value, dict) else {}

    @field_validator("loads", mode="before")
    @classmethod
    def _coerce_loads(cls, value: Any) -> list[dict[str, Any]] | None:
        value = _load_json_object(value) if isinstance(value, (str, bytes)) else value
        if not isinstance(value, list):
            return None
        return [dict(item) for item in value if isinstance(item, dict)]

    @field_validator("location", mode="before")
    @classmethod
    def _coerce_location(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @classmethod
    def from_payload(
        cls,
        shift_id: ShiftId,
        activity: str | None,
        sub_activity: str | None,
        payload: Any,
    ) -> ActivityRecord:
        """Build a record from the stored ``payload_json`` envelope.

        The envelope is ``{"values": {...}, "loads": [...], "location": ...}``; older rows
        may also carry ``activity``/``sub`` inside the payload. Unparsable payloads yield
        an empty field map.
        """

        data = _load_json_object(payload)
        if not isinstance(data, dict):
            data = {}
        values = data.get("values")
        if not isinstance(values, dict):
            values = {}
        return cls(
            shift_id=shift_id,
            activity=activity or data.get("activity") or "",
            sub_activity=sub_activity
            or data.get("sub_activity")
            or data.get("sub")
            or data.get("subActivity")
            or "",
            values=values,
            loads=data.get("loads"),
            location=data.get("location") or data.get("Location"),
        )


@dataclass(slots=True)
class ShiftWithActivities:
    """A shift row paired with its activity records (self time-series output)."""

    shift: Shift
    activities: list[ActivityRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.shift.id,
            "date": self.shift.date.isoformat(),
            "dn": self.shift.shift_type.value if self.shift.shift_type else None,
            "totals": self.shift.totals,
            "activities": [
                record.model_dump(exclude={"shift_id"}, exclude_none=True)
                for record in self.activities
            ],
        }
