"""Release catalog and feature models as seen by the period engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationInfo, field_validator

from release_sync.periods.calendar_math import date_only_key, parse_timestamp


def _timeframe_bound(timeframe: dict[str, Any] | None, key: str) -> Any:
    if not isinstance(timeframe, dict):
        return None
    return timeframe.get(f"{key}Date") or timeframe.get(key)


def _lenient_timestamp(value: Any, field_name: str) -> datetime | None:
    """Parse a timeframe bound; placeholders such as ``"none"`` read as undated."""
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        logger.bind(field=field_name, value=repr(value)).debug("Unparseable timeframe bound, treating as undated")
        return None


class ReleaseRecord(BaseModel):
    """A release in one release group, bounded by an inclusive day timeframe."""

    id: str
    name: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_bound(cls, value: Any, info: ValidationInfo) -> datetime | None:
        return _lenient_timestamp(value, info.field_name)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReleaseRecord:
        """Build from a store entity: ``{id, fields: {name, timeframe: {startDate, endDate}}}``.

        Flattened payloads (``name``/``timeframe`` at top level) are accepted too.
        """
        fields = data.get("fields") or {}
        timeframe = fields.get("timeframe") or data.get("timeframe")
        return cls(
            id=str(data["id"]),
            name=fields.get("name") or data.get("name"),
            start=_timeframe_bound(timeframe, "start"),
            end=_timeframe_bound(timeframe, "end"),
        )

    def day_keys(self) -> tuple[str, str] | None:
        """``(start, end)`` as date keys, or None if the release is undated."""
        if self.start is None or self.end is None:
            return None
        return date_only_key(self.start), date_only_key(self.end)


class Feature(BaseModel):
    """Read-only view of a feature; its timeframe end drives matching."""

    id: str
    name: str | None = None
    timeframe_end: datetime | None = None
    html_link: str | None = None

    @field_validator("timeframe_end", mode="before")
    @classmethod
    def parse_end(cls, value: Any) -> datetime | None:
        return _lenient_timestamp(value, "timeframe_end")

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Feature:
        fields = data.get("fields") or {}
        timeframe = fields.get("timeframe") or data.get("timeframe")
        links = data.get("links") or {}
        return cls(
            id=str(data["id"]),
            name=fields.get("name") or data.get("name"),
            timeframe_end=_timeframe_bound(timeframe, "end"),
            html_link=links.get("html") or links.get("self"),
        )
