# app/utils/datetime_utils.py
"""
Central helpers for consistent date/time handling across the project.

Purpose of this module:
1. Every timestamp written by the backend is timezone-aware UTC
2. Values stay compatible with Firestore and the SQL message store
3. ISO parsing and formatting go through one place
"""

import logging
from datetime import datetime, date, timezone, time, timedelta
from typing import Any, Optional, Union
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


class DateTimeUtils:
    """Centralised date/time utilities."""

    @staticmethod
    def now() -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        Parse an ISO-8601 string into a UTC datetime.

        Supported forms:
        - 2024-01-15T10:30:00Z
        - 2024-01-15T10:30:00+09:00
        - 2024-01-15T10:30:00.123456Z
        - 2024-01-15T10:30:00 (assumed UTC)
        """
        try:
            if not iso_string:
                raise ValueError("Cannot parse an empty string")

            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.error(f"Failed to parse ISO datetime: {iso_string} - {e}")
            raise ValueError(f"Invalid ISO datetime: {iso_string}")

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """Format a datetime as an ISO string with a 'Z' suffix."""
        try:
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            else:
                dt = dt.astimezone(timezone.utc)
            return dt.isoformat().replace('+00:00', 'Z')
        except Exception as e:
            logger.error(f"Failed to format datetime: {dt} - {e}")
            raise ValueError(f"Cannot convert to ISO string: {dt}")

    @staticmethod
    def expires_after(hours: Union[int, float], start: Optional[datetime] = None) -> datetime:
        """Return `start` (default: now) shifted forward by `hours`."""
        base = start or DateTimeUtils.now()
        return DateTimeUtils.ensure_utc(base) + timedelta(hours=hours)

    @staticmethod
    def is_expired(expires_at: Optional[datetime], reference: Optional[datetime] = None) -> bool:
        """True when `expires_at` lies at or before `reference` (default: now)."""
        if expires_at is None:
            return False
        reference = reference or DateTimeUtils.now()
        return DateTimeUtils.ensure_utc(expires_at) <= DateTimeUtils.ensure_utc(reference)

    @staticmethod
    def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
        """Attach UTC to naive datetimes and normalise aware ones to UTC. None passes through."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Convert date/time values so they can be stored in Firestore.

        Rules:
        - date -> datetime (00:00:00 UTC)
        - naive datetime -> aware datetime (UTC)
        - dicts and lists are converted recursively
        """
        if isinstance(obj, date) and not isinstance(obj, datetime):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)
        elif isinstance(obj, datetime):
            return DateTimeUtils.ensure_utc(obj)
        elif isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]
        return obj
