from datetime import UTC, datetime, timedelta


def utcnow_naive():
    """Return current UTC timestamp as naive datetime for DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def parse_iso_datetime(raw_value):
    """Parse an ISO-8601 string into a naive UTC datetime, or None."""
    if isinstance(raw_value, datetime):
        parsed = raw_value
    else:
        raw = str(raw_value or '').strip()
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        return parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def isoformat_or_none(value):
    return value.isoformat() if value else None


def utc_day_window(now):
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def saturday_week_start(now):
    """Saturday 00:00 UTC on or before ``now``; arcade weeks run Saturday to Friday."""
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_since_saturday = (day_start.weekday() - 5) % 7
    return day_start - timedelta(days=days_since_saturday)


def utc_week_window(now):
    start = saturday_week_start(now)
    return start, start + timedelta(days=7)


def previous_week_start(now):
    """Start of the last fully completed Saturday-start week."""
    return saturday_week_start(now) - timedelta(days=7)
