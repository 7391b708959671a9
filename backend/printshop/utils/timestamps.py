from datetime import date, datetime, timezone

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(ISO_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp. Date-only values mean midnight UTC of that day."""
    if len(value) == 10:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_date_string(value: date) -> str:
    if isinstance(value, datetime):
        return to_iso(value)
    return value.strftime(DATE_FORMAT)
