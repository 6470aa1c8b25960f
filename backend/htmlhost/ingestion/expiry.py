import calendar
from datetime import datetime, timedelta


def add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    # 31 Aug + 6 months lands on the last day of February
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_expiry(duration: str | None, now: datetime) -> datetime | None:
    """Expiry timestamp for a duration option; None means permanent."""
    if duration == "permanent":
        return None
    if duration == "1day":
        return now + timedelta(days=1)
    if duration == "6months":
        return add_months(now, 6)
    # "30days" and anything unrecognised
    return now + timedelta(days=30)
