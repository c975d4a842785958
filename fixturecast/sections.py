"""
Display sections: the rolling fixture windows shown on the dashboard.

Two section types alternate, both cut over at SECTION_CUTOVER_HOUR local time:
- SatMon: Saturday 10:00 -> Tuesday 10:00 (dates Sat, Sun, Mon)
- TueFri: Tuesday 10:00 -> Saturday 10:00 (dates Tue, Wed, Thu, Fri)

Section IDs look like "2025-W15-SatMon". The week number is the ISO week of
the section's first day, so a Tuesday-morning query still resolves to the
weekend it belongs to.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from fixturecast.config import get_settings

SAT_MON = "SatMon"
TUE_FRI = "TueFri"

# datetime.weekday() values
MONDAY = 0
TUESDAY = 1
SATURDAY = 5
SUNDAY = 6

SECTION_LENGTH_DAYS = {SAT_MON: 3, TUE_FRI: 4}
SECTION_ANCHOR_WEEKDAY = {SAT_MON: SATURDAY, TUE_FRI: TUESDAY}


@dataclass(frozen=True)
class DateRange:
    """One display section resolved for a reference instant."""

    dates: list[str]  # YYYY-MM-DD, local calendar days, first to last
    section_id: str
    start_date: datetime  # Local, at the cutover hour
    end_date: datetime  # Local, at the cutover hour of the last day
    section_type: str

    @property
    def is_weekend(self) -> bool:
        return self.section_type == SAT_MON


def local_timezone(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or get_settings().LOCAL_TIMEZONE)


def to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to local time. Naive datetimes are treated as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz)


def _in_weekend_window(weekday: int, hour: int, cutover_hour: int) -> bool:
    if weekday == SATURDAY:
        return hour >= cutover_hour
    if weekday in (SUNDAY, MONDAY):
        return True
    if weekday == TUESDAY:
        return hour < cutover_hour
    return False


def build_section_id(anchor: date, section_type: str) -> str:
    """Section ID from the section's first day."""
    iso_week = anchor.isocalendar()[1]
    return f"{anchor.year}-W{iso_week:02d}-{section_type}"


def get_date_range(
    reference: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    cutover_hour: Optional[int] = None,
) -> DateRange:
    """
    Resolve the display section containing a reference instant.

    Args:
        reference: Instant to resolve (default: now). Naive values are UTC.
        tz_name: Override LOCAL_TIMEZONE.
        cutover_hour: Override SECTION_CUTOVER_HOUR.

    Returns:
        DateRange with 3 dates (SatMon) or 4 dates (TueFri).
    """
    settings = get_settings()
    tz = local_timezone(tz_name)
    if cutover_hour is None:
        cutover_hour = settings.SECTION_CUTOVER_HOUR
    if reference is None:
        reference = datetime.now(timezone.utc)

    local_now = to_local(reference, tz)
    weekday = local_now.weekday()

    if _in_weekend_window(weekday, local_now.hour, cutover_hour):
        section_type = SAT_MON
    else:
        section_type = TUE_FRI

    anchor_weekday = SECTION_ANCHOR_WEEKDAY[section_type]
    length = SECTION_LENGTH_DAYS[section_type]

    # Most recent anchor day whose cutover has already passed
    anchor = local_now.date() - timedelta(days=(weekday - anchor_weekday) % 7)
    last_day = anchor + timedelta(days=length - 1)

    return DateRange(
        dates=[(anchor + timedelta(days=i)).isoformat() for i in range(length)],
        section_id=build_section_id(anchor, section_type),
        start_date=datetime.combine(anchor, time(cutover_hour), tzinfo=tz),
        end_date=datetime.combine(last_day, time(cutover_hour), tzinfo=tz),
        section_type=section_type,
    )


def section_id_for(kickoff: datetime) -> str:
    """Section ID a fixture belongs to, judged by its kickoff."""
    return get_date_range(kickoff).section_id


def is_weekend_section(section_id: str) -> bool:
    return section_id.endswith(f"-{SAT_MON}")


def weekend_section_ids_to_keep(count: int, reference: Optional[datetime] = None) -> list[str]:
    """
    IDs of the `count` most recent SatMon sections, newest first.

    During a TueFri section the newest is the weekend that just ended.
    """
    current = get_date_range(reference)
    saturday = current.start_date.date()
    if not current.is_weekend:
        saturday -= timedelta(days=3)

    return [
        build_section_id(saturday - timedelta(weeks=i), SAT_MON)
        for i in range(count)
    ]


def day_label(kickoff: datetime, tz_name: Optional[str] = None) -> str:
    """Local day label for a kickoff, e.g. 'Saturday, Apr 12'."""
    local = to_local(kickoff, local_timezone(tz_name))
    return f"{local:%A}, {local:%b} {local.day}"
