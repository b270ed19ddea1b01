"""Next-run computation - APScheduler CronTrigger with IANA timezones."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger

from schedbot.core.cron.clock import utcnow

DEFAULT_TIMEZONE = "UTC"

# Crontab weekday numbers (0 and 7 are Sunday) -> APScheduler names.
_WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
_APS_WEEKDAY_ORDER = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


class CronExpressionError(ValueError):
    """Cron expression or timezone cannot be turned into a trigger."""

    def __init__(self, cron_expression: str, timezone_name: str, reason: str):
        self.cron_expression = cron_expression
        self.timezone_name = timezone_name
        super().__init__(
            f"Invalid cron '{cron_expression}' (tz={timezone_name}): {reason}"
        )


def resolve_timezone(timezone_name: str | None) -> str:
    """Empty or missing timezone → UTC."""
    return timezone_name or DEFAULT_TIMEZONE


def _weekday_number(token: str) -> int:
    token = token.lower()
    if token in _WEEKDAY_NAMES:
        return _WEEKDAY_NAMES.index(token)
    if not token.isdigit() or int(token) > 7:
        raise ValueError(f"invalid day of week '{token}'")
    return int(token)


def translate_day_of_week(field: str) -> str:
    """Rewrite a crontab day-of-week field into APScheduler weekday names.

    APScheduler numbers weekdays from Monday = 0, crontab from Sunday = 0
    (7 is Sunday too). Numbers, names, ranges, lists and steps are expanded
    to an explicit list of names, e.g. ``1-5`` -> ``mon,tue,wed,thu,fri``.
    """
    if field in ("*", "?"):
        return "*"

    days: set[int] = set()
    for part in field.split(","):
        base, _, step_text = part.partition("/")
        if step_text and not step_text.isdigit():
            raise ValueError(f"invalid step '{step_text}'")
        step = int(step_text) if step_text else 1
        if step < 1:
            raise ValueError("step must be positive")

        if base in ("*", "?"):
            first, last = 0, 6
        elif "-" in base:
            start, _, end = base.partition("-")
            first, last = _weekday_number(start), _weekday_number(end)
            if first > last:
                raise ValueError(f"invalid range '{base}'")
        else:
            first = _weekday_number(base)
            last = 6 if step_text else first

        days.update(n % 7 for n in range(first, last + 1, step))

    names = {_WEEKDAY_NAMES[n] for n in days}
    return ",".join(name for name in _APS_WEEKDAY_ORDER if name in names)


def build_trigger(cron_expression: str, timezone_name: str | None) -> CronTrigger:
    """Build a fresh trigger; nothing is shared between schedules."""
    tz = resolve_timezone(timezone_name)
    try:
        fields = cron_expression.split()
        if len(fields) != 5:
            raise ValueError(f"wrong number of fields; got {len(fields)}, expected 5")
        minute, hour, day, month, day_of_week = fields
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=translate_day_of_week(day_of_week),
            timezone=tz,
        )
    except Exception as e:
        raise CronExpressionError(cron_expression, tz, str(e)) from e


def compute_next_run(
    cron_expression: str,
    timezone_name: str | None,
    now: datetime | None = None,
) -> datetime:
    """Next fire time strictly after ``now``, returned in UTC.

    Raises
    ------
    CronExpressionError
        Malformed expression, unknown timezone, or no future fire time.
    """
    trigger = build_trigger(cron_expression, timezone_name)
    now = now or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    # CronTrigger rounds up to the whole second; nudge so "now" itself never fires
    fire_time = trigger.get_next_fire_time(None, now + timedelta(microseconds=1))
    if fire_time is None:
        raise CronExpressionError(
            cron_expression, resolve_timezone(timezone_name), "no future fire time"
        )
    return fire_time.astimezone(timezone.utc)
