from __future__ import annotations

import calendar
from collections.abc import Callable
from datetime import date, timedelta
from typing import assert_never

from aws_lambda_powertools import Logger

from roombook import config
from roombook.blackout import BlackoutPolicy
from roombook.clock import to_minutes
from roombook.models import (
    Booking,
    BookingDraft,
    Custom,
    Daily,
    ExpansionResult,
    Monthly,
    NoRepeat,
    RecurrenceRule,
    RepeatingRule,
    SkipReason,
    SkipRecord,
    Weekly,
)

logger = Logger()

# (room_id, booking_date, start_minute, end_minute, exclude_id) -> conflicting booking ids
ConflictChecker = Callable[[str, date, int, int, str | None], list[str]]


def add_month_clamped(current: date, day_of_month: int) -> date:
    year, month = (current.year + 1, 1) if current.month == 12 else (current.year, current.month + 1)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))


def next_occurrence(current: date, seed_date: date, rule: RepeatingRule) -> date:
    if isinstance(rule, Daily | Custom):
        return current + timedelta(days=1)
    if isinstance(rule, Weekly):
        return current + timedelta(days=7)
    if isinstance(rule, Monthly):
        # Clamp against the seed's day so Jan 31 -> Feb 28 -> Mar 31
        return add_month_clamped(current, seed_date.day)
    assert_never(rule)


def expand(
    seed: Booking,
    rule: RecurrenceRule,
    conflict_checker: ConflictChecker,
    blackout: BlackoutPolicy | None = None,
    max_iterations: int | None = None,
) -> ExpansionResult:
    # The seed's own date counts as the first iteration but is never emitted
    result = ExpansionResult()
    if isinstance(rule, NoRepeat):
        return result

    policy = blackout or BlackoutPolicy.from_config()
    cap = config.RECURRENCE_MAX_ITERATIONS if max_iterations is None else max_iterations
    start = to_minutes(seed.start_time)
    end = to_minutes(seed.end_time)
    applies_blackout = isinstance(rule, Daily | Custom)

    current = seed.booking_date
    iterations = 0
    while iterations < cap and (rule.until is None or current <= rule.until):
        if current != seed.booking_date:
            _evaluate(seed, current, start, end, policy if applies_blackout else None, conflict_checker, result)
        current = next_occurrence(current, seed.booking_date, rule)
        iterations += 1

    if rule.until is None or current <= rule.until:
        logger.warning(
            "Recurrence expansion stopped at iteration cap",
            extra={"booking_id": seed.booking_id, "cap": cap, "last_date": current.isoformat()},
        )

    logger.info(
        "Expanded recurring booking",
        extra={
            "booking_id": seed.booking_id,
            "repeat_type": rule.kind,
            "occurrences": len(result.occurrences),
            "skipped": len(result.skipped),
        },
    )
    return result


def _evaluate(
    seed: Booking,
    day: date,
    start: int,
    end: int,
    policy: BlackoutPolicy | None,
    conflict_checker: ConflictChecker,
    result: ExpansionResult,
) -> None:
    if policy is not None:
        reason = policy.reason_for(day)
        if reason is not None:
            logger.debug("Skipping blacked out date", extra={"date": day.isoformat(), "reason": reason})
            result.skipped.append(SkipRecord(booking_date=day, reason=SkipReason.BLACKED_OUT, detail=reason))
            return

    try:
        conflicts = conflict_checker(seed.room_id, day, start, end, seed.booking_id)
    except Exception as exc:  # noqa: BLE001
        # Reported per date; kept distinct from a real scheduling conflict
        logger.exception("Conflict check failed", extra={"room_id": seed.room_id, "date": day.isoformat()})
        result.skipped.append(
            SkipRecord(booking_date=day, reason=SkipReason.CHECK_FAILED, detail=f"Conflict check error: {exc}")
        )
        return

    if conflicts:
        result.skipped.append(
            SkipRecord(
                booking_date=day,
                reason=SkipReason.CONFLICT,
                detail=f"Time slot conflicts with existing booking(s): {', '.join(conflicts)}",
                conflicting_ids=conflicts,
            )
        )
        return

    result.occurrences.append(
        BookingDraft(
            room_id=seed.room_id,
            user_id=seed.user_id,
            title=seed.title,
            booking_date=day,
            start_time=seed.start_time,
            end_time=seed.end_time,
            remarks=seed.remarks,
            repeat_type="no_repeat",
            is_recurring=True,
            parent_booking_id=seed.booking_id,
        )
    )
