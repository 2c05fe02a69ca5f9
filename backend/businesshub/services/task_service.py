# Overview: Service-layer operations for tasks and recurrence; encapsulates business logic and database work.

"""
Task Service

Recurring tasks are expanded eagerly: the parent row keeps the pattern and a
recurrence_end_date (start + 5 years) and one child row is written per
occurrence. Occurrence i is always computed from the parent's start date
(start + i steps) so month-end clamping never drifts:

    daily     start + i days
    weekly    start + 7i days
    custom-N  start + 7Ni days
    monthly   start + i months, day clamped to month end
    yearly    start + i years, Feb 29 falls back to Feb 28

Each child keeps the parent's start->end duration.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy import or_

from ..extensions import db
from ..models import Task, Business, User
from ..models.communications import TASK_STATUSES, TASK_PRIORITIES
from ..validation import ModelValidationPolicy, ValidationError, enforce_choice, enforce_date_range
from .tenant_service import require_entity_in_org, resolve_org_id
from businesshub.time_utils import utcnow, add_months, add_years, to_utc_z

logger = logging.getLogger(__name__)

# Widest look-ahead the notifications panel may ask for
MAX_NOTIFICATION_DAYS = 365


TASK_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "start_date", "end_date", "all_day",
        "recurring", "recurring_pattern", "business_id", "assignee_id",
        "status", "priority",
    },
    required_on_create={"title"},
)

RECURRENCE_YEARS = 5
EXTEND_WITHIN_DAYS = 90
EXTEND_YEARS = 2
EXTEND_YEARS_BY_PATTERN = {"custom-3": 4}
EXPIRY_WARNING_DAYS = 30

_CUSTOM_PATTERN = re.compile(r"^custom-(\d+)$")


def pattern_step(pattern: str):
    """
    Return a function (start, i) -> i-th occurrence for a pattern.

    Raises ValidationError for unknown patterns.
    """
    if pattern == "daily":
        return lambda start, i: start + timedelta(days=i)
    if pattern == "weekly":
        return lambda start, i: start + timedelta(weeks=i)
    if pattern == "monthly":
        return lambda start, i: add_months(start, i)
    if pattern == "yearly":
        return lambda start, i: add_years(start, i)

    match = _CUSTOM_PATTERN.match(pattern or "")
    if match and int(match.group(1)) >= 1:
        weeks = int(match.group(1))
        return lambda start, i: start + timedelta(weeks=weeks * i)

    raise ValidationError("recurring_pattern must be daily, weekly, monthly, yearly or custom-N")


def occurrences(start: datetime, pattern: str, *, until: datetime, after: datetime | None = None) -> list[datetime]:
    """Occurrence dates (excluding the start itself) up to and including `until`."""
    step = pattern_step(pattern)
    dates = []
    i = 1
    while True:
        current = step(start, i)
        if current > until:
            break
        if after is None or current > after:
            dates.append(current)
        i += 1
    return dates


def get_task(task_id: int, org_id: int) -> Task:
    return require_entity_in_org(Task, task_id, org_id, "Task")


def _check_refs(patch: dict, org_id: int) -> None:
    enforce_choice(patch, "status", TASK_STATUSES)
    enforce_choice(patch, "priority", TASK_PRIORITIES)
    if patch.get("business_id") is not None:
        require_entity_in_org(Business, patch["business_id"], org_id, "Business")
    if patch.get("assignee_id") is not None:
        require_entity_in_org(User, patch["assignee_id"], org_id, "User")


def _spawn_instances(parent: Task, dates: list[datetime], *, status: str) -> list[Task]:
    duration = None
    if parent.start_date is not None and parent.end_date is not None:
        duration = parent.end_date - parent.start_date

    children = []
    for start in dates:
        child = Task(
            org_id=parent.org_id,
            title=parent.title,
            description=parent.description,
            start_date=start,
            end_date=start + duration if duration is not None else None,
            all_day=parent.all_day,
            recurring=False,
            recurring_pattern=None,
            parent_task_id=parent.id,
            business_id=parent.business_id,
            assignee_id=parent.assignee_id,
            created_by_id=parent.created_by_id,
            status=status,
            priority=parent.priority,
        )
        db.session.add(child)
        children.append(child)
    return children


def _default_window(now: datetime) -> tuple[datetime, datetime]:
    """First day of the month three months back to the last moment of the month two years ahead."""
    start = add_months(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), -3)
    end = add_months(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), 25) - timedelta(microseconds=1)
    return start, end


def list_tasks(
    *,
    org_id: int | None = None,
    assignee_id: int | None = None,
    business_id: int | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[dict]:
    """
    Tasks ordered by start date.

    Without a range the window is three months back to two years ahead;
    undated tasks are included only then.
    """
    org_id = resolve_org_id(org_id)

    query = db.session.query(Task).filter(Task.org_id == org_id)
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)
    if business_id is not None:
        query = query.filter(Task.business_id == business_id)
    if status:
        query = query.filter(Task.status == status)

    if start_date is None and end_date is None:
        window_start, window_end = _default_window(utcnow())
        query = query.filter(or_(
            Task.start_date.is_(None),
            Task.start_date.between(window_start, window_end),
        ))
    else:
        if start_date is not None and end_date is None:
            end_date = add_years(start_date, 2)
        if start_date is not None:
            query = query.filter(Task.start_date >= start_date)
        query = query.filter(Task.start_date <= end_date)

    tasks = query.order_by(Task.start_date.asc(), Task.id.asc()).all()
    return [t.to_dict() for t in tasks]


def list_business_tasks(*, business_id: int, org_id: int | None = None) -> list[dict]:
    """Every task of one business, no date window."""
    org_id = resolve_org_id(org_id)
    business = require_entity_in_org(Business, business_id, org_id, "Business")
    tasks = (
        db.session.query(Task)
        .filter(Task.org_id == org_id, Task.business_id == business.id)
        .order_by(Task.start_date.asc(), Task.id.asc())
        .all()
    )
    return [t.to_dict() for t in tasks]


def create_task(*, patch: dict, org_id: int | None = None, user_id: int | None = None) -> dict:
    """
    Create a task; a recurring one with a pattern and start date also gets
    its occurrence rows.

    Returns {"task": parent, "instances": [...]}.
    """
    org_id = resolve_org_id(org_id)
    _check_refs(patch, org_id)
    enforce_date_range(patch.get("start_date"), patch.get("end_date"), start_label="start_date", end_label="end_date")

    recurring = bool(patch.get("recurring"))
    pattern = patch.get("recurring_pattern")
    if recurring and pattern:
        pattern_step(pattern)

    task = Task(org_id=org_id, created_by_id=user_id)
    for k, v in patch.items():
        setattr(task, k, v)
    task.recurring = recurring
    task.status = task.status or "pending"
    task.priority = task.priority or "medium"
    db.session.add(task)
    db.session.flush()

    children = []
    if recurring and pattern and task.start_date is not None:
        task.recurrence_end_date = add_years(task.start_date, RECURRENCE_YEARS)
        dates = occurrences(task.start_date, pattern, until=task.recurrence_end_date)
        children = _spawn_instances(task, dates, status=task.status)
        logger.info("Created recurring task %s (%s) with %s instances", task.id, pattern, len(children))

    db.session.commit()
    return {
        "task": task.to_dict(),
        "instances": [c.to_dict() for c in children],
    }


def update_task(*, task_id: int, patch: dict, org_id: int | None = None) -> dict:
    """Edits one row; occurrences of a series are not regenerated."""
    org_id = resolve_org_id(org_id)
    task = get_task(task_id, org_id)
    _check_refs(patch, org_id)
    if patch.get("recurring_pattern"):
        pattern_step(patch["recurring_pattern"])
    enforce_date_range(
        patch.get("start_date", task.start_date),
        patch.get("end_date", task.end_date),
        start_label="start_date",
        end_label="end_date",
    )

    for k, v in patch.items():
        setattr(task, k, v)

    db.session.commit()
    return task.to_dict()


def delete_task(*, task_id: int, org_id: int | None = None) -> bool:
    """Delete one row. Occurrences of a deleted parent stay as standalone tasks."""
    org_id = resolve_org_id(org_id)
    task = get_task(task_id, org_id)

    db.session.query(Task).filter(Task.parent_task_id == task.id).update(
        {"parent_task_id": None}, synchronize_session="fetch"
    )
    db.session.delete(task)
    db.session.commit()
    return True


def delete_series(*, task_id: int, org_id: int | None = None) -> dict:
    """Delete the whole chain (parent and every occurrence) given any member."""
    org_id = resolve_org_id(org_id)
    task = get_task(task_id, org_id)

    root = task.parent_task if task.parent_task_id else task
    children = db.session.query(Task).filter(Task.parent_task_id == root.id).all()

    deleted_ids = [c.id for c in children] + [root.id]
    for child in children:
        db.session.delete(child)
    db.session.flush()
    db.session.delete(root)
    db.session.commit()

    logger.info("Deleted task series %s (%s rows)", root.id, len(deleted_ids))
    return {
        "message": f"Deleted {len(deleted_ids)} tasks",
        "deleted_count": len(deleted_ids),
        "task_ids": deleted_ids,
    }


def extend_recurring(
    *,
    org_id: int | None = None,
    within_days: int = EXTEND_WITHIN_DAYS,
    now: datetime | None = None,
) -> dict:
    """
    Push out recurring parents whose series ends within `within_days`.

    The end moves by two years (four for custom-3) and the missing
    occurrences are written as pending tasks. org_id=None processes every
    organization (CLI use).
    """
    now = now or utcnow()
    horizon = now + timedelta(days=within_days)

    query = db.session.query(Task).filter(
        Task.recurring.is_(True),
        Task.parent_task_id.is_(None),
        Task.recurrence_end_date.isnot(None),
        Task.recurrence_end_date <= horizon,
        Task.start_date.isnot(None),
    )
    if org_id is not None:
        query = query.filter(Task.org_id == org_id)

    extended = []
    for parent in query.all():
        if not parent.recurring_pattern:
            continue
        try:
            pattern_step(parent.recurring_pattern)
        except ValidationError:
            logger.warning("Skipping task %s with unknown pattern %r", parent.id, parent.recurring_pattern)
            continue

        old_end = parent.recurrence_end_date
        years = EXTEND_YEARS_BY_PATTERN.get(parent.recurring_pattern, EXTEND_YEARS)
        new_end = add_years(old_end, years)

        dates = occurrences(parent.start_date, parent.recurring_pattern, until=new_end, after=old_end)
        children = _spawn_instances(parent, dates, status="pending")
        parent.recurrence_end_date = new_end

        extended.append({
            "task_id": parent.id,
            "title": parent.title,
            "recurrence_end_date": new_end,
            "instances_created": len(children),
        })

    db.session.commit()
    logger.info("Extended %s recurring tasks", len(extended))

    for row in extended:
        row["recurrence_end_date"] = to_utc_z(row["recurrence_end_date"])
    return {"message": f"Extended {len(extended)} recurring tasks", "extended": extended}


def get_notifications(*, org_id: int | None = None, days_ahead: int = 7, now: datetime | None = None) -> dict:
    """
    upcoming: pending parent tasks starting within days_ahead
    expiring: recurring parents whose series ends within 30 days
    """
    org_id = resolve_org_id(org_id)
    if days_ahead < 0:
        raise ValidationError("days_ahead must be >= 0")
    if days_ahead > MAX_NOTIFICATION_DAYS:
        raise ValidationError(f"days_ahead cannot exceed {MAX_NOTIFICATION_DAYS}")

    now = now or utcnow()
    notification_date = now + timedelta(days=days_ahead)

    upcoming = (
        db.session.query(Task)
        .filter(
            Task.org_id == org_id,
            Task.parent_task_id.is_(None),
            Task.status == "pending",
            Task.start_date >= now,
            Task.start_date <= notification_date,
        )
        .order_by(Task.start_date.asc(), Task.id.asc())
        .all()
    )

    expiring = (
        db.session.query(Task)
        .filter(
            Task.org_id == org_id,
            Task.parent_task_id.is_(None),
            Task.recurring.is_(True),
            Task.recurrence_end_date >= now,
            Task.recurrence_end_date <= now + timedelta(days=EXPIRY_WARNING_DAYS),
        )
        .order_by(Task.recurrence_end_date.asc(), Task.id.asc())
        .all()
    )

    return {
        "upcoming_tasks": [t.to_dict() for t in upcoming],
        "expiring_tasks": [t.to_dict() for t in expiring],
        "notification_date": to_utc_z(notification_date),
    }
