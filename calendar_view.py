import calendar
import hashlib
from datetime import date, datetime, timedelta

from models import STATUSES

STATUS_LABELS = {'backlog': 'Backlog', 'in_progress': 'In Progress', 'done': 'Done'}
PRIORITY_LABELS = {'low': 'Low', 'med': 'Medium', 'high': 'High'}

PALETTE = (
    '#2563eb', '#16a34a', '#dc2626', '#9333ea', '#ea580c',
    '#0891b2', '#ca8a04', '#db2777', '#4f46e5', '#65a30d',
)


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_week(day):
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_days(day):
    first = start_of_week(_as_date(day))
    return [first + timedelta(days=i) for i in range(7)]


def month_weeks(day):
    day = _as_date(day)
    first = day.replace(day=1)
    last = day.replace(day=calendar.monthrange(day.year, day.month)[1])
    weeks = []
    cursor = start_of_week(first)
    while cursor <= last:
        weeks.append([cursor + timedelta(days=i) for i in range(7)])
        cursor += timedelta(days=7)
    return weeks


def shift(day, view, direction):
    """Move one week or one month forward (direction=1) or back (-1)."""
    day = _as_date(day)
    if view == 'week':
        return day + timedelta(weeks=direction)
    month_index = day.year * 12 + (day.month - 1) + direction
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def covers(task, day):
    start, due = _as_date(task.start_at), _as_date(task.due_at)
    if start and due:
        return start <= day <= due
    if due:
        return due == day
    if start:
        return start == day
    return False


def tasks_for_date(tasks, day):
    day = _as_date(day)
    return [task for task in tasks if covers(task, day)]


def board_columns(tasks):
    columns = {status: [] for status in STATUSES}
    for task in tasks:
        columns[task.status].append(task)
    for column in columns.values():
        column.sort(key=lambda t: (t.order, t.id or 0))
    return columns


def color_for(key):
    digest = hashlib.md5(str(key).encode('utf-8')).digest()
    return PALETTE[int.from_bytes(digest[:4], 'big') % len(PALETTE)]


def legend(tasks):
    tags = sorted({tag for task in tasks for tag in (task.tags or [])})
    return [(tag, color_for(tag)) for tag in tags]


def progress_label(task):
    if task.items:
        return f'{task.checked_count}/{len(task.items)} completed'
    return f'{task.progress}%'


def parse_day(raw, default=None):
    if raw:
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
    return default or date.today()
