import logging

from sqlalchemy import and_, case, func, or_
from werkzeug.security import check_password_hash, generate_password_hash

from models import STATUSES, Task, User, db

logger = logging.getLogger(__name__)


class TaskNotFound(LookupError):
    pass


class ItemNotFound(TaskNotFound):
    pass


class EmailTaken(ValueError):
    pass


class DateRangeError(ValueError):
    pass


_STATUS_RANK = case({status: rank for rank, status in enumerate(STATUSES)}, value=Task.status)


def register_user(data):
    if User.query.filter_by(email=data.email).first():
        raise EmailTaken(data.email)
    user = User(email=data.email, name=data.name, password=generate_password_hash(data.password))
    db.session.add(user)
    db.session.commit()
    logger.info('Registered user %s', user.id)
    return user


def authenticate(email, password):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user and check_password_hash(user.password, password):
        return user
    return None


def list_tasks(user_id, query=None):
    q = Task.query.filter_by(user_id=user_id)

    if query is not None:
        if query.status:
            q = q.filter_by(status=query.status)
        if query.priority:
            q = q.filter_by(priority=query.priority)
        if query.q:
            q = q.filter(or_(
                Task.title.icontains(query.q, autoescape=True),
                Task.description.icontains(query.q, autoescape=True),
            ))
        if query.from_ or query.to:
            bounds = []
            if query.from_:
                bounds.append(or_(Task.start_at >= query.from_, Task.due_at >= query.from_))
            if query.to:
                bounds.append(or_(Task.start_at <= query.to, Task.due_at <= query.to))
            q = q.filter(and_(*bounds))

    return q.order_by(_STATUS_RANK, Task.order, Task.id).all()


def column_tasks(user_id, status):
    return (Task.query.filter_by(user_id=user_id, status=status)
            .order_by(Task.order, Task.id).all())


def next_order(user_id, status):
    current = (db.session.query(func.max(Task.order))
               .filter(Task.user_id == user_id, Task.status == status)
               .scalar())
    return 0 if current is None else current + 1


def get_task(user_id, task_id):
    return Task.query.filter_by(id=task_id, user_id=user_id).first()


def require_task(user_id, task_id):
    task = get_task(user_id, task_id)
    if task is None:
        raise TaskNotFound(task_id)
    return task


def _compact(user_id, status, exclude=None):
    for position, task in enumerate(t for t in column_tasks(user_id, status) if t is not exclude):
        task.order = position


def _apply_fields(task, data):
    for name in ('title', 'description', 'priority', 'tags', 'start_at', 'due_at', 'percent'):
        if name in data:
            setattr(task, name, data[name])
    if 'items' in data:
        task.set_items(data['items'])


def create_task(user_id, data):
    status = data.get('status') or 'backlog'
    task = Task(user_id=user_id, status=status, order=next_order(user_id, status), tags=[])
    _apply_fields(task, data)
    db.session.add(task)
    db.session.commit()
    logger.info('Created task %s for user %s in %s', task.id, user_id, status)
    return task


def update_task(task, data):
    start = data['start_at'] if 'start_at' in data else task.start_at
    due = data['due_at'] if 'due_at' in data else task.due_at
    if start and due and due < start:
        raise DateRangeError('dueAt must not be before startAt')

    old_status = task.status
    new_status = data.get('status') or old_status

    _apply_fields(task, data)

    if new_status != old_status:
        # Leave the old column gap-free before moving
        _compact(task.user_id, old_status, exclude=task)
        # Look up the tail before the task itself joins the column
        tail = next_order(task.user_id, new_status)
        task.status = new_status
        task.order = tail
    if data.get('order') is not None:
        _move_within(task, data['order'])

    db.session.commit()
    return task


def _move_within(task, position):
    others = [t for t in column_tasks(task.user_id, task.status) if t is not task]
    position = min(position, len(others))
    others.insert(position, task)
    for i, t in enumerate(others):
        t.order = i


def move_task(task, offset):
    """Shift a task up (negative) or down (positive) inside its column."""
    column = column_tasks(task.user_id, task.status)
    index = column.index(task)
    _move_within(task, max(0, index + offset))
    db.session.commit()
    return task


def reorder_column(user_id, status, ids):
    tasks = []
    for task_id in ids:
        tasks.append(require_task(user_id, task_id))

    sources = {t.status for t in tasks if t.status != status}
    listed = set(ids)
    rest = [t for t in column_tasks(user_id, status) if t.id not in listed]

    for position, task in enumerate(tasks + rest):
        task.status = status
        task.order = position
    db.session.flush()

    for source in sources:
        _compact(user_id, source)

    db.session.commit()
    return column_tasks(user_id, status)


def toggle_item(task, item_id, checked=None):
    for item in task.items:
        if item.id == item_id:
            item.checked = (not item.checked) if checked is None else checked
            db.session.commit()
            return task
    raise ItemNotFound(item_id)


def delete_task(task):
    task_id, user_id, status = task.id, task.user_id, task.status
    db.session.delete(task)
    db.session.flush()
    _compact(user_id, status)
    db.session.commit()
    logger.info('Deleted task %s for user %s', task_id, user_id)


def stats(user_id):
    tasks = Task.query.filter_by(user_id=user_id).all()
    counts = {status: 0 for status in STATUSES}
    for task in tasks:
        counts[task.status] += 1
    total = sum(t.progress for t in tasks)
    # Halves round up, as checklist progress does
    average = (2 * total + len(tasks)) // (2 * len(tasks)) if tasks else 0
    return {'counts': counts, 'total': len(tasks), 'averageProgress': average}
