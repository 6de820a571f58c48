from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates
from datetime import datetime


db = SQLAlchemy()

STATUSES = ('backlog', 'in_progress', 'done')
PRIORITIES = ('low', 'med', 'high')


def clamp_percent(value):
    if value is None:
        return 0
    return max(0, min(100, int(value)))


def checklist_percent(checked, total):
    """Share of checked items as a whole percent, halves rounded up."""
    if total <= 0:
        return 0
    return (200 * checked + total) // (2 * total)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(80), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    tasks = db.relationship('Task', backref='user', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'name': self.name}


class ChecklistItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    label = db.Column(db.String(200), nullable=False)
    checked = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {'id': self.id, 'label': self.label, 'checked': self.checked}


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='backlog', index=True)
    priority = db.Column(db.String(10), nullable=False, default='med')
    order = db.Column(db.Integer, nullable=False, default=0)
    tags = db.Column(db.JSON, nullable=False, default=list)
    start_at = db.Column(db.DateTime, nullable=True)
    due_at = db.Column(db.DateTime, nullable=True)
    percent = db.Column(db.Integer, nullable=False, default=0)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        'ChecklistItem',
        backref='task',
        lazy=True,
        order_by='ChecklistItem.position',
        cascade='all, delete-orphan',
    )

    @validates('percent')
    def _clamp_percent(self, key, value):
        return clamp_percent(value)

    @validates('status')
    def _check_status(self, key, value):
        if value not in STATUSES:
            raise ValueError(f'unknown status {value!r}')
        return value

    @validates('priority')
    def _check_priority(self, key, value):
        if value not in PRIORITIES:
            raise ValueError(f'unknown priority {value!r}')
        return value

    @property
    def checked_count(self):
        return sum(1 for item in self.items if item.checked)

    @property
    def progress(self):
        # A checklist overrides the manual percent
        if self.items:
            return checklist_percent(self.checked_count, len(self.items))
        return clamp_percent(self.percent)

    def set_items(self, items):
        self.items = [
            ChecklistItem(position=i, label=item['label'], checked=item.get('checked', False))
            for i, item in enumerate(items)
        ]

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'order': self.order,
            'tags': list(self.tags or []),
            'startAt': _iso(self.start_at),
            'dueAt': _iso(self.due_at),
            'percent': clamp_percent(self.percent),
            'progress': self.progress,
            'items': [item.to_dict() for item in self.items],
            'userId': self.user_id,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
