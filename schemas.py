import re
from datetime import date, datetime, time, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Status = Literal['backlog', 'in_progress', 'done']
Priority = Literal['low', 'med', 'high']

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _coerce_datetime(value, clock=time.min):
    value = _blank_to_none(value)
    # Plain dates mean the start of that day, or its end when clock=time.max
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, clock)
    if isinstance(value, str) and len(value.strip()) == 10:
        return datetime.combine(date.fromisoformat(value.strip()), clock)
    return value


def _naive_utc(value):
    # Stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _normalize_tags(tags):
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ChecklistItemIn(BaseModel):
    label: str = Field(min_length=1, max_length=200)
    checked: bool = False

    @field_validator('label', mode='before')
    @classmethod
    def _strip_label(cls, v):
        return v.strip() if isinstance(v, str) else v


class TaskCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    title: str = Field(min_length=3, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Status = 'backlog'
    priority: Priority = 'med'
    tags: List[str] = Field(default_factory=list)
    start_at: Optional[datetime] = Field(default=None, alias='startAt')
    due_at: Optional[datetime] = Field(default=None, alias='dueAt')
    percent: int = Field(default=0, ge=0, le=100)
    items: List[ChecklistItemIn] = Field(default_factory=list)

    @field_validator('title', mode='before')
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('description', mode='before')
    @classmethod
    def _blank_description(cls, v):
        return _blank_to_none(v)

    @field_validator('start_at', 'due_at', mode='before')
    @classmethod
    def _parse_dates(cls, v):
        return _coerce_datetime(v)

    @field_validator('start_at', 'due_at')
    @classmethod
    def _to_utc(cls, v):
        return _naive_utc(v)

    @field_validator('tags')
    @classmethod
    def _clean_tags(cls, v):
        return _normalize_tags(v)

    @model_validator(mode='after')
    def _check_range(self):
        if self.start_at and self.due_at and self.due_at < self.start_at:
            raise ValueError('dueAt must not be before startAt')
        return self

    def to_fields(self):
        return self.model_dump()


class TaskUpdate(TaskCreate):
    """Partial update: only fields present in the payload are applied."""

    title: Optional[str] = Field(default=None, min_length=3, max_length=120)
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    percent: Optional[int] = Field(default=None, ge=0, le=100)
    items: Optional[List[ChecklistItemIn]] = None
    order: Optional[int] = Field(default=None, ge=0)

    @field_validator('tags')
    @classmethod
    def _clean_tags(cls, v):
        return None if v is None else _normalize_tags(v)

    @model_validator(mode='after')
    def _check_required_not_null(self):
        for name in ('title', 'status', 'priority', 'tags', 'percent', 'items'):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f'{name} may not be null')
        return self

    def to_fields(self):
        return self.model_dump(include=self.model_fields_set)


class TaskQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    status: Optional[Status] = None
    priority: Optional[Priority] = None
    q: Optional[str] = None
    from_: Optional[datetime] = Field(default=None, alias='from')
    to: Optional[datetime] = None

    @field_validator('status', 'priority', 'q', mode='before')
    @classmethod
    def _blank(cls, v):
        v = _blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator('from_', mode='before')
    @classmethod
    def _parse_from(cls, v):
        return _coerce_datetime(v)

    @field_validator('to', mode='before')
    @classmethod
    def _parse_to(cls, v):
        return _coerce_datetime(v, clock=time.max)

    @field_validator('from_', 'to')
    @classmethod
    def _to_utc(cls, v):
        return _naive_utc(v)


class ReorderRequest(BaseModel):
    status: Status
    ids: List[int]

    @field_validator('ids')
    @classmethod
    def _unique(cls, v):
        if len(set(v)) != len(v):
            raise ValueError('ids must not repeat')
        return v


class ItemToggle(BaseModel):
    checked: Optional[bool] = None


class RegisterRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=80)

    @field_validator('email', mode='before')
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('email')
    @classmethod
    def _check_email(cls, v):
        if not _EMAIL_RE.match(v):
            raise ValueError('Invalid email address')
        return v

    @field_validator('name', mode='before')
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email', mode='before')
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


def validation_details(error):
    details = []
    for err in error.errors():
        field = '.'.join(str(part) for part in err['loc']) or '__root__'
        message = err['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        details.append({'field': field, 'message': message})
    return details
