import logging

from flask import Blueprint, Flask, abort, current_app, flash, redirect, render_template, request, session, url_for
from pydantic import ValidationError

import calendar_view
import store
from api import api
from auth import current_user, login_required, login_user, logout_user
from config import Config
from logging_setup import setup_logging
from models import PRIORITIES, STATUSES, db
from schemas import RegisterRequest, TaskCreate, TaskQuery, TaskUpdate, validation_details

logger = logging.getLogger(__name__)

main = Blueprint('main', __name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.testing:
        setup_logging(app.config['LOG_LEVEL'], app.config['LOG_FILE'])

    db.init_app(app)

    with app.app_context():
        db.create_all()

    app.register_blueprint(main)
    app.register_blueprint(api)

    @app.context_processor
    def _template_globals():
        return {
            'cv': calendar_view,
            'STATUSES': STATUSES,
            'PRIORITIES': PRIORITIES,
            'STATUS_LABELS': calendar_view.STATUS_LABELS,
            'PRIORITY_LABELS': calendar_view.PRIORITY_LABELS,
        }

    return app


def parse_checklist(text):
    """One item per line; a leading "[x]" marks the item as checked."""
    items = []
    for line in (text or '').splitlines():
        line = line.strip()
        checked = False
        if line[:3].lower() == '[x]':
            checked, line = True, line[3:].strip()
        elif line[:3] == '[ ]':
            line = line[3:].strip()
        if line:
            items.append({'label': line, 'checked': checked})
    return items


def checklist_text(items):
    return '\n'.join(('[x] ' if item.checked else '[ ] ') + item.label for item in items)


def task_form_payload(form):
    payload = {
        'title': form.get('title', ''),
        'description': form.get('description', ''),
        'status': form.get('status') or 'backlog',
        'priority': form.get('priority') or 'med',
        'tags': form.get('tags', '').split(','),
        'startAt': form.get('startAt', ''),
        'dueAt': form.get('dueAt', ''),
        'items': parse_checklist(form.get('items', '')),
    }
    percent = form.get('percent', '').strip()
    payload['percent'] = percent if percent else 0
    return payload


def _own_task(task_id):
    return store.get_task(session['user_id'], task_id) or abort(404)


def _back(default='main.board'):
    target = request.form.get('next', '')
    # Only follow local paths
    if target.startswith('/') and not target.startswith('//'):
        return redirect(target)
    return redirect(url_for(default))


@main.route('/')
def home():
    if current_user() is not None:
        return redirect(url_for('main.board'))
    return redirect(url_for('main.login'))


@main.route('/register', methods=['GET', 'POST'])
def register():
    error = None
    if request.method == 'POST':
        password = request.form.get('password', '')
        confirm_password = request.form.get('confirm_password', '')

        if password != confirm_password:
            error = 'Passwords do not match.'
        else:
            try:
                data = RegisterRequest(
                    email=request.form.get('email', ''),
                    name=request.form.get('name', ''),
                    password=password,
                )
                store.register_user(data)
            except ValidationError as exc:
                error = '; '.join(f"{d['field']}: {d['message']}" for d in validation_details(exc))
            except store.EmailTaken:
                error = 'That email is already registered.'
            else:
                flash('Registration complete, you can log in now.', 'success')
                return redirect(url_for('main.login'))

    return render_template('register.html', error=error)


@main.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = request.form.get('email', '')
        user = store.authenticate(email, request.form.get('password', ''))
        if user:
            login_user(user)
            logger.info('User %s logged in', user.id)
            flash('Welcome, ' + user.name, 'success')
            return redirect(url_for('main.board'))
        logger.info('Failed login for %s', email)
        flash('Wrong email or password.', 'danger')
    return render_template('login.html')


@main.route('/logout')
def logout():
    logout_user()
    flash('Logged out.', 'info')
    return redirect(url_for('main.login'))


@main.route('/board')
@login_required
def board():
    tasks = store.list_tasks(session['user_id'])
    return render_template('board.html', columns=calendar_view.board_columns(tasks))


@main.route('/timeline')
@login_required
def timeline():
    view = request.args.get('view', 'week')
    if view not in ('week', 'month'):
        view = 'week'
    day = calendar_view.parse_day(request.args.get('date'))
    tasks = store.list_tasks(session['user_id'])

    if view == 'week':
        weeks = [calendar_view.week_days(day)]
    else:
        weeks = calendar_view.month_weeks(day)

    return render_template(
        'timeline.html',
        view=view,
        day=day,
        weeks=weeks,
        tasks=tasks,
        legend=calendar_view.legend(tasks),
        user_color=calendar_view.color_for(session['user_id']),
        prev_day=calendar_view.shift(day, view, -1),
        next_day=calendar_view.shift(day, view, 1),
        cell_limit=None if view == 'week' else current_app.config['TIMELINE_CELL_LIMIT'],
    )


@main.route('/tasks')
@login_required
def all_tasks():
    try:
        query = TaskQuery.model_validate(request.args.to_dict())
    except ValidationError:
        flash('Invalid filter, showing all tasks.', 'warning')
        query = TaskQuery()
    tasks = store.list_tasks(session['user_id'], query)
    filtered = bool(query.q or query.status or query.priority)
    return render_template('tasks.html', tasks=tasks, query=query, filtered=filtered)


@main.route('/tasks/new', methods=['GET', 'POST'])
@login_required
def new_task():
    errors = []
    form = request.form
    if request.method == 'POST':
        try:
            data = TaskCreate.model_validate(task_form_payload(form))
        except ValidationError as exc:
            errors = validation_details(exc)
        else:
            store.create_task(session['user_id'], data.to_fields())
            flash('Task created.', 'success')
            return _back()
    return render_template('task_form.html', task=None, form=form, errors=errors)


@main.route('/tasks/<int:task_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_task(task_id):
    task = _own_task(task_id)
    errors = []
    form = request.form
    if request.method == 'POST':
        try:
            data = TaskUpdate.model_validate(task_form_payload(form))
            store.update_task(task, data.to_fields())
        except ValidationError as exc:
            errors = validation_details(exc)
        except store.DateRangeError as exc:
            errors = [{'field': 'dueAt', 'message': str(exc)}]
        else:
            flash('Task updated.', 'success')
            return _back()
    else:
        form = {
            'title': task.title,
            'description': task.description or '',
            'status': task.status,
            'priority': task.priority,
            'tags': ', '.join(task.tags or []),
            'startAt': task.start_at.isoformat() if task.start_at else '',
            'dueAt': task.due_at.isoformat() if task.due_at else '',
            'percent': task.percent,
            'items': checklist_text(task.items),
        }
    return render_template('task_form.html', task=task, form=form, errors=errors)


@main.route('/tasks/<int:task_id>/status', methods=['POST'])
@login_required
def change_status(task_id):
    task = _own_task(task_id)
    status = request.form.get('status')
    if status not in STATUSES:
        flash('Unknown status.', 'warning')
    else:
        store.update_task(task, {'status': status})
        flash('Moved to ' + calendar_view.STATUS_LABELS[status] + '.', 'info')
    return _back()


@main.route('/tasks/<int:task_id>/move', methods=['POST'])
@login_required
def move_task(task_id):
    task = _own_task(task_id)
    offset = -1 if request.form.get('direction') == 'up' else 1
    store.move_task(task, offset)
    return _back()


@main.route('/tasks/<int:task_id>/items/<int:item_id>/toggle', methods=['POST'])
@login_required
def toggle_item(task_id, item_id):
    task = _own_task(task_id)
    try:
        store.toggle_item(task, item_id)
    except store.ItemNotFound:
        abort(404)
    return _back()


@main.route('/tasks/<int:task_id>/delete', methods=['POST'])
@login_required
def delete_task(task_id):
    task = _own_task(task_id)
    store.delete_task(task)
    flash('Task deleted.', 'success')
    return _back()


@main.route('/report')
@login_required
def report():
    return render_template('report.html', stats=store.stats(session['user_id']))


if __name__ == '__main__':
    create_app().run(debug=True)
