import logging

from flask import Blueprint, jsonify, request, session
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

import store
from auth import api_login_required, current_user, login_user, logout_user
from models import db
from schemas import (ItemToggle, LoginRequest, RegisterRequest, ReorderRequest, TaskCreate,
                     TaskQuery, TaskUpdate, validation_details)

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


class BadPayload(ValueError):
    pass


def _json_body(required=True):
    body = request.get_json(silent=True)
    if body is None and not required:
        return {}
    if not isinstance(body, dict):
        raise BadPayload('Request body must be a JSON object')
    return body


@api.errorhandler(ValidationError)
def _validation_error(error):
    return jsonify({'error': 'Validation error', 'details': validation_details(error)}), 400


@api.errorhandler(BadPayload)
def _bad_payload(error):
    return jsonify({'error': 'Validation error',
                    'details': [{'field': '__root__', 'message': str(error)}]}), 400


@api.errorhandler(store.DateRangeError)
def _date_range(error):
    return jsonify({'error': 'Validation error',
                    'details': [{'field': 'dueAt', 'message': str(error)}]}), 400


@api.errorhandler(store.ItemNotFound)
def _item_not_found(error):
    return jsonify({'error': 'Checklist item not found'}), 404


@api.errorhandler(store.TaskNotFound)
def _task_not_found(error):
    return jsonify({'error': 'Task not found'}), 404


@api.errorhandler(store.EmailTaken)
def _email_taken(error):
    return jsonify({'error': 'Email already registered'}), 409


@api.errorhandler(HTTPException)
def _http_error(error):
    return jsonify({'error': error.description}), error.code


@api.errorhandler(Exception)
def _unexpected(error):
    logger.exception('Unhandled error on %s %s', request.method, request.path)
    db.session.rollback()
    return jsonify({'error': 'Internal server error'}), 500


# Auth

@api.route('/auth/register', methods=['POST'])
def register():
    data = RegisterRequest.model_validate(_json_body())
    user = store.register_user(data)
    login_user(user)
    return jsonify(user.to_dict()), 201


@api.route('/auth/login', methods=['POST'])
def login():
    data = LoginRequest.model_validate(_json_body())
    user = store.authenticate(data.email, data.password)
    if user is None:
        logger.info('Failed API login for %s', data.email)
        return jsonify({'error': 'Invalid email or password'}), 401
    login_user(user)
    logger.info('User %s logged in', user.id)
    return jsonify(user.to_dict())


@api.route('/auth/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'success': True})


@api.route('/auth/me')
@api_login_required
def me():
    return jsonify(current_user().to_dict())


# Tasks

@api.route('/tasks', methods=['GET'])
@api_login_required
def list_tasks():
    query = TaskQuery.model_validate(request.args.to_dict())
    tasks = store.list_tasks(session['user_id'], query)
    return jsonify([task.to_dict() for task in tasks])


@api.route('/tasks', methods=['POST'])
@api_login_required
def create_task():
    data = TaskCreate.model_validate(_json_body())
    task = store.create_task(session['user_id'], data.to_fields())
    return jsonify(task.to_dict()), 201


@api.route('/tasks/stats')
@api_login_required
def task_stats():
    return jsonify(store.stats(session['user_id']))


@api.route('/tasks/reorder', methods=['POST'])
@api_login_required
def reorder_tasks():
    data = ReorderRequest.model_validate(_json_body())
    tasks = store.reorder_column(session['user_id'], data.status, data.ids)
    return jsonify([task.to_dict() for task in tasks])


@api.route('/tasks/<int:task_id>', methods=['GET'])
@api_login_required
def get_task(task_id):
    return jsonify(store.require_task(session['user_id'], task_id).to_dict())


@api.route('/tasks/<int:task_id>', methods=['PATCH'])
@api_login_required
def update_task(task_id):
    task = store.require_task(session['user_id'], task_id)
    data = TaskUpdate.model_validate(_json_body())
    task = store.update_task(task, data.to_fields())
    return jsonify(task.to_dict())


@api.route('/tasks/<int:task_id>', methods=['DELETE'])
@api_login_required
def delete_task(task_id):
    task = store.require_task(session['user_id'], task_id)
    store.delete_task(task)
    return jsonify({'success': True})


@api.route('/tasks/<int:task_id>/items/<int:item_id>', methods=['PATCH'])
@api_login_required
def toggle_item(task_id, item_id):
    task = store.require_task(session['user_id'], task_id)
    data = ItemToggle.model_validate(_json_body(required=False))
    task = store.toggle_item(task, item_id, data.checked)
    return jsonify(task.to_dict())
