from functools import wraps

from flask import flash, jsonify, redirect, session, url_for

from models import User, db


def login_user(user):
    session.clear()
    session['user_id'] = user.id
    session['name'] = user.name


def logout_user():
    session.clear()


def current_user():
    user_id = session.get('user_id')
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None:
        # Account is gone; drop the stale cookie
        session.clear()
    return user


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_user() is None:
            flash('Please log in first.', 'warning')
            return redirect(url_for('main.login'))
        return view(*args, **kwargs)
    return wrapped


def api_login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_user() is None:
            return jsonify({'error': 'Unauthorized'}), 401
        return view(*args, **kwargs)
    return wrapped
