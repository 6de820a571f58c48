"""Tests for the JSON API."""

import pytest

from conftest import register


class TestAuth:
    def test_tasks_require_session(self, client):
        assert client.get('/api/tasks').status_code == 401
        assert client.post('/api/tasks', json={'title': 'Write spec'}).status_code == 401
        assert client.get('/api/tasks/1').status_code == 401
        assert client.get('/api/tasks/1').get_json() == {'error': 'Unauthorized'}

    def test_register_logs_in(self, client):
        body = register(client)
        assert body['email'] == 'ana@example.com'
        assert client.get('/api/auth/me').get_json()['name'] == 'Ana'

    def test_duplicate_registration(self, client):
        register(client)
        resp = client.post('/api/auth/register',
                           json={'email': 'ana@example.com', 'name': 'Ana', 'password': 'secret-pass'})
        assert resp.status_code == 409

    def test_register_validation(self, client):
        resp = client.post('/api/auth/register', json={'email': 'nope', 'name': '', 'password': 'x'})
        assert resp.status_code == 400
        fields = {d['field'] for d in resp.get_json()['details']}
        assert fields == {'email', 'name', 'password'}

    def test_login_and_logout(self, client):
        register(client)
        client.post('/api/auth/logout')
        assert client.get('/api/auth/me').status_code == 401

        bad = client.post('/api/auth/login', json={'email': 'ana@example.com', 'password': 'wrong-pass'})
        assert bad.status_code == 401

        ok = client.post('/api/auth/login', json={'email': 'ANA@example.com', 'password': 'secret-pass'})
        assert ok.status_code == 200
        assert client.get('/api/tasks').status_code == 200


class TestCreateAndList:
    def test_example_task(self, auth_client):
        resp = auth_client.post('/api/tasks', json={'title': 'Write spec', 'status': 'backlog'})
        assert resp.status_code == 201

        tasks = auth_client.get('/api/tasks').get_json()
        assert len(tasks) == 1
        task = tasks[0]
        assert task['title'] == 'Write spec'
        assert (task['order'], task['percent'], task['tags']) == (0, 0, [])
        assert task['status'] == 'backlog'
        assert task['items'] == []

    def test_order_increments(self, make_task):
        assert [make_task()['order'] for _ in range(3)] == [0, 1, 2]

    def test_validation_error_shape(self, auth_client):
        resp = auth_client.post('/api/tasks', json={'title': 'ab', 'percent': 150})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body['error'] == 'Validation error'
        assert {d['field'] for d in body['details']} == {'title', 'percent'}

    def test_non_json_body(self, auth_client):
        resp = auth_client.post('/api/tasks', data='title=hello', content_type='text/plain')
        assert resp.status_code == 400

    def test_query_filters(self, make_task, auth_client):
        make_task(title='Buy milk', status='in_progress')
        make_task(title='Call plumber', description='Kitchen sink MILKY water')
        make_task(title='Read book')

        titles = lambda url: [t['title'] for t in auth_client.get(url).get_json()]
        assert titles('/api/tasks?q=milk') == ['Call plumber', 'Buy milk']
        assert titles('/api/tasks?status=in_progress') == ['Buy milk']
        assert titles('/api/tasks?status=') == ['Call plumber', 'Read book', 'Buy milk']

    def test_bad_query(self, auth_client):
        assert auth_client.get('/api/tasks?status=archived').status_code == 400
        assert auth_client.get('/api/tasks?from=soon').status_code == 400

    def test_date_only_to_includes_that_day(self, make_task, auth_client):
        make_task(title='Afternoon', dueAt='2025-01-10T15:00:00')
        make_task(title='Next day', dueAt='2025-01-11T00:00:00')
        tasks = auth_client.get('/api/tasks?to=2025-01-10').get_json()
        assert [t['title'] for t in tasks] == ['Afternoon']

    def test_date_range(self, make_task, auth_client):
        make_task(title='January', startAt='2025-01-10', dueAt='2025-01-20')
        make_task(title='March', dueAt='2025-03-01')
        tasks = auth_client.get('/api/tasks?from=2025-01-01&to=2025-01-31').get_json()
        assert [t['title'] for t in tasks] == ['January']
        assert tasks[0]['startAt'] == '2025-01-10T00:00:00'


class TestSingleTask:
    def test_get(self, make_task, auth_client):
        task = make_task(title='Write spec')
        assert auth_client.get(f"/api/tasks/{task['id']}").get_json()['title'] == 'Write spec'
        assert auth_client.get('/api/tasks/999').status_code == 404

    def test_patch(self, make_task, auth_client):
        task = make_task(title='Write spec')
        resp = auth_client.patch(f"/api/tasks/{task['id']}", json={'status': 'done', 'percent': 30, 'tags': ['work']})
        assert resp.status_code == 200
        body = resp.get_json()
        assert (body['status'], body['percent'], body['progress'], body['tags']) == ('done', 30, 30, ['work'])
        assert body['title'] == 'Write spec'

    def test_patch_validation(self, make_task, auth_client):
        task = make_task()
        resp = auth_client.patch(f"/api/tasks/{task['id']}", json={'priority': 'urgent'})
        assert resp.status_code == 400

    def test_patch_clears_dates(self, make_task, auth_client):
        task = make_task(dueAt='2025-01-10')
        body = auth_client.patch(f"/api/tasks/{task['id']}", json={'dueAt': None}).get_json()
        assert body['dueAt'] is None

    def test_patch_due_before_stored_start(self, make_task, auth_client):
        task = make_task(startAt='2025-01-10', dueAt='2025-01-12')
        resp = auth_client.patch(f"/api/tasks/{task['id']}", json={'dueAt': '2025-01-01'})
        assert resp.status_code == 400
        assert resp.get_json()['details'] == [{'field': 'dueAt', 'message': 'dueAt must not be before startAt'}]
        assert auth_client.get(f"/api/tasks/{task['id']}").get_json()['dueAt'] == '2025-01-12T00:00:00'

    def test_delete(self, make_task, auth_client):
        task = make_task()
        resp = auth_client.delete(f"/api/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.get_json() == {'success': True}
        assert auth_client.get('/api/tasks').get_json() == []
        assert auth_client.delete(f"/api/tasks/{task['id']}").status_code == 404


class TestChecklist:
    def test_progress_from_toggles(self, make_task, auth_client):
        task = make_task(percent=10, items=[{'label': str(i)} for i in range(4)])
        assert task['progress'] == 0

        for item in task['items']:
            body = auth_client.patch(f"/api/tasks/{task['id']}/items/{item['id']}").get_json()
        assert body['progress'] == 100

        first = task['items'][0]['id']
        body = auth_client.patch(f"/api/tasks/{task['id']}/items/{first}", json={'checked': False}).get_json()
        assert body['progress'] == 75
        assert body['percent'] == 10

    def test_unknown_item(self, make_task, auth_client):
        task = make_task()
        resp = auth_client.patch(f"/api/tasks/{task['id']}/items/42")
        assert resp.status_code == 404
        assert resp.get_json() == {'error': 'Checklist item not found'}


class TestReorder:
    def test_reorder(self, make_task, auth_client):
        a, b, c = (make_task(title=t) for t in ('aaa', 'bbb', 'ccc'))
        resp = auth_client.post('/api/tasks/reorder', json={'status': 'in_progress', 'ids': [c['id'], a['id']]})
        assert resp.status_code == 200
        assert [(t['title'], t['order']) for t in resp.get_json()] == [('ccc', 0), ('aaa', 1)]

        backlog = auth_client.get('/api/tasks?status=backlog').get_json()
        assert [(t['title'], t['order']) for t in backlog] == [('bbb', 0)]

    def test_reorder_unknown_id(self, auth_client):
        resp = auth_client.post('/api/tasks/reorder', json={'status': 'done', 'ids': [123]})
        assert resp.status_code == 404


def test_stats(make_task, auth_client):
    make_task(percent=40)
    make_task(status='done', percent=100)
    body = auth_client.get('/api/tasks/stats').get_json()
    assert body == {'counts': {'backlog': 1, 'in_progress': 0, 'done': 1}, 'total': 2, 'averageProgress': 70}


class TestIsolation:
    @pytest.fixture
    def other_task(self, app):
        other = app.test_client()
        register(other, email='bob@example.com', name='Bob')
        resp = other.post('/api/tasks', json={'title': 'Bob private'})
        return other, resp.get_json()

    def test_cannot_see_or_touch(self, auth_client, other_task):
        _, task = other_task
        assert auth_client.get('/api/tasks').get_json() == []
        assert auth_client.get(f"/api/tasks/{task['id']}").status_code == 404
        assert auth_client.patch(f"/api/tasks/{task['id']}", json={'title': 'Hijacked'}).status_code == 404
        assert auth_client.delete(f"/api/tasks/{task['id']}").status_code == 404

    def test_delete_does_not_affect_other_user(self, make_task, auth_client, other_task):
        other, _ = other_task
        mine = make_task()
        auth_client.delete(f"/api/tasks/{mine['id']}")
        assert [t['title'] for t in other.get('/api/tasks').get_json()] == ['Bob private']


def test_unexpected_error_returns_500(auth_client, monkeypatch, caplog):
    import store

    def boom(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr(store, 'list_tasks', boom)
    resp = auth_client.get('/api/tasks')
    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Internal server error'}
    assert 'Unhandled error on GET /api/tasks' in caplog.text


def test_stats_average_rounds_half_up(make_task, auth_client):
    make_task(percent=12)
    make_task(percent=13)
    assert auth_client.get('/api/tasks/stats').get_json()['averageProgress'] == 13
