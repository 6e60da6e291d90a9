import pytest

from models import db, Customer
from permissions import RoleName

from conftest import login, make_customer, make_user, set_limit


def _client_for(app, email):
    client = app.test_client()
    login(client, email)
    return client


@pytest.fixture
def store(app):
    with app.app_context():
        ids = {
            'manager': make_user('mudur@olka.com', RoleName.STORE_MANAGER, first_name='Müdür'),
            'a': make_user('a@olka.com', RoleName.SALES_CONSULTANT, first_name='Ali'),
            'b': make_user('b@olka.com', RoleName.SALES_CONSULTANT, first_name='Berk'),
            'runner': make_user('runner@olka.com', RoleName.RUNNER),
            'runner2': make_user('runner2@olka.com', RoleName.RUNNER),
        }
        make_user('pasif@olka.com', RoleName.SALES_CONSULTANT, active=False)
        set_limit(1)
    return ids


# ==================== AUTH ====================

def test_login_errors(client, store):
    response = client.post('/login', json={'email': 'a@olka.com', 'password': 'yanlis'})
    assert response.status_code == 401

    response = client.post('/login', json={'email': 'pasif@olka.com', 'password': '123456'})
    assert response.status_code == 403
    assert response.get_json()['kind'] == 'inactive'

    response = client.post('/login', json={'email': 'a'})
    assert response.status_code == 400
    assert response.get_json()['kind'] == 'validation_error'


def test_me_requires_login(client, store):
    response = client.get('/api/me')
    assert response.status_code == 401
    assert response.get_json()['kind'] == 'unauthorized'

    login(client, 'a@olka.com')
    data = client.get('/api/me').get_json()
    assert data['primaryRole'] == RoleName.SALES_CONSULTANT.value
    assert 'Satış İşlemleri' in data['permissions']

    assert client.post('/logout').status_code == 200
    assert client.get('/api/me').status_code == 401


def test_missing_permission_is_forbidden(app, store):
    runner = _client_for(app, 'runner@olka.com')

    assert runner.post('/api/customers', json={}).status_code == 403
    assert runner.get('/api/users').status_code == 403
    assert runner.get('/api/task-definitions').status_code == 403


# ==================== MÜŞTERİ ATAMA ====================

def test_capacity_scenario_over_http(app, store):
    with app.app_context():
        make_customer('5550000001', consultant_id=store['b'])
        x = make_customer('5550000002')

    b = _client_for(app, 'b@olka.com')
    response = b.post(f'/api/customers/{x}/assign', json={})
    assert response.status_code == 400
    body = response.get_json()
    assert body['kind'] == 'capacity_exceeded'
    assert 'Berk Test zaten 1 müşteriye sahip' in body['error']

    a = _client_for(app, 'a@olka.com')
    response = a.post(f'/api/customers/{x}/assign', json={})
    assert response.status_code == 200
    assert response.get_json()['assignedConsultantId'] == store['a']

    response = b.post(f'/api/customers/{x}/assign', json={})
    assert response.status_code == 409
    assert response.get_json()['kind'] == 'already_assigned'


def test_only_manager_assigns_to_someone_else(app, store):
    with app.app_context():
        x = make_customer('5550000002')

    a = _client_for(app, 'a@olka.com')
    response = a.post(f'/api/customers/{x}/assign', json={'consultantId': store['b']})
    assert response.status_code == 403

    manager = _client_for(app, 'mudur@olka.com')
    response = manager.post(f'/api/customers/{x}/assign', json={'consultantId': store['b']})
    assert response.status_code == 200
    assert response.get_json()['assignedConsultantId'] == store['b']


def test_release_and_transfer_by_owner(app, store):
    with app.app_context():
        x = make_customer('5550000002', consultant_id=store['a'])

    b = _client_for(app, 'b@olka.com')
    assert b.post(f'/api/customers/{x}/release').status_code == 403

    a = _client_for(app, 'a@olka.com')
    response = a.post(f'/api/customers/{x}/transfer', json={'toConsultantId': store['b']})
    assert response.status_code == 200
    assert response.get_json()['assignedConsultantId'] == store['b']

    assert b.post(f'/api/customers/{x}/release').status_code == 200
    response = b.post(f'/api/customers/{x}/release')
    assert response.status_code == 400
    assert response.get_json()['kind'] == 'already_in_pool'

    pool = a.get('/api/customers/pool').get_json()
    assert [c['id'] for c in pool] == [x]
    assert pool[0]['waitingTime'].endswith('dk')


def test_customer_crud(app, store):
    a = _client_for(app, 'a@olka.com')
    payload = {'firstName': 'Ayşe', 'lastName': 'Yılmaz', 'phone': '5551112233', 'consentMarketing': True}

    response = a.post('/api/customers', json=payload)
    assert response.status_code == 201
    customer_id = response.get_json()['id']

    response = a.post('/api/customers', json=payload)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Bu telefon numarası zaten kayıtlı'

    response = a.post('/api/customers', json={'firstName': 'Eksik'})
    assert response.status_code == 400
    assert response.get_json()['details']

    response = a.put(f'/api/customers/{customer_id}', json={'city': 'İstanbul'})
    assert response.status_code == 200
    assert response.get_json()['city'] == 'İstanbul'

    assert a.get('/api/customers/search').status_code == 400
    assert len(a.get('/api/customers/search', query_string={'name': 'ayş'}).get_json()) == 1

    listing = a.get('/api/customers?limit=5').get_json()
    assert listing['pagination']['total'] == 1

    assert a.delete(f'/api/customers/{customer_id}').status_code == 403
    manager = _client_for(app, 'mudur@olka.com')
    assert manager.delete(f'/api/customers/{customer_id}').status_code == 200
    assert manager.get(f'/api/customers/{customer_id}').status_code == 404


# ==================== GÖREV ====================

def test_task_flow_over_http(app, store):
    a = _client_for(app, 'a@olka.com')
    response = a.post('/api/tasks', json={'title': 'Beden getir', 'type': 'Numara Değişimi',
                                          'targetRole': 'Runner', 'priority': 'high'})
    assert response.status_code == 201
    task_id = response.get_json()['id']

    runner = _client_for(app, 'runner@olka.com')
    pool = runner.get('/api/tasks/pool').get_json()
    assert [t['id'] for t in pool] == [task_id]
    assert 'waitingTime' in pool[0]

    assert runner.post(f'/api/tasks/{task_id}/take').status_code == 200

    runner2 = _client_for(app, 'runner2@olka.com')
    response = runner2.post(f'/api/tasks/{task_id}/take')
    assert response.status_code == 409
    assert response.get_json()['kind'] == 'already_assigned'

    assert a.delete(f'/api/tasks/{task_id}').status_code == 409

    response = runner.post(f'/api/tasks/{task_id}/complete', json={})
    assert response.status_code == 200
    assert response.get_json()['status'] == 'Tamamlandı'

    stats = a.get('/api/tasks/stats?scope=requests').get_json()['stats']
    assert stats['summary']['completed'] == 1
    assert a.get('/api/tasks/stats?scope=all').status_code == 403


def test_invalid_priority_is_rejected(app, store):
    a = _client_for(app, 'a@olka.com')
    response = a.post('/api/tasks', json={'title': 'X', 'type': 'Y', 'priority': 'hemen'})
    assert response.status_code == 400
    assert response.get_json()['kind'] == 'validation_error'


# ==================== SEPET ====================

def test_cart_flow_over_http(app, store):
    with app.app_context():
        x = make_customer('5550000002', consultant_id=store['a'])

    a = _client_for(app, 'a@olka.com')
    assert a.get(f'/api/carts/{x}').status_code == 404

    response = a.post(f'/api/carts/{x}/items', json={'title': 'Gömlek', 'unitPrice': 100})
    assert response.status_code == 201
    assert response.get_json()['totalAmount'] == 100

    cart = a.post(f'/api/carts/{x}/items', json={'title': 'Pantolon', 'unitPrice': 15, 'quantity': 2}).get_json()
    assert cart['totalAmount'] == 130
    pants_id = cart['items'][1]['id']

    assert a.post(f'/api/carts/{x}/items', json={'title': 'Çorap', 'unitPrice': 5, 'quantity': 0}).status_code == 400

    cart = a.put(f'/api/carts/{x}/items/{pants_id}', json={'quantity': 3}).get_json()
    assert cart['totalAmount'] == 145

    cart = a.delete(f'/api/carts/{x}/items/{pants_id}').get_json()
    assert cart['totalAmount'] == 100

    b = _client_for(app, 'b@olka.com')
    assert b.post(f'/api/carts/{x}/items', json={'title': 'Kemer', 'unitPrice': 50}).status_code == 403

    share = a.post(f'/api/carts/{x}/share').get_json()
    assert share['success'] is True
    assert share['shareId'].startswith('SHARE_')

    response = a.post(f'/api/carts/{x}/checkout', json={'paymentMethod': 'cash'})
    assert response.status_code == 201
    assert response.get_json()['amount'] == 100

    assert a.get(f'/api/carts/{x}').status_code == 404
    assert len(a.get(f'/api/customers/{x}/sales').get_json()) == 1

    with app.app_context():
        customer = db.session.get(Customer, x)
        assert customer.total_orders == 1
        assert customer.total_spent == 100


# ==================== YÖNETİM ====================

def test_parameters_and_users_admin(app, store):
    a = _client_for(app, 'a@olka.com')
    assert a.post('/api/parameters', json={'key': 'X', 'value': '1'}).status_code == 403

    manager = _client_for(app, 'mudur@olka.com')
    response = manager.put('/api/parameters/max_customers_per_consultant', json={'value': 2})
    assert response.status_code == 200
    assert response.get_json()['value'] == '2'

    rows = a.get('/api/users/by-role', query_string={'roleName': RoleName.SALES_CONSULTANT.value}).get_json()
    assert {r['maxCustomers'] for r in rows} == {2}

    response = manager.post('/api/users', json={'email': 'yeni@olka.com', 'password': '123456',
                                                'firstName': 'Yeni', 'lastName': 'Runner',
                                                'roles': ['Runner']})
    assert response.status_code == 201
    new_id = response.get_json()['id']

    response = manager.post(f'/api/users/{store["manager"]}/toggle-status')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Kendi hesabınızı pasif yapamazsınız'

    assert manager.post(f'/api/users/{new_id}/toggle-status').get_json()['isActive'] is False


def test_task_list_rejects_non_numeric_assignee(app, store):
    a = _client_for(app, 'a@olka.com')

    response = a.get('/api/tasks', query_string={'assignedTo': 'abc'})
    assert response.status_code == 400
    assert response.get_json()['kind'] == 'validation_error'

    assert a.get('/api/tasks', query_string={'assignedTo': store['runner']}).status_code == 200
    assert a.get('/api/tasks', query_string={'assignedTo': 'all'}).status_code == 200


def test_deactivated_user_loses_open_session(app, store):
    runner = _client_for(app, 'runner@olka.com')
    assert runner.get('/api/tasks/pool').status_code == 200

    manager = _client_for(app, 'mudur@olka.com')
    assert manager.post(f'/api/users/{store["runner"]}/toggle-status').get_json()['isActive'] is False

    assert runner.get('/api/tasks/pool').status_code == 401
    assert runner.get('/api/me').status_code == 401


def test_explicit_zero_consultant_is_not_a_self_assign(app, store):
    with app.app_context():
        x = make_customer('5550000002')

    a = _client_for(app, 'a@olka.com')
    assert a.post(f'/api/customers/{x}/assign', json={'consultantId': 0}).status_code == 403

    manager = _client_for(app, 'mudur@olka.com')
    response = manager.post(f'/api/customers/{x}/assign', json={'consultantId': 0})
    assert response.status_code == 404
    with app.app_context():
        assert db.session.get(Customer, x).assigned_consultant_id is None
