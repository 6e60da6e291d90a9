import os

os.environ['FLASK_ENV'] = 'testing'

import pytest

from app import app as flask_app, role_service, parameter_service
from models import db, Customer, User, UserRole
from services.capacity import MAX_CUSTOMERS_KEY


@pytest.fixture
def app():
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        role_service.ensure_defaults()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, *roles, active=True, password='123456', first_name=None):
    """Kullanıcı oluştur, id döndür (aktif app context içinde çağrılmalı)"""
    name = first_name or email.split('@')[0].capitalize()
    user = User(email=email, first_name=name, last_name='Test', full_name=f'{name} Test',
                is_active=active)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    for role in roles:
        db.session.add(UserRole(user_id=user.id, role_id=role_service.get_by_name(role).id))
    db.session.commit()
    return user.id


def make_customer(phone, consultant_id=None, first_name='Müşteri', national_id=None):
    customer = Customer(first_name=first_name, last_name=phone[-4:], full_name=f'{first_name} {phone[-4:]}',
                        phone=phone, national_id=national_id, assigned_consultant_id=consultant_id)
    db.session.add(customer)
    db.session.commit()
    return customer.id


def set_limit(value, key=MAX_CUSTOMERS_KEY):
    parameter_service.set(key, value, 'NUMBER', 'LIMITS')


def login(client, email, password='123456'):
    response = client.post('/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response

