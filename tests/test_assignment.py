from datetime import datetime, timedelta

import pytest

from app import assignment_service
from errors import AlreadyAssigned, AlreadyInPool, CapacityExceeded, Conflict, Inactive, NotFound, ValidationError
from models import db, Customer
from permissions import RoleName

from conftest import make_customer, make_user, set_limit


def _owner(customer_id):
    return db.session.get(Customer, customer_id).assigned_consultant_id


@pytest.fixture
def store(ctx):
    a = make_user('a@olka.com', RoleName.SALES_CONSULTANT)
    b = make_user('b@olka.com', RoleName.SALES_CONSULTANT)
    return a, b


def test_full_consultant_is_steered_to_the_free_one(store):
    a, b = store
    set_limit(1)
    make_customer('5550000001', consultant_id=b)
    x = make_customer('5550000002')

    with pytest.raises(CapacityExceeded) as exc:
        assignment_service.take(x, b)
    assert 'Boşta satış danışmanı var' in exc.value.message
    assert _owner(x) is None

    assignment_service.take(x, a)
    assert _owner(x) == a

    # Herkes doluysa son çare olarak izin verilir
    y = make_customer('5550000003')
    assignment_service.take(y, b)
    assert _owner(y) == b


def test_take_rejects_an_already_assigned_customer(store):
    a, b = store
    x = make_customer('5550000001', consultant_id=a)

    with pytest.raises(AlreadyAssigned):
        assignment_service.take(x, b)
    assert _owner(x) == a


def test_take_checks_customer_and_consultant(store):
    a, _ = store
    off = make_user('off@olka.com', RoleName.SALES_CONSULTANT, active=False)
    x = make_customer('5550000001')

    with pytest.raises(NotFound):
        assignment_service.take(9999, a)
    with pytest.raises(NotFound):
        assignment_service.take(x, 9999)
    with pytest.raises(Inactive):
        assignment_service.take(x, off)


def test_release_then_take_again(store):
    a, b = store
    x = make_customer('5550000001', consultant_id=a)

    customer = assignment_service.release_to_pool(x)
    assert customer.assigned_consultant_id is None
    assert customer.moved_to_pool_at is not None

    with pytest.raises(AlreadyInPool):
        assignment_service.release_to_pool(x)

    assignment_service.take(x, b)
    assert _owner(x) == b


def test_transfer_moves_customer_between_consultants(store):
    a, b = store
    x = make_customer('5550000001', consultant_id=a)

    assignment_service.transfer(x, a, b)
    assert _owner(x) == b

    # Gönderen belirtilmezse mevcut danışman kullanılır
    assignment_service.transfer(x, None, a)
    assert _owner(x) == a


def test_transfer_fails_when_owner_changed_meanwhile(store):
    a, b = store
    c = make_user('c@olka.com', RoleName.SALES_CONSULTANT)
    x = make_customer('5550000001', consultant_id=a)

    with pytest.raises(Conflict):
        assignment_service.transfer(x, c, b)
    assert _owner(x) == a


def test_transfer_rules(store):
    a, b = store
    pooled = make_customer('5550000001')
    owned = make_customer('5550000002', consultant_id=a)

    with pytest.raises(Conflict):
        assignment_service.transfer(pooled, None, b)
    with pytest.raises(ValidationError):
        assignment_service.transfer(owned, a, a)


def test_transfer_respects_capacity(store):
    a, b = store
    c = make_user('c@olka.com', RoleName.SALES_CONSULTANT)
    make_customer('5550000001', consultant_id=b)
    x = make_customer('5550000002', consultant_id=a)

    # c boşta, b dolu
    with pytest.raises(CapacityExceeded):
        assignment_service.transfer(x, a, b)
    assert _owner(x) == a
    assignment_service.transfer(x, a, c)
    assert _owner(x) == c


def test_waiting_time_counts_from_pool_entry(store):
    a, _ = store
    x = make_customer('5550000001', consultant_id=a)
    customer = assignment_service.release_to_pool(x)

    later = customer.moved_to_pool_at + timedelta(minutes=3, seconds=4)
    assert assignment_service.waiting_since(customer) == customer.moved_to_pool_at
    assert assignment_service.waiting_time(customer, later) == '3:04 dk'


def test_waiting_time_falls_back_to_creation(store):
    customer = db.session.get(Customer, make_customer('5550000001'))
    customer.created_at = datetime(2025, 1, 1, 10, 0)
    db.session.commit()

    assert assignment_service.waiting_time(customer, datetime(2025, 1, 3, 11, 0)) == '2 gün'
