import pytest

from app import assignment_service, capacity_policy, parameter_service
from models import db, Parameter
from permissions import RoleName
from services.capacity import LEGACY_MAX_CUSTOMERS_KEY, CapacityPolicy
from services.directory import Directory

from conftest import make_customer, make_user, set_limit


@pytest.fixture
def consultants(ctx):
    a = make_user('a@olka.com', RoleName.SALES_CONSULTANT)
    b = make_user('b@olka.com', RoleName.SALES_CONSULTANT)
    return a, b


def test_default_limit_is_one_without_parameter(ctx):
    assert capacity_policy.limit() == 1


def test_deny_when_full_and_another_consultant_has_room(consultants):
    a, b = consultants
    make_customer('5550000001', consultant_id=b)
    pool_customer = make_customer('5550000002')

    decision = capacity_policy.can_assign(pool_customer, b)

    assert not decision
    assert decision.reason == 'capacity'
    assert 'zaten 1 müşteriye sahip' in decision.message
    assert capacity_policy.can_assign(pool_customer, a)


def test_allow_as_last_resort_when_nobody_has_room(consultants):
    a, b = consultants
    make_customer('5550000001', consultant_id=a)
    make_customer('5550000002', consultant_id=b)
    pool_customer = make_customer('5550000003')

    assert capacity_policy.can_assign(pool_customer, b)


def test_inactive_consultants_do_not_count_as_having_room(ctx):
    busy = make_user('busy@olka.com', RoleName.SALES_CONSULTANT)
    make_user('off@olka.com', RoleName.SALES_CONSULTANT, active=False)
    make_customer('5550000001', consultant_id=busy)

    assert capacity_policy.can_assign(make_customer('5550000002'), busy)


def test_parameter_raises_the_limit(consultants):
    a, b = consultants
    set_limit(2)
    make_customer('5550000001', consultant_id=b)

    assert capacity_policy.limit() == 2
    assert capacity_policy.can_assign(make_customer('5550000002'), b)


def test_store_manager_is_unlimited_even_with_consultant_role(consultants):
    manager = make_user('mudur@olka.com', RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
    for i in range(3):
        make_customer(f'555000001{i}', consultant_id=manager)

    assert capacity_policy.can_assign(make_customer('5550000020'), manager)


def test_roles_without_capacity_are_not_limited(consultants):
    runner = make_user('runner@olka.com', RoleName.RUNNER)
    make_customer('5550000001', consultant_id=runner)

    assert capacity_policy.can_assign(make_customer('5550000002'), runner)


def test_missing_and_inactive_candidates_are_denied(ctx):
    inactive = make_user('pasif@olka.com', RoleName.SALES_CONSULTANT, active=False)
    customer = make_customer('5550000001')

    assert capacity_policy.can_assign(customer, 9999).reason == 'not_found'
    assert capacity_policy.can_assign(customer, inactive).reason == 'inactive'


def test_unparseable_or_negative_limit_falls_back_to_default(ctx):
    db.session.add(Parameter(key='MAX_CUSTOMERS_PER_CONSULTANT', value='çok', type='STRING'))
    db.session.commit()
    assert capacity_policy.limit() == 1

    parameter_service.set('MAX_CUSTOMERS_PER_CONSULTANT', '-3', 'NUMBER')
    assert capacity_policy.limit() == 1


def test_lowercase_key_is_the_same_parameter(ctx):
    parameter_service.set('max_customers_per_consultant', 4, 'NUMBER')
    assert capacity_policy.limit() == 4


def test_legacy_key_is_read_as_fallback(ctx):
    set_limit(3, key=LEGACY_MAX_CUSTOMERS_KEY)
    assert capacity_policy.limit() == 3


def test_configured_default_is_used(ctx):
    policy = CapacityPolicy(Directory(db.session), parameter_service, default_limit=5)
    assert policy.limit() == 5


def test_consultants_with_space_excludes_candidate(consultants):
    a, b = consultants
    make_customer('5550000001', consultant_id=b)

    assert [c.id for c in capacity_policy.consultants_with_space()] == [a]
    assert capacity_policy.consultants_with_space(exclude_id=a) == []


def test_manager_with_consultant_role_is_not_an_alternative(ctx):
    busy = make_user('a@olka.com', RoleName.SALES_CONSULTANT)
    make_user('mudur@olka.com', RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
    make_customer('5550000001', consultant_id=busy)

    assert capacity_policy.consultants_with_space(exclude_id=busy) == []
    assert capacity_policy.can_assign(make_customer('5550000002'), busy)


def test_stored_infinite_limit_falls_back_to_default(ctx):
    busy = make_user('a@olka.com', RoleName.SALES_CONSULTANT)
    free = make_user('b@olka.com', RoleName.SALES_CONSULTANT)
    make_customer('5550000001', consultant_id=busy)
    db.session.add(Parameter(key='MAX_CUSTOMERS_PER_CONSULTANT', value='inf', type='NUMBER'))
    db.session.commit()
    customer = make_customer('5550000002')

    assert capacity_policy.limit() == 1
    assert capacity_policy.can_assign(customer, busy).reason == 'capacity'
    assert assignment_service.take(customer, free).assigned_consultant_id == free
