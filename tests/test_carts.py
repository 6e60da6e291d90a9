import pytest

from app import cart_service
from errors import NotFound, PermissionDenied, ValidationError
from models import db, Cart, CartStatus, Customer, Sale, User
from permissions import RoleName
from services.carts import CartService, cart_total

from conftest import make_customer, make_user


@pytest.fixture
def owned(ctx):
    consultant = make_user('satis@olka.com', RoleName.SALES_CONSULTANT)
    customer = make_customer('5550000001', consultant_id=consultant)
    return customer, consultant


def test_totals_follow_every_change(owned):
    customer, consultant = owned
    cart = cart_service.get_or_open_cart(customer, consultant)

    cart_service.add_item(cart, 'Gömlek', 100.0)
    assert cart.total_amount == 100.0

    pants = cart_service.add_item(cart, 'Pantolon', 15.0, quantity=2)
    assert cart.total_amount == 130.0

    cart_service.add_item(cart, 'Kemer', 50.0)
    assert cart.total_amount == 180.0

    cart_service.update_quantity(pants, 4)
    assert cart.total_amount == 210.0

    cart = cart_service.remove_item(pants)
    assert cart.total_amount == 150.0
    assert [i.title for i in cart.items] == ['Gömlek', 'Kemer']
    assert cart.total_amount == cart_total(cart.items)


def test_same_sku_is_a_new_line_unless_merged(owned):
    customer, consultant = owned
    cart = cart_service.get_or_open_cart(customer, consultant)

    cart_service.add_item(cart, 'Gömlek', 100.0, sku='GML-1')
    cart_service.add_item(cart, 'Gömlek', 100.0, sku='GML-1')
    assert len(cart.items) == 2

    merged = cart_service.add_item(cart, 'Gömlek', 100.0, sku='GML-1', quantity=3, merge=True)
    assert merged.quantity == 4
    assert len(cart.items) == 2
    assert cart.total_amount == 500.0


def test_invalid_quantity_or_price_is_rejected(owned):
    customer, consultant = owned
    cart = cart_service.get_or_open_cart(customer, consultant)
    item = cart_service.add_item(cart, 'Gömlek', 100.0)

    with pytest.raises(ValidationError):
        cart_service.add_item(cart, 'Çorap', 10.0, quantity=0)
    with pytest.raises(ValidationError):
        cart_service.add_item(cart, 'Çorap', -1.0)
    with pytest.raises(ValidationError):
        cart_service.update_quantity(item, 0)
    assert cart.total_amount == 100.0


def test_one_open_cart_per_customer(owned):
    customer, consultant = owned
    first = cart_service.open_cart(customer, consultant)

    with pytest.raises(ValidationError):
        cart_service.open_cart(customer, consultant)
    assert cart_service.get_or_open_cart(customer, consultant).id == first.id
    assert db.session.query(Cart).filter_by(customer_id=customer).count() == 1


def test_only_the_assigned_consultant_touches_the_cart(owned):
    customer, _ = owned
    stranger = make_user('satis2@olka.com', RoleName.SALES_CONSULTANT)

    with pytest.raises(PermissionDenied):
        cart_service.get_or_open_cart(customer, stranger)
    with pytest.raises(NotFound):
        cart_service.get_or_open_cart(9999, stranger)


def test_item_lookup_is_scoped_to_the_open_cart(owned):
    customer, consultant = owned
    other_owner = make_user('satis2@olka.com', RoleName.SALES_CONSULTANT)
    other_customer = make_customer('5550000002', consultant_id=other_owner)
    other_item = cart_service.add_item(cart_service.get_or_open_cart(other_customer, other_owner), 'Ceket', 10.0)
    cart_service.get_or_open_cart(customer, consultant)

    with pytest.raises(NotFound):
        cart_service.get_item(customer, other_item.id)


def test_checkout_turns_cart_into_sale(owned):
    customer, consultant = owned
    cart = cart_service.get_or_open_cart(customer, consultant)
    cart_service.add_item(cart, 'Gömlek', 100.0)
    cart_service.add_item(cart, 'Pantolon', 15.0, quantity=2)

    sale = cart_service.checkout(customer, consultant, 'cash')

    assert sale.amount == 130.0
    assert sale.payment_method == 'cash'
    assert sale.cart_id == cart.id
    assert '2 x Pantolon' in sale.description

    db.session.refresh(cart)
    assert cart.status == CartStatus.CHECKED_OUT.value
    assert cart.closed_at is not None

    stored = db.session.get(Customer, customer)
    assert stored.total_spent == 130.0
    assert stored.total_orders == 1
    assert stored.last_visit is not None

    # Kapanan sepetten sonra yenisi açılabilir
    assert cart_service.get_open_cart(customer) is None
    assert cart_service.get_or_open_cart(customer, consultant).id != cart.id
    with pytest.raises(ValidationError):
        cart_service.add_item(cart, 'Kemer', 50.0)


def test_empty_cart_cannot_be_checked_out(owned):
    customer, consultant = owned
    with pytest.raises(ValidationError):
        cart_service.checkout(customer, consultant)

    cart_service.get_or_open_cart(customer, consultant)
    with pytest.raises(ValidationError):
        cart_service.checkout(customer, consultant)
    assert db.session.query(Sale).count() == 0


def test_share_builds_payload_and_waits(owned):
    customer, consultant = owned
    delays = []
    service = CartService(db.session, share_delay_range=(0.5, 1.5), sleep=delays.append)
    cart = service.get_or_open_cart(customer, consultant)
    service.add_item(cart, 'Gömlek', 100.0, sku='GML-1')

    payload = service.share(customer, db.session.get(User, consultant))

    assert payload['shareId'].startswith('SHARE_')
    assert payload['cart']['totalAmount'] == 100.0
    assert payload['cart']['items'][0]['totalPrice'] == 100.0
    assert payload['consultant']['id'] == consultant
    assert len(delays) == 1 and 0.5 <= delays[0] <= 1.5


def test_share_needs_an_open_cart(owned):
    customer, consultant = owned
    with pytest.raises(NotFound):
        cart_service.share(customer, db.session.get(User, consultant))
