"""
OLKA Mağaza Backoffice - Sepet / Satış
Müşteri başına tek açık sepet, toplam her değişiklikte yeniden hesaplanır
"""

import logging
import random
import time
import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError

from errors import NotFound, PermissionDenied, ValidationError
from models import Cart, CartItem, CartStatus, Customer, Sale

logger = logging.getLogger(__name__)


def line_total(item) -> float:
    return item.quantity * item.unit_price


def cart_total(items: Iterable) -> float:
    return sum(line_total(item) for item in items)


class CartService:
    """Sepet işlemleri; sadece müşterinin danışmanı sepete dokunabilir"""

    def __init__(self, session, share_delay_range=(0.5, 1.5), sleep=time.sleep):
        self.session = session
        self.share_delay_range = share_delay_range
        self.sleep = sleep

    # ==================== YARDIMCILAR ====================

    def _customer(self, customer_id: int) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound('Müşteri bulunamadı')
        return customer

    def require_owner(self, customer_id: int, consultant_id: int) -> Customer:
        customer = self._customer(customer_id)
        if customer.assigned_consultant_id != consultant_id:
            raise PermissionDenied('Bu müşteri size atanmamış')
        return customer

    def _recompute(self, cart: Cart):
        cart.total_amount = cart_total(cart.items)

    # ==================== SEPET ====================

    def get_open_cart(self, customer_id: int) -> Optional[Cart]:
        return (self.session.query(Cart)
                .filter(Cart.customer_id == customer_id, Cart.status == CartStatus.OPEN.value)
                .first())

    def open_cart(self, customer_id: int, consultant_id: int) -> Cart:
        self.require_owner(customer_id, consultant_id)
        if self.get_open_cart(customer_id) is not None:
            raise ValidationError('Bu müşteri için zaten açık sepet mevcut')

        cart = Cart(customer_id=customer_id, consultant_id=consultant_id,
                    status=CartStatus.OPEN.value, total_amount=0)
        self.session.add(cart)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ValidationError('Bu müşteri için zaten açık sepet mevcut')

        logger.info("Sepet açıldı: müşteri=%s danışman=%s sepet=%s", customer_id, consultant_id, cart.id)
        return cart

    def get_or_open_cart(self, customer_id: int, consultant_id: int) -> Cart:
        self.require_owner(customer_id, consultant_id)
        cart = self.get_open_cart(customer_id)
        if cart is not None:
            return cart

        cart = Cart(customer_id=customer_id, consultant_id=consultant_id,
                    status=CartStatus.OPEN.value, total_amount=0)
        self.session.add(cart)
        try:
            self.session.commit()
        except IntegrityError:
            # Aynı anda açılan sepet kazandı
            self.session.rollback()
            cart = self.get_open_cart(customer_id)
            if cart is None:
                raise
        return cart

    # ==================== SATIRLAR ====================

    def add_item(self, cart: Cart, title: str, unit_price: float, quantity: int = 1,
                 sku: Optional[str] = None, description: Optional[str] = None,
                 image_url: Optional[str] = None, merge: bool = False) -> CartItem:
        if cart.status != CartStatus.OPEN.value:
            raise ValidationError('Sepet kapalı')
        if quantity is None or quantity < 1:
            raise ValidationError('Adet en az 1 olmalıdır')
        if unit_price is None or unit_price < 0:
            raise ValidationError('Birim fiyat negatif olamaz')

        item = None
        if merge and sku:
            item = next((i for i in cart.items if i.sku == sku), None)

        if item is not None:
            item.quantity += quantity
        else:
            item = CartItem(sku=sku, title=title, description=description, image_url=image_url,
                            quantity=quantity, unit_price=unit_price)
            cart.items.append(item)

        self._recompute(cart)
        self.session.commit()
        return item

    def get_item(self, customer_id: int, item_id: int) -> CartItem:
        cart = self.get_open_cart(customer_id)
        item = self.session.get(CartItem, item_id)
        if cart is None or item is None or item.cart_id != cart.id:
            raise NotFound('Sepet ürünü bulunamadı')
        return item

    def update_quantity(self, item: CartItem, quantity: int) -> CartItem:
        if quantity is None or quantity < 1:
            raise ValidationError('Adet en az 1 olmalıdır')
        item.quantity = quantity
        self._recompute(item.cart)
        self.session.commit()
        return item

    def remove_item(self, item: CartItem) -> Cart:
        cart = item.cart
        cart.items.remove(item)
        self._recompute(cart)
        self.session.commit()
        return cart

    # ==================== PAYLAŞ / ÖDEME ====================

    def share(self, customer_id: int, consultant) -> dict:
        """Sepeti harici uygulamaya gönder (simülasyon)"""
        customer = self.require_owner(customer_id, consultant.id)
        cart = self.get_open_cart(customer_id)
        if cart is None:
            raise NotFound('Açık sepet bulunamadı')

        payload = {
            'customer': {
                'id': customer.id,
                'name': f"{customer.first_name} {customer.last_name}",
                'phone': customer.phone,
                'email': customer.email,
            },
            'cart': {
                'id': cart.id,
                'totalAmount': cart.total_amount,
                'itemCount': len(cart.items),
                'items': [{
                    'sku': item.sku,
                    'title': item.title,
                    'description': item.description,
                    'imageUrl': item.image_url,
                    'quantity': item.quantity,
                    'unitPrice': item.unit_price,
                    'totalPrice': line_total(item),
                } for item in cart.items],
            },
            'consultant': {
                'id': consultant.id,
                'name': consultant.display_name(),
                'email': consultant.email,
            },
            'timestamp': datetime.utcnow().isoformat(),
            'shareId': f"SHARE_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
        }

        self._send_to_external_app(payload)
        logger.info("Sepet paylaşıldı: sepet=%s shareId=%s", cart.id, payload['shareId'])
        return payload

    def _send_to_external_app(self, payload: dict):
        low, high = self.share_delay_range
        self.sleep(random.uniform(low, high))

    def checkout(self, customer_id: int, consultant_id: int, payment_method: str = 'card',
                 title: Optional[str] = None) -> Sale:
        """Açık sepeti satışa çevir ve kapat"""
        customer = self.require_owner(customer_id, consultant_id)
        cart = self.get_open_cart(customer_id)
        if cart is None or not cart.items:
            raise ValidationError('Sepet boş, ödeme alınamaz')

        self._recompute(cart)
        amount = cart.total_amount
        now = datetime.utcnow()

        sale = Sale(
            customer_id=customer.id,
            consultant_id=consultant_id,
            cart_id=cart.id,
            title=title or f"Satış #{cart.id} ({len(cart.items)} ürün)",
            description=', '.join(f"{i.quantity} x {i.title}" for i in cart.items),
            amount=amount,
            payment_method=payment_method,
            invoice_date=now,
        )
        self.session.add(sale)

        cart.status = CartStatus.CHECKED_OUT.value
        cart.closed_at = now

        customer.total_spent = (customer.total_spent or 0) + amount
        customer.total_orders = (customer.total_orders or 0) + 1
        customer.last_visit = now

        self.session.commit()
        logger.info("Ödeme alındı: müşteri=%s sepet=%s tutar=%.2f yöntem=%s",
                    customer.id, cart.id, amount, payment_method)
        return sale
