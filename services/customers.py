"""
OLKA Mağaza Backoffice - Müşteri Servisi
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_

from errors import NotFound, ValidationError
from models import Customer, Sale
from services.waiting_time import format_waiting_time

logger = logging.getLogger(__name__)


class CustomerService:
    """Müşteri kayıt, arama ve havuz listeleri"""

    def __init__(self, session, page_size: int = 10, max_page_size: int = 100):
        self.session = session
        self.page_size = page_size
        self.max_page_size = max_page_size

    def get(self, customer_id: int) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound('Müşteri bulunamadı')
        return customer

    def _phone_taken(self, phone, exclude_id=None):
        query = self.session.query(Customer.id).filter(Customer.phone == phone)
        if exclude_id is not None:
            query = query.filter(Customer.id != exclude_id)
        return query.first() is not None

    def _national_id_taken(self, national_id, exclude_id=None):
        query = self.session.query(Customer.id).filter(Customer.national_id == national_id)
        if exclude_id is not None:
            query = query.filter(Customer.id != exclude_id)
        return query.first() is not None

    def create(self, data, consultant_id: Optional[int] = None) -> Customer:
        if self._phone_taken(data.phone):
            raise ValidationError('Bu telefon numarası zaten kayıtlı')
        if data.national_id and self._national_id_taken(data.national_id):
            raise ValidationError('Bu TC Kimlik Numarası zaten kayıtlı')

        fields = data.model_dump()
        fields['segment'] = data.segment.value
        customer = Customer(**fields)
        customer.full_name = f"{data.first_name} {data.last_name}"
        customer.assigned_consultant_id = consultant_id

        self.session.add(customer)
        self.session.commit()
        logger.info("Müşteri oluşturuldu: %s (%s)", customer.id, customer.full_name)
        return customer

    def update(self, customer_id: int, data) -> Customer:
        customer = self.get(customer_id)
        fields = data.model_dump(exclude_unset=True)

        phone = fields.get('phone')
        if phone and phone != customer.phone and self._phone_taken(phone, exclude_id=customer.id):
            raise ValidationError('Bu telefon numarası zaten kullanılıyor')

        national_id = fields.get('national_id')
        if (national_id and national_id != customer.national_id
                and self._national_id_taken(national_id, exclude_id=customer.id)):
            raise ValidationError('Bu TC Kimlik Numarası zaten kullanılıyor')

        for name, value in fields.items():
            # None gelen onay alanları mevcut değeri korur
            if name.startswith('consent_') and value is None:
                continue
            if name in ('first_name', 'last_name', 'phone', 'segment') and value is None:
                continue
            if name == 'segment':
                value = value.value
            setattr(customer, name, value)

        customer.full_name = f"{customer.first_name} {customer.last_name}"
        self.session.commit()
        logger.info("Müşteri güncellendi: %s", customer.id)
        return customer

    def delete(self, customer_id: int):
        customer = self.get(customer_id)
        self.session.delete(customer)
        self.session.commit()
        logger.info("Müşteri silindi: %s", customer_id)

    def list(self, page: int = 1, per_page: Optional[int] = None, segment: Optional[str] = None):
        """Sayfalı liste -> (müşteriler, toplam)"""
        per_page = min(per_page or self.page_size, self.max_page_size)
        page = max(page, 1)

        query = self.session.query(Customer)
        if segment:
            query = query.filter(Customer.segment == segment)

        total = query.count()
        items = (query.order_by(Customer.created_at.desc(), Customer.id.desc())
                 .offset((page - 1) * per_page).limit(per_page).all())
        return items, total

    def search(self, phone=None, email=None, name=None, national_id=None) -> List[Customer]:
        if not any([phone, email, name, national_id]):
            raise ValidationError('Arama parametresi gerekli')

        query = self.session.query(Customer)
        if phone:
            query = query.filter(Customer.phone.contains(phone))
        if email:
            query = query.filter(func.lower(Customer.email).contains(email.lower()))
        if name:
            pattern = f"%{name.lower()}%"
            query = query.filter(or_(
                func.lower(Customer.first_name).like(pattern),
                func.lower(Customer.last_name).like(pattern),
                func.lower(Customer.full_name).like(pattern),
            ))
        if national_id:
            query = query.filter(Customer.national_id.contains(national_id))

        return query.order_by(Customer.created_at.desc()).all()

    def of_consultant(self, consultant_id: int) -> List[Customer]:
        return (self.session.query(Customer)
                .filter(Customer.assigned_consultant_id == consultant_id)
                .order_by(Customer.updated_at.desc())
                .all())

    def pool(self, now: Optional[datetime] = None) -> List[Tuple[Customer, str]]:
        """Havuzdaki müşteriler, en uzun bekleyen önce"""
        customers = (self.session.query(Customer)
                     .filter(Customer.assigned_consultant_id.is_(None))
                     .all())
        now = now or datetime.utcnow()
        customers.sort(key=lambda c: c.moved_to_pool_at or c.created_at)
        return [(c, format_waiting_time(c.moved_to_pool_at or c.created_at, now)) for c in customers]

    def sales(self, customer_id: int) -> List[Sale]:
        self.get(customer_id)
        return (self.session.query(Sale)
                .filter(Sale.customer_id == customer_id)
                .order_by(Sale.invoice_date.desc())
                .all())
