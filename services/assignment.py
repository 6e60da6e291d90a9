"""
OLKA Mağaza Backoffice - Müşteri Atama
Havuzdan alma, danışmanlar arası transfer, havuza bırakma
"""

import logging
from datetime import datetime
from typing import Optional

from errors import (AlreadyAssigned, AlreadyInPool, CapacityExceeded, Conflict,
                    Inactive, NotFound, ValidationError)
from models import Customer
from services.capacity import CapacityPolicy, Decision
from services.directory import Directory
from services.waiting_time import format_waiting_time

logger = logging.getLogger(__name__)


class AssignmentService:
    """Müşteri sahipliği değişiklikleri; her yazma koşullu update ile yapılır"""

    def __init__(self, session, directory: Directory, policy: CapacityPolicy):
        self.session = session
        self.directory = directory
        self.policy = policy

    def _get_customer(self, customer_id: int) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound('Müşteri bulunamadı')
        return customer

    def _require_active(self, consultant_id: int):
        consultant = self.directory.get_consultant(consultant_id)
        if consultant is None:
            raise NotFound('Danışman bulunamadı')
        if not consultant.is_active:
            raise Inactive(f'{consultant.full_name} aktif değil')
        return consultant

    @staticmethod
    def _enforce(decision: Decision):
        if decision:
            return
        if decision.reason == 'not_found':
            raise NotFound(decision.message)
        if decision.reason == 'inactive':
            raise Inactive(decision.message)
        raise CapacityExceeded(decision.message)

    def _conditional_update(self, customer_id: int, expected_owner: Optional[int], values: dict) -> int:
        query = self.session.query(Customer).filter(Customer.id == customer_id)
        if expected_owner is None:
            query = query.filter(Customer.assigned_consultant_id.is_(None))
        else:
            query = query.filter(Customer.assigned_consultant_id == expected_owner)
        values[Customer.updated_at] = datetime.utcnow()
        return query.update(values, synchronize_session=False)

    def take(self, customer_id: int, consultant_id: int) -> Customer:
        """Havuzdaki müşteriyi danışmana ata"""
        customer = self._get_customer(customer_id)
        self._require_active(consultant_id)

        if customer.assigned_consultant_id is not None:
            raise AlreadyAssigned('Bu müşteri zaten bir danışmana atanmış')

        self._enforce(self.policy.can_assign(customer_id, consultant_id))

        updated = self._conditional_update(customer_id, None, {
            Customer.assigned_consultant_id: consultant_id,
        })
        if updated == 0:
            self.session.rollback()
            raise AlreadyAssigned('Bu müşteri zaten bir danışmana atanmış')

        self.session.commit()
        self.session.refresh(customer)
        logger.info("Müşteri %s danışman %s'e atandı", customer_id, consultant_id)
        return customer

    def transfer(self, customer_id: int, from_id: Optional[int], to_id: int) -> Customer:
        """Müşteriyi bir danışmandan diğerine aktar"""
        customer = self._get_customer(customer_id)
        if from_id is None:
            from_id = customer.assigned_consultant_id
        if from_id is None:
            raise Conflict('Müşteri havuzda, transfer yerine atama yapın')
        if from_id == to_id:
            raise ValidationError('Müşteri zaten bu danışmana atanmış')

        self._require_active(to_id)
        self._enforce(self.policy.can_assign(customer_id, to_id))

        updated = self._conditional_update(customer_id, from_id, {
            Customer.assigned_consultant_id: to_id,
        })
        if updated == 0:
            self.session.rollback()
            raise Conflict('Müşterinin danışmanı değişmiş, lütfen sayfayı yenileyin')

        self.session.commit()
        self.session.refresh(customer)
        logger.info("Müşteri %s transfer edildi: %s -> %s", customer_id, from_id, to_id)
        return customer

    def release_to_pool(self, customer_id: int) -> Customer:
        """Müşteriyi havuza bırak"""
        customer = self._get_customer(customer_id)
        owner = customer.assigned_consultant_id
        if owner is None:
            raise AlreadyInPool('Müşteri zaten havuzda')

        updated = self._conditional_update(customer_id, owner, {
            Customer.assigned_consultant_id: None,
            Customer.moved_to_pool_at: datetime.utcnow(),
        })
        if updated == 0:
            self.session.rollback()
            raise Conflict('Müşterinin danışmanı değişmiş, lütfen sayfayı yenileyin')

        self.session.commit()
        self.session.refresh(customer)
        logger.info("Müşteri %s havuza bırakıldı (önceki danışman %s)", customer_id, owner)
        return customer

    @staticmethod
    def waiting_since(customer: Customer) -> datetime:
        return customer.moved_to_pool_at or customer.created_at

    def waiting_time(self, customer: Customer, now: Optional[datetime] = None) -> str:
        return format_waiting_time(self.waiting_since(customer), now)
