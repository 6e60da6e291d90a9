"""
OLKA Mağaza Backoffice - Kapasite Politikası
Bir danışmana yeni müşteri atanabilir mi? (yan etkisiz karar)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from permissions import CAPACITY_LIMITED_ROLE, UNLIMITED_ROLES
from services.directory import ConsultantInfo, Directory
from services.parameters import ParameterService

logger = logging.getLogger(__name__)

MAX_CUSTOMERS_KEY = 'MAX_CUSTOMERS_PER_CONSULTANT'
# Eski kurulumlarda kalan yazım; scripts/fix_params.py ile taşınır
LEGACY_MAX_CUSTOMERS_KEY = 'MAX_CUSTOMER_PER_CONSULTANT'


@dataclass(frozen=True)
class Decision:
    """Allow ya da Deny(reason)"""
    allowed: bool
    reason: Optional[str] = None  # not_found, inactive, capacity
    message: Optional[str] = None

    @classmethod
    def allow(cls):
        return cls(True)

    @classmethod
    def deny(cls, reason, message):
        return cls(False, reason, message)

    def __bool__(self):
        return self.allowed


class CapacityPolicy:
    """Satış danışmanı başına müşteri sınırı"""

    def __init__(self, directory: Directory, parameters: ParameterService, default_limit: int = 1):
        self.directory = directory
        self.parameters = parameters
        self.default_limit = default_limit

    def limit(self) -> int:
        value = self.parameters.get_int(MAX_CUSTOMERS_KEY)
        if value is not None:
            return value

        legacy = self.parameters.get_int(LEGACY_MAX_CUSTOMERS_KEY)
        if legacy is not None:
            logger.warning("%s bulunamadı, eski anahtar %s kullanılıyor (scripts/fix_params.py)",
                           MAX_CUSTOMERS_KEY, LEGACY_MAX_CUSTOMERS_KEY)
            return legacy

        return self.default_limit

    def consultants_with_space(self, exclude_id: Optional[int] = None,
                               limit: Optional[int] = None) -> List[ConsultantInfo]:
        """Sınırın altında yükü olan aktif satış danışmanları"""
        if limit is None:
            limit = self.limit()
        # Müdür rolü de olan danışman sınırsızdır, alternatif sayılmaz
        candidates = [c for c in self.directory.consultants_with_role(CAPACITY_LIMITED_ROLE)
                      if c.id != exclude_id and not c.has_role(*UNLIMITED_ROLES)]
        loads = self.directory.load_by_consultant(c.id for c in candidates)
        return [c for c in candidates if loads[c.id] < limit]

    def can_assign(self, customer_id: Optional[int], candidate_id: int) -> Decision:
        candidate = self.directory.get_consultant(candidate_id)
        if candidate is None:
            return Decision.deny('not_found', 'Danışman bulunamadı')
        if not candidate.is_active:
            return Decision.deny('inactive', f'{candidate.full_name} aktif değil')

        # Müdür sınırsız; müdür + danışman rolü olan da sınırsız sayılır
        if candidate.has_role(*UNLIMITED_ROLES):
            return Decision.allow()
        if not candidate.has_role(CAPACITY_LIMITED_ROLE):
            return Decision.allow()

        limit = self.limit()
        load = self.directory.current_load(candidate.id)
        if load < limit:
            return Decision.allow()

        others = self.consultants_with_space(exclude_id=candidate.id, limit=limit)
        if others:
            logger.info("Kapasite reddi: müşteri=%s danışman=%s yük=%s sınır=%s boşta=%s",
                        customer_id, candidate.id, load, limit, len(others))
            return Decision.deny(
                'capacity',
                f'{candidate.full_name} zaten {load} müşteriye sahip. '
                f'Boşta satış danışmanı var, lütfen onu tercih edin.'
            )

        logger.info("Kapasite aşıldı ama boşta danışman yok, izin verildi: müşteri=%s danışman=%s yük=%s sınır=%s",
                    customer_id, candidate.id, load, limit)
        return Decision.allow()
