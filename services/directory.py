"""
OLKA Mağaza Backoffice - Kullanıcı Dizini
Danışman bilgisi ve müşteri yükü (salt okunur)
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import func

from errors import NotFound
from models import Customer, Role, User, UserRole
from permissions import pick_primary_role


@dataclass(frozen=True)
class ConsultantInfo:
    """Politika kararları için kullanıcı özeti"""
    id: int
    full_name: str
    is_active: bool
    roles: FrozenSet[str]

    def has_role(self, *roles) -> bool:
        return any(getattr(r, 'value', r) in self.roles for r in roles)

    @property
    def primary_role(self):
        return pick_primary_role(self.roles)


class Directory:
    """Kullanıcı / rol / yük sorguları"""

    def __init__(self, session):
        self.session = session

    def _to_info(self, user: User) -> ConsultantInfo:
        return ConsultantInfo(
            id=user.id,
            full_name=user.display_name(),
            is_active=bool(user.is_active),
            roles=frozenset(user.active_role_names()),
        )

    def get_consultant(self, user_id: int) -> Optional[ConsultantInfo]:
        if user_id is None:
            return None
        user = self.session.get(User, user_id)
        if user is None:
            return None
        return self._to_info(user)

    def require_consultant(self, user_id: int) -> ConsultantInfo:
        info = self.get_consultant(user_id)
        if info is None:
            raise NotFound('Danışman bulunamadı')
        return info

    def current_load(self, user_id: int) -> int:
        """Danışmana atanmış müşteri sayısı"""
        return (self.session.query(func.count(Customer.id))
                .filter(Customer.assigned_consultant_id == user_id)
                .scalar()) or 0

    def load_by_consultant(self, user_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(user_ids)
        loads = {user_id: 0 for user_id in ids}
        if not ids:
            return loads

        rows = (self.session.query(Customer.assigned_consultant_id, func.count(Customer.id))
                .filter(Customer.assigned_consultant_id.in_(ids))
                .group_by(Customer.assigned_consultant_id)
                .all())
        for user_id, count in rows:
            loads[user_id] = count
        return loads

    def consultants_with_role(self, role, active_only: bool = True) -> List[ConsultantInfo]:
        role_name = getattr(role, 'value', role)
        query = (self.session.query(User)
                 .join(UserRole, UserRole.user_id == User.id)
                 .join(Role, Role.id == UserRole.role_id)
                 .filter(Role.name == role_name, UserRole.is_active.is_(True)))
        if active_only:
            query = query.filter(User.is_active.is_(True))
        users = query.order_by(User.first_name, User.last_name).distinct().all()
        return [self._to_info(user) for user in users]
