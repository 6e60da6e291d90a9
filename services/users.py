"""
OLKA Mağaza Backoffice - Kullanıcı ve Rol Servisi
"""

import logging
from typing import Iterable, List

from errors import NotFound, ValidationError
from models import Permission, Role, RolePermission, User, UserRole
from permissions import PERMISSIONS, ROLE_TEMPLATES, RoleName, get_role_permissions

logger = logging.getLogger(__name__)


class RoleService:
    """Kapalı rol/yetki kümesinin veritabanı karşılığı"""

    def __init__(self, session):
        self.session = session

    def ensure_defaults(self):
        """Rolleri, yetkileri ve şablon eşleşmelerini oluştur (idempotent)"""
        perms = {}
        for module in PERMISSIONS.values():
            for code, description in module['permissions'].items():
                perm = self.session.query(Permission).filter_by(name=code.value).first()
                if perm is None:
                    perm = Permission(name=code.value, description=description)
                    self.session.add(perm)
                perms[code.value] = perm

        for role_name, template in ROLE_TEMPLATES.items():
            role = self.session.query(Role).filter_by(name=role_name.value).first()
            if role is None:
                role = Role(name=role_name.value, description=template['description'])
                self.session.add(role)
                self.session.flush()
                for code in get_role_permissions(role_name):
                    self.session.add(RolePermission(role_id=role.id, permission_id=perms[code.value].id))

        self.session.commit()

    def get_by_name(self, name) -> Role:
        role_name = getattr(name, 'value', name)
        role = self.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            raise NotFound(f"'{role_name}' rolü bulunamadı")
        return role

    def get(self, role_id: int) -> Role:
        role = self.session.get(Role, role_id)
        if role is None:
            raise NotFound('Rol bulunamadı')
        return role

    def list_roles(self) -> List[Role]:
        return self.session.query(Role).order_by(Role.name).all()

    def list_permissions(self) -> List[Permission]:
        return self.session.query(Permission).order_by(Permission.name).all()

    def set_permissions(self, role_id: int, codes: Iterable) -> Role:
        """Rolün yetki kümesini verilenle değiştir"""
        role = self.get(role_id)
        wanted = {getattr(c, 'value', c) for c in codes}

        perms = self.session.query(Permission).filter(Permission.name.in_(wanted)).all() if wanted else []
        missing = wanted - {p.name for p in perms}
        if missing:
            raise ValidationError(f"Tanımsız yetki: {', '.join(sorted(missing))}")

        wanted_ids = {p.id for p in perms}
        existing = {rp.permission_id: rp for rp in role.permissions}
        for permission_id, role_perm in existing.items():
            role_perm.is_active = permission_id in wanted_ids
        for permission_id in wanted_ids - set(existing):
            self.session.add(RolePermission(role_id=role.id, permission_id=permission_id))

        self.session.commit()
        logger.info("Rol yetkileri güncellendi: %s -> %s", role.name, sorted(wanted))
        return role


class UserService:
    """Kullanıcı oluşturma, rol atama, aktif/pasif"""

    def __init__(self, session, roles: RoleService):
        self.session = session
        self.roles = roles

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFound('Kullanıcı bulunamadı')
        return user

    def get_by_email(self, email: str):
        return self.session.query(User).filter_by(email=(email or '').strip().lower()).first()

    def list(self) -> List[User]:
        return self.session.query(User).order_by(User.first_name, User.last_name).all()

    def create(self, data) -> User:
        if self.get_by_email(data.email) is not None:
            raise ValidationError('Bu e-posta adresi zaten kullanılıyor')

        user = User(
            email=data.email.lower(),
            first_name=data.first_name,
            last_name=data.last_name,
            full_name=f"{data.first_name} {data.last_name}",
            phone=data.phone,
            is_active=data.active,
        )
        user.set_password(data.password)
        self.session.add(user)
        self.session.flush()

        for role_name in data.roles:
            role = self.roles.get_by_name(role_name)
            self.session.add(UserRole(user_id=user.id, role_id=role.id))

        self.session.commit()
        logger.info("Kullanıcı oluşturuldu: %s (%s)", user.email, [r.value for r in data.roles])
        return user

    def set_roles(self, user_id: int, role_names: Iterable) -> User:
        user = self.get(user_id)
        wanted = {self.roles.get_by_name(name).id for name in role_names}
        if not wanted:
            raise ValidationError('En az bir rol seçmelisiniz')

        existing = {ur.role_id: ur for ur in user.user_roles}
        for role_id, user_role in existing.items():
            user_role.is_active = role_id in wanted
        for role_id in wanted - set(existing):
            self.session.add(UserRole(user_id=user.id, role_id=role_id))

        self.session.commit()
        logger.info("Kullanıcı rolleri güncellendi: %s -> %s", user.email, sorted(user.active_role_names()))
        return user

    def toggle_status(self, user_id: int, acting_user_id: int) -> User:
        user = self.get(user_id)
        if user.id == acting_user_id and user.is_active:
            raise ValidationError('Kendi hesabınızı pasif yapamazsınız')

        user.is_active = not user.is_active
        self.session.commit()
        logger.info("Kullanıcı durumu değişti: %s aktif=%s", user.email, user.is_active)
        return user

    def by_role(self, role, directory, policy) -> List[dict]:
        """Roldeki aktif kullanıcılar, müşteri yükü ve sınır ile"""
        role_name = getattr(role, 'value', role)
        try:
            RoleName(role_name)
        except ValueError:
            raise NotFound(f"'{role_name}' rolü bulunamadı")

        consultants = directory.consultants_with_role(role_name)
        loads = directory.load_by_consultant(c.id for c in consultants)
        limit = policy.limit()
        result = []
        for consultant in consultants:
            user = self.get(consultant.id)
            result.append({
                'id': user.id,
                'firstName': user.first_name,
                'lastName': user.last_name,
                'email': user.email,
                'customerCount': loads[user.id],
                'maxCustomers': limit,
            })
        return result
