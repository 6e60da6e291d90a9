"""
OLKA Mağaza Backoffice - Görev Yaşam Döngüsü
Havuz (Bekliyor) -> Devam Ediyor -> Tamamlandı | İptal
"""

import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, or_

from errors import (AlreadyAssigned, Conflict, Inactive, NotFound,
                    PermissionDenied, ValidationError)
from models import Customer, Task, TaskDefinition, TaskStatus, User
from permissions import RoleName
from services.directory import Directory
from services.waiting_time import format_waiting_time

logger = logging.getLogger(__name__)

# Veritabanında eski kayıtlarda kalan durum yazımları
STATUS_ALIASES = {
    TaskStatus.PENDING: ['Bekliyor', 'PENDING'],
    TaskStatus.IN_PROGRESS: ['Devam Ediyor', 'ASSIGNED', 'IN_PROGRESS'],
    TaskStatus.COMPLETED: ['Tamamlandı', 'COMPLETED', 'Tamamlanan'],
    TaskStatus.CANCELLED: ['İptal', 'CANCELLED'],
}

PRIORITY_RANK = {'urgent': 4, 'high': 3, 'medium': 2, 'low': 1}


def status_filter(status):
    """Durum filtresi (eski yazımlar dahil)"""
    try:
        parsed = TaskStatus.parse(status)
    except ValueError:
        raise ValidationError(f'Geçersiz görev durumu: {status}')
    return Task.status.in_(STATUS_ALIASES[parsed])


class TaskService:
    """Görev oluşturma, alma, tamamlama, iptal ve listeler"""

    def __init__(self, session, directory: Directory, priorities=None, default_priority='medium',
                 page_size: int = 10, max_page_size: int = 100):
        self.session = session
        self.directory = directory
        self.priorities = priorities or list(PRIORITY_RANK)
        self.default_priority = default_priority
        self.page_size = page_size
        self.max_page_size = max_page_size

    def get(self, task_id: int) -> Task:
        task = self.session.get(Task, task_id)
        if task is None:
            raise NotFound('Görev bulunamadı')
        return task

    def _find_definition(self, task_type, target_role) -> Optional[TaskDefinition]:
        query = self.session.query(TaskDefinition).filter(TaskDefinition.name == task_type)
        if target_role is not None:
            query = query.filter(TaskDefinition.role == target_role.value)
        return query.first()

    # ==================== OLUŞTURMA ====================

    def create(self, creator_id: int, data) -> Task:
        title = (data.title or '').strip()
        task_type = (data.type or '').strip()
        if not title:
            raise ValidationError('Görev başlığı zorunludur')
        if not task_type:
            raise ValidationError('Görev türü zorunludur')

        priority = data.priority or self.default_priority
        if priority not in self.priorities:
            raise ValidationError(f'Geçersiz aciliyet seviyesi: {priority}')

        target_role = data.target_role
        if target_role is not None and not isinstance(target_role, RoleName):
            try:
                target_role = RoleName(target_role)
            except ValueError:
                raise ValidationError(f'Geçersiz hedef rol: {target_role}')

        product_code = (data.product_code or '').strip() or None
        definition = self._find_definition(task_type, target_role)
        if definition is not None and definition.requires_product_code and not product_code:
            raise ValidationError('Bu görev için ürün kodu zorunludur')

        if data.customer_id is not None and self.session.get(Customer, data.customer_id) is None:
            raise NotFound('Müşteri bulunamadı')

        # Geçersiz kullanıcıya atanan görev havuza düşer
        assigned_to_id = None
        if data.assigned_to_id is not None and self.session.get(User, data.assigned_to_id) is not None:
            assigned_to_id = data.assigned_to_id

        task = Task(
            title=title,
            description=(data.description or '').strip() or None,
            type=task_type,
            priority=priority,
            status=(TaskStatus.IN_PROGRESS if assigned_to_id else TaskStatus.PENDING).value,
            assigned_to_id=assigned_to_id,
            target_role=target_role.value if target_role else None,
            product_code=product_code,
            delivery_location=data.delivery_location,
            customer_id=data.customer_id,
            notes=(data.notes or '').strip() or None,
            due_date=data.due_date,
            created_by_id=creator_id,
        )
        self.session.add(task)
        self.session.commit()
        logger.info("Görev oluşturuldu: %s '%s' durum=%s atanan=%s hedef=%s",
                    task.id, task.title, task.status, task.assigned_to_id, task.target_role)
        return task

    # ==================== GEÇİŞLER ====================

    def take(self, task_id: int, user_id: int) -> Task:
        """Havuzdaki görevi üstlen"""
        task = self.get(task_id)

        if task.assigned_to_id is not None:
            raise AlreadyAssigned('Bu görev zaten atanmış')
        if task.status_enum != TaskStatus.PENDING:
            raise Conflict('Bu görev havuzunda değil')

        user = self.directory.get_consultant(user_id)
        if user is None:
            raise NotFound('Kullanıcı bulunamadı')
        if not user.is_active:
            raise Inactive('Kullanıcı aktif değil')
        if task.created_by_id == user_id:
            raise PermissionDenied('Kendi oluşturduğunuz görevi alamazsınız')
        if task.target_role:
            primary = user.primary_role
            if primary is None or primary.value != task.target_role:
                raise PermissionDenied(f'Bu görev sadece {task.target_role} rolü tarafından alınabilir')

        updated = (self.session.query(Task)
                   .filter(Task.id == task_id,
                           Task.assigned_to_id.is_(None),
                           status_filter(TaskStatus.PENDING))
                   .update({
                       Task.assigned_to_id: user_id,
                       Task.status: TaskStatus.IN_PROGRESS.value,
                       Task.updated_at: datetime.utcnow(),
                   }, synchronize_session=False))
        if updated == 0:
            self.session.rollback()
            raise AlreadyAssigned('Bu görev zaten atanmış')

        self.session.commit()
        self.session.refresh(task)
        logger.info("Görev %s kullanıcı %s tarafından alındı", task_id, user_id)
        return task

    def complete(self, task_id: int, user_id: int, product_code: Optional[str] = None) -> Task:
        task = self.get(task_id)

        if task.assigned_to_id != user_id:
            raise PermissionDenied('Sadece göreve atanmış kullanıcı tamamlayabilir')
        if task.status_enum.is_terminal:
            raise Conflict('Görev zaten kapatılmış')

        confirmed = (product_code or '').strip()
        if confirmed and task.product_code and confirmed.upper() != task.product_code.strip().upper():
            raise ValidationError('Ürün kodu eşleşmiyor')

        task.status = TaskStatus.COMPLETED.value
        task.completed_at = datetime.utcnow()
        self.session.commit()
        logger.info("Görev %s tamamlandı (kullanıcı %s)", task_id, user_id)
        return task

    def cancel(self, task_id: int, user_id: int) -> Task:
        """Havuzdaki görevi iptal et (kayıt silinmez)"""
        task = self.get(task_id)

        if task.status_enum.is_terminal:
            raise Conflict('Görev zaten kapatılmış')
        if task.assigned_to_id is not None:
            raise Conflict('Atanmış görev iptal edilemez')

        user = self.directory.get_consultant(user_id)
        is_manager = user is not None and user.has_role(RoleName.STORE_MANAGER)
        if task.created_by_id != user_id and not is_manager:
            raise PermissionDenied('Bu görevi iptal etme yetkiniz yok')

        now = datetime.utcnow()
        updated = (self.session.query(Task)
                   .filter(Task.id == task_id,
                           Task.assigned_to_id.is_(None),
                           status_filter(TaskStatus.PENDING))
                   .update({
                       Task.status: TaskStatus.CANCELLED.value,
                       Task.cancelled_at: now,
                       Task.cancelled_by_id: user_id,
                       Task.updated_at: now,
                   }, synchronize_session=False))
        if updated == 0:
            self.session.rollback()
            raise Conflict('Görev bu sırada alındı, iptal edilemedi')

        self.session.commit()
        self.session.refresh(task)
        logger.info("Görev %s iptal edildi (kullanıcı %s)", task_id, user_id)
        return task

    # ==================== LİSTELER ====================

    def _page(self, query, page, per_page):
        per_page = min(per_page or self.page_size, self.max_page_size)
        page = max(page or 1, 1)
        total = query.count()
        items = (query.order_by(Task.created_at.desc(), Task.id.desc())
                 .offset((page - 1) * per_page).limit(per_page).all())
        return items, total

    @staticmethod
    def _search(query, search):
        if not search:
            return query
        pattern = f"%{search}%"
        return (query.outerjoin(Customer, Task.customer_id == Customer.id)
                .filter(or_(Task.title.ilike(pattern),
                            Task.description.ilike(pattern),
                            Customer.full_name.ilike(pattern))))

    def pool(self, user_id: int, target_role=None) -> List[Task]:
        """Kullanıcının havuzdan alabileceği görevler (aciliyet, sonra yenilik)"""
        user = self.directory.get_consultant(user_id)
        if user is None:
            raise NotFound('Kullanıcı bulunamadı')

        query = (self.session.query(Task)
                 .filter(Task.assigned_to_id.is_(None),
                         status_filter(TaskStatus.PENDING),
                         Task.created_by_id != user_id))

        if target_role is not None:
            query = query.filter(Task.target_role == getattr(target_role, 'value', target_role))
        else:
            primary = user.primary_role
            if primary is None:
                query = query.filter(Task.target_role.is_(None))
            else:
                query = query.filter(or_(Task.target_role.is_(None), Task.target_role == primary.value))

        rank = case(PRIORITY_RANK, value=Task.priority, else_=0)
        return query.order_by(rank.desc(), Task.created_at.desc(), Task.id.desc()).all()

    def my_tasks(self, user_id: int, status=None, priority=None, search=None, page=1, per_page=None):
        query = self.session.query(Task).filter(Task.assigned_to_id == user_id)
        if status and status != 'all':
            query = query.filter(status_filter(status))
        if priority and priority != 'all':
            query = query.filter(Task.priority == priority)
        return self._page(self._search(query, search), page, per_page)

    def list(self, user_id: int, scope=None, status=None, priority=None, assigned_to=None,
             search=None, page=1, per_page=None):
        query = self.session.query(Task)
        if scope == 'mine':
            query = query.filter(Task.assigned_to_id == user_id)
        elif scope == 'requests':
            query = query.filter(Task.created_by_id == user_id)

        if status and status != 'all':
            query = query.filter(status_filter(status))
            if scope == 'requests' and TaskStatus.parse(status) == TaskStatus.PENDING:
                query = query.filter(Task.assigned_to_id.is_(None))
        if priority and priority != 'all':
            query = query.filter(Task.priority == priority)
        if assigned_to and assigned_to != 'all':
            try:
                assigned_to = int(assigned_to)
            except (TypeError, ValueError):
                raise ValidationError(f'Geçersiz kullanıcı: {assigned_to}')
            query = query.filter(Task.assigned_to_id == assigned_to)

        return self._page(self._search(query, search), page, per_page)

    def stats(self, user_id: int, scope: str = 'requests', now: Optional[datetime] = None) -> dict:
        """Özet sayılar: mine (bana atanan), requests (benim açtığım), all (müdür)"""
        query = self.session.query(Task)
        if scope == 'mine':
            query = query.filter(Task.assigned_to_id == user_id)
        elif scope == 'requests':
            query = query.filter(Task.created_by_id == user_id)
        elif scope != 'all':
            raise ValidationError(f'Geçersiz kapsam: {scope}')

        now = now or datetime.utcnow()
        tasks = query.all()
        statuses = Counter(t.status_enum for t in tasks)
        pending = sum(1 for t in tasks if t.status_enum == TaskStatus.PENDING
                      and (scope != 'requests' or t.assigned_to_id is None))
        overdue = sum(1 for t in tasks if t.due_date and t.due_date < now and not t.status_enum.is_terminal)

        assignees = Counter(t.assigned_to_id for t in tasks if t.assigned_to_id is not None)
        assignment = []
        for assignee_id, count in assignees.most_common():
            user = self.session.get(User, assignee_id)
            assignment.append({
                'userId': assignee_id,
                'userName': user.display_name() if user else 'Bilinmeyen',
                'taskCount': count,
            })

        return {
            'summary': {
                'total': len(tasks),
                'pending': pending,
                'inProgress': statuses[TaskStatus.IN_PROGRESS],
                'completed': statuses[TaskStatus.COMPLETED],
                'cancelled': statuses[TaskStatus.CANCELLED],
                'overdue': overdue,
            },
            'priority': [{'priority': p, 'count': c}
                         for p, c in Counter(t.priority for t in tasks).most_common()],
            'type': [{'type': ty, 'count': c}
                     for ty, c in Counter(t.type for t in tasks).most_common()],
            'assignment': assignment,
        }

    @staticmethod
    def waiting_time(task: Task, now: Optional[datetime] = None) -> str:
        end = task.completed_at or now
        return format_waiting_time(task.created_at, end)


class TaskDefinitionService:
    """Rol bazlı görev tanımları"""

    def __init__(self, session):
        self.session = session

    def get(self, definition_id: int) -> TaskDefinition:
        definition = self.session.get(TaskDefinition, definition_id)
        if definition is None:
            raise NotFound('Görev tanımı bulunamadı')
        return definition

    def _exists(self, name, role, exclude_id=None):
        query = self.session.query(TaskDefinition.id).filter(
            TaskDefinition.name == name, TaskDefinition.role == role)
        if exclude_id is not None:
            query = query.filter(TaskDefinition.id != exclude_id)
        return query.first() is not None

    def list(self, role=None) -> List[TaskDefinition]:
        query = self.session.query(TaskDefinition)
        if role:
            query = query.filter(TaskDefinition.role == getattr(role, 'value', role))
        return query.order_by(TaskDefinition.role, TaskDefinition.name).all()

    def create(self, creator_id: int, data) -> TaskDefinition:
        name = data.name.strip()
        if self._exists(name, data.role.value):
            raise ValidationError('Bu rol için aynı isimde görev tanımı zaten mevcut')

        definition = TaskDefinition(
            name=name,
            role=data.role.value,
            description=data.description,
            requires_product_code=data.requires_product_code,
            created_by_id=creator_id,
        )
        self.session.add(definition)
        self.session.commit()
        logger.info("Görev tanımı oluşturuldu: %s / %s", definition.role, definition.name)
        return definition

    def update(self, definition_id: int, data) -> TaskDefinition:
        definition = self.get(definition_id)
        fields = data.model_dump(exclude_unset=True)

        name = (fields.get('name') or definition.name).strip()
        role = fields['role'].value if fields.get('role') else definition.role
        if self._exists(name, role, exclude_id=definition.id):
            raise ValidationError('Bu rol için aynı isimde görev tanımı zaten mevcut')

        definition.name = name
        definition.role = role
        if 'description' in fields:
            definition.description = fields['description']
        if fields.get('requires_product_code') is not None:
            definition.requires_product_code = fields['requires_product_code']

        self.session.commit()
        return definition

    def delete(self, definition_id: int):
        definition = self.get(definition_id)
        self.session.delete(definition)
        self.session.commit()
        logger.info("Görev tanımı silindi: %s", definition_id)
