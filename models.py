"""
OLKA Mağaza Backoffice
Veritabanı Modelleri
"""

from datetime import datetime
from enum import Enum
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def init_db(app):
    """Veritabanını başlat"""
    db.init_app(app)
    with app.app_context():
        db.create_all()


def _iso(value):
    return value.isoformat() if value else None


# ============================================
# 1. ENUM'LAR
# ============================================

class CustomerSegment(str, Enum):
    ADAY = 'Aday'
    CLASSIC = 'Classic'
    PREMIUM = 'Premium'
    VIP = 'VIP'


class TaskStatus(str, Enum):
    PENDING = 'Bekliyor'
    IN_PROGRESS = 'Devam Ediyor'
    COMPLETED = 'Tamamlandı'
    CANCELLED = 'İptal'

    @classmethod
    def parse(cls, value):
        """Eski İngilizce durum kodlarını da kabul eder"""
        if isinstance(value, cls):
            return value
        legacy = {
            'PENDING': cls.PENDING,
            'ASSIGNED': cls.IN_PROGRESS,
            'IN_PROGRESS': cls.IN_PROGRESS,
            'COMPLETED': cls.COMPLETED,
            'Tamamlanan': cls.COMPLETED,
            'CANCELLED': cls.CANCELLED,
        }
        if value in legacy:
            return legacy[value]
        return cls(value)

    @property
    def is_terminal(self):
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class CartStatus(str, Enum):
    OPEN = 'OPEN'
    CHECKED_OUT = 'CHECKED_OUT'
    ABANDONED = 'ABANDONED'


# ============================================
# 2. USER & RBAC MODELS
# ============================================

class User(UserMixin, db.Model):
    """Kullanıcı (danışman, runner, müdür)"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    # Kimlik bilgileri
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)

    # Profil
    first_name = db.Column(db.String(80))
    last_name = db.Column(db.String(80))
    full_name = db.Column(db.String(160))
    phone = db.Column(db.String(20))

    # Durum
    is_active = db.Column(db.Boolean, default=True)

    last_login = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # İlişkiler
    user_roles = db.relationship('UserRole', backref='user', lazy='dynamic',
                                 cascade='all, delete-orphan')
    consulting_customers = db.relationship('Customer', backref='assigned_consultant', lazy='dynamic',
                                           foreign_keys='Customer.assigned_consultant_id')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)
        self.password_changed_at = datetime.utcnow()

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def active_role_names(self):
        """Aktif rol adları"""
        return {ur.role.name for ur in self.user_roles if ur.is_active and ur.role is not None}

    def display_name(self):
        if self.full_name:
            return self.full_name
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.display_name(),
            'phone': self.phone,
            'isActive': self.is_active,
            'roles': sorted(self.active_role_names()),
            'createdAt': _iso(self.created_at),
        }


class Role(db.Model):
    """Rol tanımları (adlar permissions.RoleName kümesinden)"""
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    permissions = db.relationship('RolePermission', backref='role', lazy='dynamic',
                                  cascade='all, delete-orphan')
    users = db.relationship('UserRole', backref='role', lazy='dynamic')

    def permission_names(self):
        return sorted(rp.permission.name for rp in self.permissions if rp.is_active)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'permissions': self.permission_names(),
        }


class Permission(db.Model):
    """Yetki tanımları (adlar permissions.PermissionCode kümesinden)"""
    __tablename__ = 'permissions'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'description': self.description}


class RolePermission(db.Model):
    """Rol-Yetki eşleştirmesi"""
    __tablename__ = 'role_permissions'
    __table_args__ = (db.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),)

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    permission_id = db.Column(db.Integer, db.ForeignKey('permissions.id'), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    permission = db.relationship('Permission')


class UserRole(db.Model):
    """Kullanıcı-Rol eşleştirmesi"""
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    assigned_at = db.Column(db.DateTime, default=datetime.utcnow)


# ============================================
# 3. CRM MODELS
# ============================================

class Customer(db.Model):
    """Mağaza müşterisi"""
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)

    # Kişi bilgileri
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    full_name = db.Column(db.String(160))
    national_id = db.Column(db.String(11), unique=True)  # TC Kimlik No
    birth_date = db.Column(db.Date)
    gender = db.Column(db.String(30))

    # İletişim
    phone = db.Column(db.String(20), unique=True, nullable=False)
    email = db.Column(db.String(120))

    # Adres
    address = db.Column(db.Text)
    city = db.Column(db.String(100))
    district = db.Column(db.String(100))

    # Segmentasyon
    segment = db.Column(db.String(20), default=CustomerSegment.ADAY.value)  # Aday, Classic, Premium, VIP

    # KVKK onayları
    consent_personal_data = db.Column(db.Boolean, default=False)
    consent_marketing = db.Column(db.Boolean, default=False)
    consent_call = db.Column(db.Boolean, default=False)
    consent_profiling = db.Column(db.Boolean, default=False)

    # Atama (NULL = havuzda)
    assigned_consultant_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    moved_to_pool_at = db.Column(db.DateTime)

    # İstatistikler
    total_spent = db.Column(db.Float, default=0)
    total_orders = db.Column(db.Integer, default=0)
    last_visit = db.Column(db.DateTime)

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # İlişkiler
    tasks = db.relationship('Task', backref='customer', lazy='dynamic',
                            cascade='all, delete-orphan')
    carts = db.relationship('Cart', backref='customer', lazy='dynamic',
                            cascade='all, delete-orphan')
    sales = db.relationship('Sale', backref='customer', lazy='dynamic',
                            cascade='all, delete-orphan')

    def to_dict(self):
        consultant = self.assigned_consultant
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'phone': self.phone,
            'email': self.email,
            'nationalId': self.national_id,
            'birthDate': _iso(self.birth_date),
            'gender': self.gender,
            'address': self.address,
            'city': self.city,
            'district': self.district,
            'segment': self.segment,
            'consentPersonalData': self.consent_personal_data,
            'consentMarketing': self.consent_marketing,
            'consentCall': self.consent_call,
            'consentProfiling': self.consent_profiling,
            'assignedConsultantId': self.assigned_consultant_id,
            'assignedConsultant': {
                'id': consultant.id,
                'firstName': consultant.first_name,
                'lastName': consultant.last_name,
            } if consultant else None,
            'movedToPoolAt': _iso(self.moved_to_pool_at),
            'totalSpent': self.total_spent or 0,
            'totalOrders': self.total_orders or 0,
            'lastVisit': _iso(self.last_visit),
            'createdAt': _iso(self.created_at),
        }


class Sale(db.Model):
    """Tamamlanmış satış"""
    __tablename__ = 'sales'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    consultant_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    cart_id = db.Column(db.Integer, db.ForeignKey('carts.id'))

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30))  # cash, card, transfer

    invoice_date = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'customerId': self.customer_id,
            'consultantId': self.consultant_id,
            'cartId': self.cart_id,
            'title': self.title,
            'description': self.description,
            'amount': self.amount,
            'paymentMethod': self.payment_method,
            'invoiceDate': _iso(self.invoice_date),
            'createdAt': _iso(self.created_at),
        }


# ============================================
# 4. PARAMETRE
# ============================================

class Parameter(db.Model):
    """Genel anahtar/değer sistem parametresi"""
    __tablename__ = 'parameters'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)  # Büyük harfle saklanır
    value = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), default='STRING')  # STRING, NUMBER, BOOLEAN, JSON
    category = db.Column(db.String(50), default='SYSTEM')
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'key': self.key,
            'value': self.value,
            'type': self.type,
            'category': self.category,
            'description': self.description,
            'isActive': self.is_active,
            'updatedAt': _iso(self.updated_at),
        }


# ============================================
# 5. GÖREV MODELS
# ============================================

class TaskDefinition(db.Model):
    """Rol bazlı görev tanımı (ör. Ürün Teslimi)"""
    __tablename__ = 'task_definitions'
    __table_args__ = (db.UniqueConstraint('name', 'role', name='uq_task_definition_name_role'),)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    role = db.Column(db.String(100), nullable=False)
    requires_product_code = db.Column(db.Boolean, default=False)

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    created_by = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'role': self.role,
            'requiresProductCode': self.requires_product_code,
            'createdById': self.created_by_id,
            'createdAt': _iso(self.created_at),
        }


class Task(db.Model):
    """Görev (havuz -> atanmış -> tamamlandı / iptal)"""
    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(db.String(200), nullable=False)
    priority = db.Column(db.String(20), default='medium')  # low, medium, high, urgent
    status = db.Column(db.String(30), default=TaskStatus.PENDING.value)

    # Atama (NULL = havuzda)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    target_role = db.Column(db.String(100))  # Sadece bu roldeki kullanıcılar havuzdan alabilir

    # Ürün teslimi
    product_code = db.Column(db.String(100))
    delivery_location = db.Column(db.String(200))

    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    notes = db.Column(db.Text)
    due_date = db.Column(db.DateTime)

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    cancelled_by_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    created_by = db.relationship('User', foreign_keys=[created_by_id])
    cancelled_by = db.relationship('User', foreign_keys=[cancelled_by_id])

    @property
    def status_enum(self):
        return TaskStatus.parse(self.status)

    def to_dict(self):
        def person(user):
            if user is None:
                return None
            return {'id': user.id, 'firstName': user.first_name, 'lastName': user.last_name}

        customer = self.customer
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'type': self.type,
            'priority': self.priority,
            'status': self.status,
            'assignedToId': self.assigned_to_id,
            'assignedTo': person(self.assigned_to),
            'targetRole': self.target_role,
            'productCode': self.product_code,
            'deliveryLocation': self.delivery_location,
            'customerId': self.customer_id,
            'customer': {
                'id': customer.id,
                'fullName': customer.full_name,
                'phone': customer.phone,
            } if customer else None,
            'notes': self.notes,
            'dueDate': _iso(self.due_date),
            'createdById': self.created_by_id,
            'createdBy': person(self.created_by),
            'createdAt': _iso(self.created_at),
            'completedAt': _iso(self.completed_at),
            'cancelledAt': _iso(self.cancelled_at),
        }


# ============================================
# 6. SEPET MODELS
# ============================================

class Cart(db.Model):
    """Müşteri sepeti - müşteri başına en fazla bir OPEN sepet"""
    __tablename__ = 'carts'
    __table_args__ = (
        db.Index(
            'uq_carts_open_customer', 'customer_id', unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    consultant_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    status = db.Column(db.String(20), default=CartStatus.OPEN.value, nullable=False)
    total_amount = db.Column(db.Float, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    closed_at = db.Column(db.DateTime)

    items = db.relationship('CartItem', backref='cart', lazy='select',
                            order_by='CartItem.id', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'customerId': self.customer_id,
            'consultantId': self.consultant_id,
            'status': self.status,
            'totalAmount': self.total_amount or 0,
            'items': [item.to_dict() for item in self.items],
            'createdAt': _iso(self.created_at),
            'closedAt': _iso(self.closed_at),
        }


class CartItem(db.Model):
    """Sepet satırı"""
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey('carts.id'), nullable=False)

    sku = db.Column(db.String(100))
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    quantity = db.Column(db.Integer, default=1, nullable=False)
    unit_price = db.Column(db.Float, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'cartId': self.cart_id,
            'sku': self.sku,
            'title': self.title,
            'description': self.description,
            'imageUrl': self.image_url,
            'quantity': self.quantity,
            'unitPrice': self.unit_price,
            'totalPrice': self.quantity * self.unit_price,
        }


# ============================================
# 7. AUDIT MODEL
# ============================================

class AuditLog(db.Model):
    """Denetim kaydı"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Olay bilgileri
    action = db.Column(db.String(50), nullable=False)
    # create, update, delete, login, logout, assign, transfer, release, take, complete, cancel, checkout

    resource_type = db.Column(db.String(50))  # customer, task, cart, user, parameter
    resource_id = db.Column(db.Integer)

    description = db.Column(db.Text)

    # İstek bilgileri
    ip_address = db.Column(db.String(50))
    user_agent = db.Column(db.String(500))
    request_method = db.Column(db.String(10))
    request_path = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
