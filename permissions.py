"""
OLKA Mağaza Backoffice - Yetki Sistemi
================================
Kapalı rol/yetki kümeleri, rol şablonları ve route decorator'ları
"""

from enum import Enum
from functools import wraps
from flask import abort, g, has_request_context
from flask_login import current_user


# ==================== ROLLER ====================

class RoleName(str, Enum):
    STORE_MANAGER = 'Mağaza Müdürü'
    SALES_CONSULTANT = 'Satış Danışmanı'
    RUNNER = 'Runner'

    @classmethod
    def values(cls):
        return [r.value for r in cls]


# Birincil rol seçimi bu sıraya göre yapılır (join sırası değil)
ROLE_PRECEDENCE = [RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT, RoleName.RUNNER]

# Kapasite sınırı olmayan roller
UNLIMITED_ROLES = {RoleName.STORE_MANAGER}

# Müşteri kapasitesi parametreyle sınırlanan rol
CAPACITY_LIMITED_ROLE = RoleName.SALES_CONSULTANT


# ==================== YETKİ TANIMLARI ====================

class PermissionCode(str, Enum):
    CUSTOMER_VIEW = 'Müşteri Görüntüleme'
    CUSTOMER_CREATE = 'Müşteri Ekleme'
    CUSTOMER_EDIT = 'Müşteri Düzenleme'
    CUSTOMER_MANAGE = 'Müşteri Yönetimi'
    CUSTOMER_ASSIGN = 'Müşteri Atama'
    TASK_VIEW = 'Görev Görüntüleme'
    TASK_TAKE = 'Görev Alma'
    TASK_ASSIGN = 'Görev Atama'
    TASK_CREATE = 'Görev Oluşturma'
    USER_MANAGE = 'Kullanıcı Yönetimi'
    ROLE_MANAGE = 'Rol Yönetimi'
    PARAMETER_EDIT = 'Parametre Düzenleme'
    REPORT_VIEW = 'Rapor Görüntüleme'
    SALES = 'Satış İşlemleri'

    @classmethod
    def values(cls):
        return [p.value for p in cls]


PERMISSIONS = {
    # ========== MÜŞTERİLER ==========
    'customers': {
        'name': 'Müşteriler',
        'permissions': {
            PermissionCode.CUSTOMER_VIEW: 'Müşteri listesini ve detayını görüntüleme',
            PermissionCode.CUSTOMER_CREATE: 'Yeni müşteri kaydı',
            PermissionCode.CUSTOMER_EDIT: 'Müşteri bilgilerini güncelleme',
            PermissionCode.CUSTOMER_MANAGE: 'Müşteri silme ve havuz yönetimi',
            PermissionCode.CUSTOMER_ASSIGN: 'Müşteriyi danışmana atama / transfer',
        }
    },

    # ========== GÖREVLER ==========
    'tasks': {
        'name': 'Görevler',
        'permissions': {
            PermissionCode.TASK_VIEW: 'Görevleri görüntüleme',
            PermissionCode.TASK_TAKE: 'Havuzdan görev alma',
            PermissionCode.TASK_ASSIGN: 'Görevi kullanıcıya atama',
            PermissionCode.TASK_CREATE: 'Görev oluşturma',
        }
    },

    # ========== SATIŞ ==========
    'sales': {
        'name': 'Satış',
        'permissions': {
            PermissionCode.SALES: 'Sepet ve ödeme işlemleri',
        }
    },

    # ========== YÖNETİM ==========
    'admin': {
        'name': 'Yönetim',
        'permissions': {
            PermissionCode.USER_MANAGE: 'Kullanıcı oluşturma ve aktif/pasif yapma',
            PermissionCode.ROLE_MANAGE: 'Rol yetkilerini düzenleme',
            PermissionCode.PARAMETER_EDIT: 'Sistem parametrelerini düzenleme',
            PermissionCode.REPORT_VIEW: 'Raporları görüntüleme',
        }
    },
}


# ==================== ROL ŞABLONLARI ====================
# Seed sırasında RolePermission tablosuna yazılır; sonrasında veritabanı esastır
ROLE_TEMPLATES = {
    RoleName.STORE_MANAGER: {
        'description': 'Mağaza yönetimi tam yetki',
        'permissions': '*'  # Tüm yetkiler
    },

    RoleName.SALES_CONSULTANT: {
        'description': 'Müşteri karşılama ve satış',
        'permissions': [
            PermissionCode.CUSTOMER_VIEW, PermissionCode.CUSTOMER_CREATE,
            PermissionCode.CUSTOMER_ASSIGN,
            PermissionCode.TASK_VIEW, PermissionCode.TASK_TAKE, PermissionCode.TASK_CREATE,
            PermissionCode.SALES,
        ]
    },

    RoleName.RUNNER: {
        'description': 'Depo - mağaza arası ürün taşıma',
        'permissions': [
            PermissionCode.TASK_VIEW, PermissionCode.TASK_TAKE,
            PermissionCode.CUSTOMER_VIEW,
        ]
    },
}


# ==================== YETKİ KONTROL FONKSİYONLARI ====================

def get_all_permission_codes():
    """Tüm yetki kodlarını döndür"""
    codes = []
    for module in PERMISSIONS.values():
        codes.extend(module['permissions'].keys())
    return codes


def get_role_permissions(role_name):
    """Bir rolün şablon yetkilerini döndür"""
    try:
        template = ROLE_TEMPLATES.get(RoleName(role_name))
    except ValueError:
        return []
    if not template:
        return []

    if template['permissions'] == '*':
        return get_all_permission_codes()

    return list(template['permissions'])


def pick_primary_role(role_names):
    """Öncelik sırasına göre birincil rolü seç"""
    names = {str(getattr(r, 'value', r)) for r in role_names}
    for role in ROLE_PRECEDENCE:
        if role.value in names:
            return role
    return None


def _load_access(user):
    roles = set()
    perms = set()
    for user_role in user.user_roles:
        if not user_role.is_active or user_role.role is None:
            continue
        roles.add(user_role.role.name)
        for role_perm in user_role.role.permissions:
            if role_perm.is_active and role_perm.permission is not None:
                perms.add(role_perm.permission.name)
    return frozenset(roles), frozenset(perms)


def get_user_access(user):
    """
    Kullanıcının (rolleri, yetkileri) ikilisi.
    İstek içindeyse flask.g üzerinde bir kez hesaplanır.
    """
    if not user or not getattr(user, 'is_authenticated', False):
        return frozenset(), frozenset()

    if not has_request_context():
        return _load_access(user)

    cache = g.setdefault('_user_access', {})
    if user.id not in cache:
        cache[user.id] = _load_access(user)
    return cache[user.id]


def get_user_roles(user):
    return get_user_access(user)[0]


def get_user_permissions(user):
    """Kullanıcının tüm yetkilerini döndür"""
    return get_user_access(user)[1]


def user_has_role(user, *roles):
    """Kullanıcı verilen rollerden birine sahip mi"""
    names = get_user_roles(user)
    return any(str(getattr(r, 'value', r)) in names for r in roles)


def user_has_permission(user, permission_code):
    """Kullanıcının belirli bir yetkisi var mı kontrol et"""
    return str(getattr(permission_code, 'value', permission_code)) in get_user_permissions(user)


def user_has_any_permission(user, permission_codes):
    """Kullanıcının verilen yetkilerden en az birine sahip mi"""
    return any(user_has_permission(user, p) for p in permission_codes)


def primary_role(user):
    return pick_primary_role(get_user_roles(user))


def is_store_manager(user):
    return user_has_role(user, RoleName.STORE_MANAGER)


# ==================== DECORATOR'LAR ====================

def permission_required(permission_code):
    """Yetki gerektiren route'lar için decorator"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)

            if not user_has_permission(current_user, permission_code):
                abort(403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def any_permission_required(*permission_codes):
    """Verilen yetkilerden en az biri gerekli"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)

            if not user_has_any_permission(current_user, permission_codes):
                abort(403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def role_required(*roles):
    """Belirli roller için decorator"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)

            if not user_has_role(current_user, *roles):
                abort(403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator
