"""
OLKA Mağaza Backoffice
Ana Uygulama Dosyası (JSON API)
"""

import json
import logging
import math
import os
from datetime import datetime
from flask import Flask, request, jsonify
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_cors import CORS
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from config import config
from errors import BackofficeError, NotFound, PermissionDenied, ValidationError
from models import db, init_db, User, Task, AuditLog
from permissions import (
    PermissionCode, RoleName, any_permission_required, get_user_permissions,
    is_store_manager, permission_required, primary_role, role_required,
)
from schemas import (
    AssignRequest, CartItemCreate, CartItemUpdate, CheckoutRequest, CustomerCreate,
    CustomerUpdate, LoginRequest, ParameterCreate, ParameterUpdate, RolePermissionsUpdate,
    TaskComplete, TaskCreate, TaskDefinitionCreate, TaskDefinitionUpdate, TransferRequest,
    UserCreate, UserRolesUpdate,
)
from services import (
    AssignmentService, CapacityPolicy, CartService, CustomerService, Directory,
    ParameterService, RoleService, TaskDefinitionService, TaskService, UserService,
)

# Flask uygulaması oluştur
app = Flask(__name__)
app.config.from_object(config[os.getenv('FLASK_ENV', 'development')])

logging.basicConfig(level=app.config['LOG_LEVEL'], format=app.config['LOG_FORMAT'])
logger = logging.getLogger(__name__)

# Uzantıları başlat
CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
login_manager = LoginManager()
login_manager.init_app(app)

# Veritabanını başlat
init_db(app)

# Servisler (db.session her istekte aktif session'a çözülür)
directory = Directory(db.session)
parameter_service = ParameterService(db.session)
capacity_policy = CapacityPolicy(directory, parameter_service,
                                 default_limit=app.config['DEFAULT_MAX_CUSTOMERS_PER_CONSULTANT'])
assignment_service = AssignmentService(db.session, directory, capacity_policy)
customer_service = CustomerService(db.session, page_size=app.config['DEFAULT_PAGE_SIZE'],
                                   max_page_size=app.config['MAX_PAGE_SIZE'])
role_service = RoleService(db.session)
user_service = UserService(db.session, role_service)
task_service = TaskService(db.session, directory,
                           priorities=app.config['TASK_PRIORITIES'],
                           default_priority=app.config['DEFAULT_TASK_PRIORITY'],
                           page_size=app.config['DEFAULT_PAGE_SIZE'],
                           max_page_size=app.config['MAX_PAGE_SIZE'])
task_definition_service = TaskDefinitionService(db.session)
cart_service = CartService(db.session, share_delay_range=app.config['CART_SHARE_DELAY_RANGE'])


@login_manager.user_loader
def load_user(user_id):
    # Pasife alınan kullanıcının açık oturumu da geçersiz olur
    user = db.session.get(User, int(user_id))
    if user is None or not user.is_active:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Giriş yapmanız gerekiyor', 'kind': 'unauthorized'}), 401


# ==================== HELPER FUNCTIONS ====================

def log_audit(action, resource_type, resource_id, description):
    """Audit log kaydı oluştur"""
    log = AuditLog(
        user_id=current_user.id if current_user.is_authenticated else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        description=description,
        ip_address=request.remote_addr,
        user_agent=request.user_agent.string,
        request_method=request.method,
        request_path=request.path
    )
    db.session.add(log)
    db.session.commit()


def parse_body(schema):
    return schema.model_validate(request.get_json(silent=True) or {})


def page_args():
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('limit', app.config['DEFAULT_PAGE_SIZE'], type=int)
    return page, min(max(per_page, 1), app.config['MAX_PAGE_SIZE'])


def paginated(key, items, total, page, per_page):
    return jsonify({
        key: [item.to_dict() for item in items],
        'pagination': {
            'page': page,
            'limit': per_page,
            'total': total,
            'pages': math.ceil(total / per_page) if per_page else 0,
        }
    })


def require_owner_or_manager(customer):
    if customer.assigned_consultant_id != current_user.id and not is_store_manager(current_user):
        raise PermissionDenied('Bu müşteri size atanmamış')


# ==================== ERROR HANDLERS ====================

@app.errorhandler(BackofficeError)
def business_error(e):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(PydanticValidationError)
def schema_error(e):
    db.session.rollback()
    return jsonify({
        'error': 'Geçersiz veri',
        'kind': ValidationError.kind,
        'details': json.loads(e.json(include_url=False)),
    }), 400


@app.errorhandler(HTTPException)
def http_error(e):
    messages = {
        401: 'Giriş yapmanız gerekiyor',
        403: 'Bu işlem için yetkiniz yok',
        404: 'Kayıt bulunamadı',
    }
    return jsonify({'error': messages.get(e.code, e.description), 'kind': e.name.lower().replace(' ', '_')}), e.code


@app.errorhandler(Exception)
def server_error(e):
    logger.exception("Beklenmeyen hata: %s %s", request.method, request.path)
    db.session.rollback()
    return jsonify({'error': 'Sunucu hatası', 'kind': 'internal_error'}), 500


# ==================== AUTH ROUTES ====================

@app.route('/login', methods=['POST'])
def login():
    data = parse_body(LoginRequest)
    user = user_service.get_by_email(data.email)

    if user is None or not user.check_password(data.password):
        return jsonify({'error': 'Geçersiz e-posta veya şifre', 'kind': 'unauthorized'}), 401

    if not user.is_active:
        return jsonify({'error': 'Hesabınız pasif durumda. Yönetici ile iletişime geçin.',
                        'kind': 'inactive'}), 403

    login_user(user)
    user.last_login = datetime.utcnow()
    db.session.commit()

    log_audit('login', 'user', user.id, 'Kullanıcı giriş yaptı')
    return jsonify({'success': True, 'user': user.to_dict()})


@app.route('/logout', methods=['POST'])
@login_required
def logout():
    log_audit('logout', 'user', current_user.id, 'Kullanıcı çıkış yaptı')
    logout_user()
    return jsonify({'success': True})


@app.route('/api/me')
@login_required
def me():
    role = primary_role(current_user)
    data = current_user.to_dict()
    data['primaryRole'] = role.value if role else None
    data['permissions'] = sorted(get_user_permissions(current_user))
    return jsonify(data)


# ==================== CUSTOMER ROUTES ====================

@app.route('/api/customers')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_list():
    page, per_page = page_args()
    items, total = customer_service.list(page, per_page, segment=request.args.get('segment'))
    return paginated('customers', items, total, page, per_page)


@app.route('/api/customers', methods=['POST'])
@permission_required(PermissionCode.CUSTOMER_CREATE)
def customers_create():
    customer = customer_service.create(parse_body(CustomerCreate))
    log_audit('create', 'customer', customer.id, f'Müşteri oluşturuldu: {customer.full_name}')
    return jsonify(customer.to_dict()), 201


@app.route('/api/customers/search')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_search():
    customers = customer_service.search(
        phone=request.args.get('phone'),
        email=request.args.get('email'),
        name=request.args.get('name'),
        national_id=request.args.get('nationalId'),
    )
    return jsonify([c.to_dict() for c in customers])


@app.route('/api/customers/pool')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_pool():
    result = []
    for customer, waiting in customer_service.pool():
        data = customer.to_dict()
        data['waitingTime'] = waiting
        result.append(data)
    return jsonify(result)


@app.route('/api/customers/mine')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_mine():
    return jsonify([c.to_dict() for c in customer_service.of_consultant(current_user.id)])


@app.route('/api/customers/<int:customer_id>')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_detail(customer_id):
    customer = customer_service.get(customer_id)
    data = customer.to_dict()
    data['tasks'] = [t.to_dict() for t in customer.tasks.order_by(Task.created_at.desc()).limit(10)]
    if customer.assigned_consultant_id is None:
        data['waitingTime'] = assignment_service.waiting_time(customer)
    return jsonify(data)


@app.route('/api/customers/<int:customer_id>', methods=['PUT'])
@any_permission_required(PermissionCode.CUSTOMER_EDIT, PermissionCode.CUSTOMER_CREATE)
def customers_update(customer_id):
    customer = customer_service.update(customer_id, parse_body(CustomerUpdate))
    log_audit('update', 'customer', customer.id, f'Müşteri güncellendi: {customer.full_name}')
    return jsonify(customer.to_dict())


@app.route('/api/customers/<int:customer_id>', methods=['DELETE'])
@permission_required(PermissionCode.CUSTOMER_MANAGE)
def customers_delete(customer_id):
    customer_service.delete(customer_id)
    log_audit('delete', 'customer', customer_id, 'Müşteri silindi')
    return jsonify({'success': True})


@app.route('/api/customers/<int:customer_id>/assign', methods=['POST'])
@permission_required(PermissionCode.CUSTOMER_ASSIGN)
def customers_assign(customer_id):
    data = parse_body(AssignRequest)
    consultant_id = current_user.id if data.consultant_id is None else data.consultant_id
    if consultant_id != current_user.id and not is_store_manager(current_user):
        raise PermissionDenied('Başka bir danışmana sadece mağaza müdürü atama yapabilir')

    customer = assignment_service.take(customer_id, consultant_id)
    log_audit('assign', 'customer', customer.id, f'Müşteri danışmana atandı: {consultant_id}')
    return jsonify(customer.to_dict())


@app.route('/api/customers/<int:customer_id>/transfer', methods=['POST'])
@permission_required(PermissionCode.CUSTOMER_ASSIGN)
def customers_transfer(customer_id):
    data = parse_body(TransferRequest)
    require_owner_or_manager(customer_service.get(customer_id))

    customer = assignment_service.transfer(customer_id, data.from_consultant_id, data.to_consultant_id)
    log_audit('transfer', 'customer', customer.id, f'Müşteri transfer edildi: {data.to_consultant_id}')
    return jsonify(customer.to_dict())


@app.route('/api/customers/<int:customer_id>/release', methods=['POST'])
@permission_required(PermissionCode.CUSTOMER_ASSIGN)
def customers_release(customer_id):
    customer = customer_service.get(customer_id)
    if customer.assigned_consultant_id is not None:
        require_owner_or_manager(customer)

    customer = assignment_service.release_to_pool(customer_id)
    log_audit('release', 'customer', customer.id, 'Müşteri havuza bırakıldı')
    return jsonify(customer.to_dict())


@app.route('/api/customers/<int:customer_id>/sales')
@permission_required(PermissionCode.CUSTOMER_VIEW)
def customers_sales(customer_id):
    return jsonify([s.to_dict() for s in customer_service.sales(customer_id)])


# ==================== USER ROUTES ====================

@app.route('/api/users')
@permission_required(PermissionCode.USER_MANAGE)
def users_list():
    return jsonify([u.to_dict() for u in user_service.list()])


@app.route('/api/users', methods=['POST'])
@permission_required(PermissionCode.USER_MANAGE)
def users_create():
    user = user_service.create(parse_body(UserCreate))
    log_audit('create', 'user', user.id, f'Kullanıcı oluşturuldu: {user.email}')
    return jsonify(user.to_dict()), 201


@app.route('/api/users/by-role')
@login_required
def users_by_role():
    role_name = request.args.get('roleName') or request.args.get('role')
    if not role_name:
        raise ValidationError('Rol adı gerekli')
    return jsonify(user_service.by_role(role_name, directory, capacity_policy))


@app.route('/api/users/<int:user_id>/toggle-status', methods=['POST'])
@permission_required(PermissionCode.USER_MANAGE)
def users_toggle_status(user_id):
    user = user_service.toggle_status(user_id, current_user.id)
    log_audit('update', 'user', user.id, f'Kullanıcı durumu: {"aktif" if user.is_active else "pasif"}')
    return jsonify(user.to_dict())


@app.route('/api/users/<int:user_id>/roles', methods=['PUT'])
@permission_required(PermissionCode.USER_MANAGE)
def users_roles(user_id):
    data = parse_body(UserRolesUpdate)
    user = user_service.set_roles(user_id, data.roles)
    log_audit('update', 'user', user.id, f'Roller: {", ".join(r.value for r in data.roles)}')
    return jsonify(user.to_dict())


# ==================== ROLE & PERMISSION ROUTES ====================

@app.route('/api/roles')
@login_required
def roles_list():
    return jsonify([r.to_dict() for r in role_service.list_roles()])


@app.route('/api/roles/<int:role_id>/permissions', methods=['PUT'])
@permission_required(PermissionCode.ROLE_MANAGE)
def roles_permissions(role_id):
    data = parse_body(RolePermissionsUpdate)
    role = role_service.set_permissions(role_id, data.permissions)
    log_audit('update', 'role', role.id, f'Rol yetkileri güncellendi: {role.name}')
    return jsonify(role.to_dict())


@app.route('/api/permissions')
@permission_required(PermissionCode.ROLE_MANAGE)
def permissions_list():
    return jsonify([p.to_dict() for p in role_service.list_permissions()])


# ==================== PARAMETER ROUTES ====================

@app.route('/api/parameters')
@login_required
def parameters_list():
    return jsonify([p.to_dict() for p in parameter_service.list(request.args.get('category'))])


@app.route('/api/parameters', methods=['POST'])
@permission_required(PermissionCode.PARAMETER_EDIT)
def parameters_create():
    param = parameter_service.create(parse_body(ParameterCreate))
    log_audit('create', 'parameter', param.id, f'Parametre oluşturuldu: {param.key}')
    return jsonify(param.to_dict()), 201


@app.route('/api/parameters/<key>')
@login_required
def parameters_detail(key):
    return jsonify(parameter_service.get(key).to_dict())


@app.route('/api/parameters/<key>', methods=['PUT'])
@permission_required(PermissionCode.PARAMETER_EDIT)
def parameters_update(key):
    param = parameter_service.update(key, parse_body(ParameterUpdate))
    log_audit('update', 'parameter', param.id, f'Parametre güncellendi: {param.key}={param.value}')
    return jsonify(param.to_dict())


@app.route('/api/parameters/<key>', methods=['DELETE'])
@permission_required(PermissionCode.PARAMETER_EDIT)
def parameters_delete(key):
    param_id = parameter_service.get(key).id
    parameter_service.delete(key)
    log_audit('delete', 'parameter', param_id, f'Parametre silindi: {key.upper()}')
    return jsonify({'success': True})


# ==================== TASK ROUTES ====================

@app.route('/api/tasks')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_list():
    page, per_page = page_args()
    items, total = task_service.list(
        current_user.id,
        scope=request.args.get('scope'),
        status=request.args.get('status'),
        priority=request.args.get('priority'),
        assigned_to=request.args.get('assignedTo'),
        search=request.args.get('search'),
        page=page, per_page=per_page,
    )
    return paginated('tasks', items, total, page, per_page)


@app.route('/api/tasks', methods=['POST'])
@permission_required(PermissionCode.TASK_CREATE)
def tasks_create():
    task = task_service.create(current_user.id, parse_body(TaskCreate))
    log_audit('create', 'task', task.id, f'Görev oluşturuldu: {task.title}')
    return jsonify(task.to_dict()), 201


@app.route('/api/tasks/pool')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_pool():
    result = []
    for task in task_service.pool(current_user.id):
        data = task.to_dict()
        data['waitingTime'] = task_service.waiting_time(task)
        result.append(data)
    return jsonify(result)


@app.route('/api/tasks/consultant-pool')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_consultant_pool():
    tasks = task_service.pool(current_user.id, target_role=RoleName.SALES_CONSULTANT)
    return jsonify([t.to_dict() for t in tasks])


@app.route('/api/tasks/my')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_my():
    page, per_page = page_args()
    items, total = task_service.my_tasks(
        current_user.id,
        status=request.args.get('status'),
        priority=request.args.get('priority'),
        search=request.args.get('search'),
        page=page, per_page=per_page,
    )
    return paginated('tasks', items, total, page, per_page)


@app.route('/api/tasks/stats')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_stats():
    scope = request.args.get('scope', 'requests')
    if scope == 'all' and not is_store_manager(current_user):
        raise PermissionDenied('Tüm görev istatistikleri sadece mağaza müdürüne açıktır')
    return jsonify({'stats': task_service.stats(current_user.id, scope)})


@app.route('/api/tasks/<int:task_id>')
@permission_required(PermissionCode.TASK_VIEW)
def tasks_detail(task_id):
    task = task_service.get(task_id)
    data = task.to_dict()
    data['waitingTime'] = task_service.waiting_time(task)
    return jsonify(data)


@app.route('/api/tasks/<int:task_id>/take', methods=['POST'])
@permission_required(PermissionCode.TASK_TAKE)
def tasks_take(task_id):
    task = task_service.take(task_id, current_user.id)
    log_audit('take', 'task', task.id, f'Görev alındı: {task.title}')
    return jsonify(task.to_dict())


@app.route('/api/tasks/<int:task_id>/complete', methods=['POST'])
@permission_required(PermissionCode.TASK_VIEW)
def tasks_complete(task_id):
    data = parse_body(TaskComplete)
    task = task_service.complete(task_id, current_user.id, product_code=data.product_code)
    log_audit('complete', 'task', task.id, f'Görev tamamlandı: {task.title}')
    return jsonify(task.to_dict())


@app.route('/api/tasks/<int:task_id>/cancel', methods=['POST'])
@app.route('/api/tasks/<int:task_id>', methods=['DELETE'])
@login_required
def tasks_cancel(task_id):
    task = task_service.cancel(task_id, current_user.id)
    log_audit('cancel', 'task', task.id, f'Görev iptal edildi: {task.title}')
    return jsonify(task.to_dict())


# ==================== TASK DEFINITION ROUTES ====================

@app.route('/api/task-definitions')
@role_required(RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
def task_definitions_list():
    return jsonify([d.to_dict() for d in task_definition_service.list(request.args.get('role'))])


@app.route('/api/task-definitions', methods=['POST'])
@role_required(RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
def task_definitions_create():
    definition = task_definition_service.create(current_user.id, parse_body(TaskDefinitionCreate))
    log_audit('create', 'task_definition', definition.id, f'Görev tanımı: {definition.name}')
    return jsonify(definition.to_dict()), 201


@app.route('/api/task-definitions/<int:definition_id>', methods=['PUT'])
@role_required(RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
def task_definitions_update(definition_id):
    definition = task_definition_service.update(definition_id, parse_body(TaskDefinitionUpdate))
    log_audit('update', 'task_definition', definition.id, f'Görev tanımı: {definition.name}')
    return jsonify(definition.to_dict())


@app.route('/api/task-definitions/<int:definition_id>', methods=['DELETE'])
@role_required(RoleName.STORE_MANAGER, RoleName.SALES_CONSULTANT)
def task_definitions_delete(definition_id):
    task_definition_service.delete(definition_id)
    log_audit('delete', 'task_definition', definition_id, 'Görev tanımı silindi')
    return jsonify({'success': True})


# ==================== CART ROUTES ====================

@app.route('/api/carts/<int:customer_id>')
@permission_required(PermissionCode.SALES)
def carts_get(customer_id):
    cart = cart_service.get_open_cart(customer_id)
    if cart is None or not cart.items:
        raise NotFound('Sepet bulunamadı')
    return jsonify(cart.to_dict())


@app.route('/api/carts/<int:customer_id>', methods=['POST'])
@permission_required(PermissionCode.SALES)
def carts_open(customer_id):
    cart = cart_service.open_cart(customer_id, current_user.id)
    log_audit('create', 'cart', cart.id, f'Sepet açıldı: müşteri {customer_id}')
    return jsonify(cart.to_dict()), 201


@app.route('/api/carts/<int:customer_id>/items', methods=['POST'])
@permission_required(PermissionCode.SALES)
def carts_add_item(customer_id):
    data = parse_body(CartItemCreate)
    cart = cart_service.get_or_open_cart(customer_id, current_user.id)
    item = cart_service.add_item(cart, **data.model_dump())
    log_audit('update', 'cart', cart.id, f'Sepete eklendi: {item.quantity} x {item.title}')
    return jsonify(cart.to_dict()), 201


@app.route('/api/carts/<int:customer_id>/items/<int:item_id>', methods=['PUT'])
@permission_required(PermissionCode.SALES)
def carts_update_item(customer_id, item_id):
    data = parse_body(CartItemUpdate)
    cart_service.require_owner(customer_id, current_user.id)
    item = cart_service.update_quantity(cart_service.get_item(customer_id, item_id), data.quantity)
    log_audit('update', 'cart', item.cart_id, f'Adet güncellendi: {item.title} -> {item.quantity}')
    return jsonify(item.cart.to_dict())


@app.route('/api/carts/<int:customer_id>/items/<int:item_id>', methods=['DELETE'])
@permission_required(PermissionCode.SALES)
def carts_remove_item(customer_id, item_id):
    cart_service.require_owner(customer_id, current_user.id)
    cart = cart_service.remove_item(cart_service.get_item(customer_id, item_id))
    log_audit('update', 'cart', cart.id, f'Sepetten çıkarıldı: ürün {item_id}')
    return jsonify(cart.to_dict())


@app.route('/api/carts/<int:customer_id>/share', methods=['POST'])
@permission_required(PermissionCode.SALES)
def carts_share(customer_id):
    payload = cart_service.share(customer_id, current_user)
    log_audit('share', 'cart', payload['cart']['id'], f"Sepet paylaşıldı: {payload['shareId']}")
    return jsonify({'success': True, 'shareId': payload['shareId'], 'data': payload})


@app.route('/api/carts/<int:customer_id>/checkout', methods=['POST'])
@permission_required(PermissionCode.SALES)
def carts_checkout(customer_id):
    data = parse_body(CheckoutRequest)
    sale = cart_service.checkout(customer_id, current_user.id, data.payment_method, data.title)
    log_audit('checkout', 'cart', sale.cart_id, f'Satış: {sale.amount:.2f} ({sale.payment_method})')
    return jsonify(sale.to_dict()), 201


# ==================== STARTUP ====================

if __name__ == '__main__':
    # Rol/yetki tabloları boşsa varsayılanları yükle
    with app.app_context():
        role_service.ensure_defaults()

    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 3000)),
        debug=app.config['DEBUG']
    )
