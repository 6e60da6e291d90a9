"""
OLKA Mağaza Backoffice - Servis Katmanı
"""

from services.directory import ConsultantInfo, Directory
from services.capacity import CapacityPolicy, Decision
from services.assignment import AssignmentService
from services.tasks import TaskDefinitionService, TaskService
from services.carts import CartService, cart_total, line_total
from services.customers import CustomerService
from services.users import RoleService, UserService
from services.parameters import ParameterService
from services.waiting_time import format_waiting_time

__all__ = [
    'ConsultantInfo', 'Directory',
    'CapacityPolicy', 'Decision',
    'AssignmentService',
    'TaskService', 'TaskDefinitionService',
    'CartService', 'cart_total', 'line_total',
    'CustomerService',
    'UserService', 'RoleService',
    'ParameterService',
    'format_waiting_time',
]
