"""
OLKA Mağaza Backoffice
İş kuralı hataları
"""


class BackofficeError(Exception):
    """Kullanıcıya gösterilebilir iş kuralı hatası"""
    status_code = 400
    kind = 'error'
    default_message = 'İşlem gerçekleştirilemedi'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class NotFound(BackofficeError):
    status_code = 404
    kind = 'not_found'
    default_message = 'Kayıt bulunamadı'


class Inactive(BackofficeError):
    kind = 'inactive'
    default_message = 'Kullanıcı aktif değil'


class CapacityExceeded(BackofficeError):
    kind = 'capacity_exceeded'
    default_message = 'Danışman müşteri kapasitesi dolu'


class AlreadyInPool(BackofficeError):
    kind = 'already_in_pool'
    default_message = 'Müşteri zaten havuzda'


class AlreadyAssigned(BackofficeError):
    status_code = 409
    kind = 'already_assigned'
    default_message = 'Kayıt zaten atanmış'


class Conflict(BackofficeError):
    status_code = 409
    kind = 'conflict'
    default_message = 'Kayıt başka bir işlem tarafından değiştirildi'


class PermissionDenied(BackofficeError):
    status_code = 403
    kind = 'permission_denied'
    default_message = 'Bu işlem için yetkiniz yok'


class ValidationError(BackofficeError):
    kind = 'validation_error'
    default_message = 'Geçersiz veri'
