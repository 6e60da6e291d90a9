"""
OLKA Mağaza Backoffice - Sistem Parametreleri
Anahtar/değer parametreleri (anahtarlar büyük harfle saklanır)
"""

import json
import logging
import math
from typing import Optional

from errors import NotFound, ValidationError
from models import Parameter

logger = logging.getLogger(__name__)

PARAMETER_TYPES = ('STRING', 'NUMBER', 'BOOLEAN', 'JSON')


def normalize_key(key: str) -> str:
    return (key or '').strip().upper()


def validate_value(param_type: str, value: str):
    """Değeri tipine göre doğrula, geçersizse ValidationError"""
    if param_type not in PARAMETER_TYPES:
        raise ValidationError(f'Geçersiz parametre tipi: {param_type}')

    if param_type == 'NUMBER':
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError('Değer sayısal olmalıdır')
        if not math.isfinite(number):
            raise ValidationError('Değer sonlu bir sayı olmalıdır')
    elif param_type == 'BOOLEAN':
        if str(value).lower() not in ('true', 'false'):
            raise ValidationError('Değer true veya false olmalıdır')
    elif param_type == 'JSON':
        try:
            json.loads(value)
        except (TypeError, ValueError):
            raise ValidationError('Değer geçerli bir JSON olmalıdır')


class ParameterService:
    """Parametre CRUD ve tipli okuma"""

    def __init__(self, session):
        self.session = session

    def list(self, category: Optional[str] = None):
        query = self.session.query(Parameter)
        if category:
            query = query.filter(Parameter.category == category)
        return query.order_by(Parameter.category, Parameter.key).all()

    def find(self, key: str) -> Optional[Parameter]:
        return self.session.query(Parameter).filter(Parameter.key == normalize_key(key)).first()

    def get(self, key: str) -> Parameter:
        param = self.find(key)
        if param is None:
            raise NotFound('Parametre bulunamadı')
        return param

    def get_value(self, key: str, default=None):
        param = self.find(key)
        if param is None or not param.is_active:
            return default
        return param.value

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Negatif olmayan tam sayı oku; yoksa ya da okunamazsa default"""
        raw = self.get_value(key)
        if raw is None:
            return default
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            logger.warning("Parametre %s tam sayı değil (%r), varsayılan %s kullanılıyor", key, raw, default)
            return default
        if value < 0:
            logger.warning("Parametre %s negatif (%s), varsayılan %s kullanılıyor", key, value, default)
            return default
        return value

    def create(self, data) -> Parameter:
        key = normalize_key(data.key)
        if not key:
            raise ValidationError('Parametre anahtarı zorunludur')
        if self.find(key) is not None:
            raise ValidationError('Bu parametre anahtarı zaten mevcut')

        validate_value(data.type, data.value)

        param = Parameter(
            key=key,
            value=data.value,
            type=data.type,
            category=data.category or 'SYSTEM',
            description=data.description,
        )
        self.session.add(param)
        self.session.commit()
        logger.info("Parametre oluşturuldu: %s=%s", key, data.value)
        return param

    def set(self, key: str, value, param_type: str = 'STRING', category: str = 'SYSTEM',
            description: Optional[str] = None) -> Parameter:
        """Varsa güncelle, yoksa oluştur (seed ve script'ler için)"""
        value = str(value)
        validate_value(param_type, value)
        param = self.find(key)
        if param is None:
            param = Parameter(key=normalize_key(key), type=param_type, category=category,
                              description=description)
            self.session.add(param)
        param.value = value
        param.is_active = True
        self.session.commit()
        return param

    def update(self, key: str, data) -> Parameter:
        param = self.get(key)
        fields = data.model_dump(exclude_unset=True)

        new_type = fields.get('type') or param.type
        new_value = fields['value'] if fields.get('value') is not None else param.value
        validate_value(new_type, new_value)

        param.type = new_type
        param.value = new_value
        for name in ('category', 'description', 'is_active'):
            if fields.get(name) is not None:
                setattr(param, name, fields[name])

        self.session.commit()
        logger.info("Parametre güncellendi: %s=%s", param.key, param.value)
        return param

    def delete(self, key: str):
        param = self.get(key)
        self.session.delete(param)
        self.session.commit()
        logger.info("Parametre silindi: %s", param.key)
