"""
OLKA Mağaza Backoffice
Konfigürasyon Dosyası
"""

import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Ana konfigürasyon sınıfı"""

    # Uygulama Ayarları
    SECRET_KEY = os.getenv('SECRET_KEY', 'olka-backoffice-secret-key')
    APP_NAME = "OLKA Backoffice"
    VERSION = "1.0"

    # Veritabanı
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///backoffice.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 300,
        'pool_pre_ping': True
    }

    # Session Ayarları
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # CORS (dashboard ayrı origin'den çalışıyor)
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # Müşteri Atama
    # Parametre tablosunda kayıt yoksa ya da değer okunamazsa bu kullanılır
    DEFAULT_MAX_CUSTOMERS_PER_CONSULTANT = 1

    # Görevler
    TASK_PRIORITIES = ['low', 'medium', 'high', 'urgent']
    DEFAULT_TASK_PRIORITY = 'medium'

    # Sepet paylaşımı (harici uygulama simülasyonu, saniye)
    CART_SHARE_DELAY_RANGE = (0.5, 1.5)

    # Sayfalama
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class DevelopmentConfig(Config):
    """Geliştirme ortamı"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Canlı ortam"""
    DEBUG = False
    TESTING = False

    # Canlıda daha güçlü güvenlik
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Test ortamı"""
    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CART_SHARE_DELAY_RANGE = (0, 0)
    LOG_LEVEL = 'WARNING'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
