"""
Müşteri kapasitesi parametresini tek anahtara taşı.

Eski kurulumlar MAX_CUSTOMER_PER_CONSULTANT yazımını kullanıyor; uygulama
MAX_CUSTOMERS_PER_CONSULTANT okur.

Usage:
  python scripts/fix_params.py
"""

from app import app
from models import db, Parameter
from services.capacity import LEGACY_MAX_CUSTOMERS_KEY, MAX_CUSTOMERS_KEY


def fix_params(session):
    """Eski anahtarı yeniden adlandır ya da sil; yapılan işlemi döndür"""
    legacy = session.query(Parameter).filter_by(key=LEGACY_MAX_CUSTOMERS_KEY).first()
    canonical = session.query(Parameter).filter_by(key=MAX_CUSTOMERS_KEY).first()

    if legacy is not None and canonical is None:
        legacy.key = MAX_CUSTOMERS_KEY
        session.commit()
        return 'renamed'
    if legacy is not None and canonical is not None:
        session.delete(legacy)
        session.commit()
        return 'deleted'
    return 'unchanged'


def main():
    with app.app_context():
        result = fix_params(db.session)
        if result == 'renamed':
            print(f"🔧 Parametre anahtarı '{LEGACY_MAX_CUSTOMERS_KEY}' -> '{MAX_CUSTOMERS_KEY}' olarak güncellendi.")
        elif result == 'deleted':
            print(f"🗑️ Eski parametre '{LEGACY_MAX_CUSTOMERS_KEY}' silindi, '{MAX_CUSTOMERS_KEY}' kullanılıyor.")
        else:
            print("✅ Parametre anahtarları zaten tutarlı.")


if __name__ == "__main__":
    main()
