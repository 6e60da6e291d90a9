"""
Veritabanı kurulum script'i
Uygulamayı ilk kez başlatmadan önce çalıştırın.

Usage:
  python init_db.py            # tabloları oluştur + demo veri
  python init_db.py --reset    # önce tüm tabloları sil
  python init_db.py --no-seed  # sadece roller/yetkiler
"""

import argparse

from sqlalchemy import inspect

from app import app, db, role_service
from seed_store import seed


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--reset", action="store_true", help="Mevcut tabloları silip yeniden oluştur")
    p.add_argument("--no-seed", action="store_true", help="Demo kullanıcı/müşteri yükleme")
    args = p.parse_args()

    with app.app_context():
        if args.reset:
            print("🗑️  Tablolar siliniyor...")
            db.drop_all()

        print("Tablolar oluşturuluyor...")
        db.create_all()

        if args.no_seed:
            role_service.ensure_defaults()
            print("Roller ve yetkiler yüklendi.")
        else:
            print("Demo veriler yükleniyor...")
            seed()

        tables = inspect(db.engine).get_table_names()
        print(f"\n{len(tables)} tablo hazır:")
        for t in sorted(tables):
            print(f"  - {t}")


if __name__ == "__main__":
    main()
