"""
OLKA Mağaza - Demo Veri Seed Script
Çalıştırma: python seed_store.py
"""

from app import app, role_service, parameter_service
from models import db, User, UserRole, Customer, TaskDefinition
from permissions import RoleName
from services.capacity import MAX_CUSTOMERS_KEY

DEMO_PASSWORD = '123456'

DEMO_USERS = [
    ('mudur@olka.com', 'Mehmet', 'Demir', RoleName.STORE_MANAGER),
    ('satis@olka.com', 'Ahmet', 'Yılmaz', RoleName.SALES_CONSULTANT),
    ('satis2@olka.com', 'Özge', 'Aslan', RoleName.SALES_CONSULTANT),
    ('runner@olka.com', 'Ayşe', 'Kaya', RoleName.RUNNER),
]

DEMO_CUSTOMERS = [
    ('Fatma', 'Şahin', '5559876543', 'VIP'),
    ('Can', 'Öztürk', '5559876544', 'Premium'),
    ('Zehra', 'Arslan', '5559876545', 'Aday'),
    ('Emre', 'Koç', '5551234571', 'Premium'),
    ('Metin', 'Aydın', '5551234572', 'Classic'),
]

DEMO_PARAMETERS = [
    (MAX_CUSTOMERS_KEY, '1', 'NUMBER', 'LIMITS', 'Satış danışmanının aynı anda bakabileceği maksimum müşteri sayısı'),
    ('STORE_NAME', 'OLKA Premium Mağaza', 'STRING', 'SYSTEM', 'Mağaza adı'),
]

DEMO_TASK_DEFINITIONS = [
    ('Ürün Teslimi', RoleName.RUNNER, True, 'Depodan ürünü danışmana getir'),
    ('Numara Değişimi', RoleName.RUNNER, True, 'Farklı numara getir'),
    ('Müşteri Karşılama', RoleName.SALES_CONSULTANT, False, 'Bekleyen müşteriyle ilgilen'),
]


def seed():
    """Rolleri, demo kullanıcıları, müşterileri, parametreleri ve görev tanımlarını yükle"""
    role_service.ensure_defaults()

    users = {}
    for email, first_name, last_name, role_name in DEMO_USERS:
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, first_name=first_name, last_name=last_name,
                        full_name=f"{first_name} {last_name}", is_active=True)
            user.set_password(DEMO_PASSWORD)
            db.session.add(user)
            db.session.flush()
            db.session.add(UserRole(user_id=user.id, role_id=role_service.get_by_name(role_name).id))
            print(f"   ✅ Kullanıcı: {email} ({role_name.value})")
        else:
            print(f"   ℹ️  Kullanıcı zaten mevcut: {email}")
        users[email] = user
    db.session.commit()

    for first_name, last_name, phone, segment in DEMO_CUSTOMERS:
        if Customer.query.filter_by(phone=phone).first() is None:
            db.session.add(Customer(first_name=first_name, last_name=last_name,
                                    full_name=f"{first_name} {last_name}",
                                    phone=phone, segment=segment, consent_personal_data=True))
            print(f"   ✅ Müşteri: {first_name} {last_name}")
    db.session.commit()

    for key, value, param_type, category, description in DEMO_PARAMETERS:
        if parameter_service.find(key) is None:
            parameter_service.set(key, value, param_type, category, description)
            print(f"   ✅ Parametre: {key}={value}")

    manager = users['mudur@olka.com']
    for name, role_name, requires_code, description in DEMO_TASK_DEFINITIONS:
        exists = TaskDefinition.query.filter_by(name=name, role=role_name.value).first()
        if exists is None:
            db.session.add(TaskDefinition(name=name, role=role_name.value, description=description,
                                          requires_product_code=requires_code, created_by_id=manager.id))
            print(f"   ✅ Görev tanımı: {name} ({role_name.value})")
    db.session.commit()


def main():
    with app.app_context():
        print("=" * 60)
        print("🏬 OLKA MAĞAZA - DEMO VERİ YÜKLENİYOR")
        print("=" * 60)
        seed()
        print("\n" + "=" * 60)
        print("🎉 SEED TAMAMLANDI!")
        print("=" * 60)
        print(f"\n⚠️  Demo şifre: {DEMO_PASSWORD} (canlı ortamda değiştirin)\n")


if __name__ == '__main__':
    main()
