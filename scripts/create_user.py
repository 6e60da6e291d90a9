"""
Create (or update) a store user with a role.

Usage:
  python scripts/create_user.py --email runner2@olka.com --first-name "Ali" --last-name "Veli" \
      --password "Runner!2026" --role Runner
"""

import argparse

from app import app, role_service
from models import db, User, UserRole
from permissions import RoleName


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--email", required=True)
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--role", required=True, choices=RoleName.values())
    args = p.parse_args()

    with app.app_context():
        role_service.ensure_defaults()
        role = role_service.get_by_name(args.role)
        email = args.email.strip().lower()

        user = User.query.filter_by(email=email).first()
        created = user is None
        if created:
            user = User(email=email)
            db.session.add(user)

        user.first_name = args.first_name
        user.last_name = args.last_name
        user.full_name = f"{args.first_name} {args.last_name}"
        user.is_active = True
        user.set_password(args.password)
        db.session.flush()

        membership = UserRole.query.filter_by(user_id=user.id, role_id=role.id).first()
        if membership is None:
            db.session.add(UserRole(user_id=user.id, role_id=role.id))
        else:
            membership.is_active = True

        db.session.commit()
        action = "Created" if created else "Updated existing"
        print(f"{action} user: {email} ({role.name})")


if __name__ == "__main__":
    main()
