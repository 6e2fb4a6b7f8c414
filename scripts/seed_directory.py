"""
Seed the organisation directory: roles (with routing scope), colleges,
departments and sample users.

Usage:
    python scripts/seed_directory.py                # Uses development DB
    python scripts/seed_directory.py --env production --no-users

This script is idempotent and safe to run on every deploy.
Equivalent to ``flask --app wsgi seed-directory``.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.models.auth import Role, User
from app.models.organization import College, Department
from app.services.directory_seed import SAMPLE_PASSWORD, seed_directory


def main():
    parser = argparse.ArgumentParser(description="Seed roles, colleges, departments and sample users")
    parser.add_argument("--env", default="development", help="App environment")
    parser.add_argument("--no-users", action="store_true", help="Skip sample users")
    args = parser.parse_args()

    os.environ.setdefault("APP_ENV", args.env)
    app = create_app(args.env)

    with app.app_context():
        print("=" * 60)
        print("  SEED: Roles, Colleges, Departments & Users")
        print("=" * 60)

        created = seed_directory(with_users=not args.no_users)

        print("\n" + "=" * 60)
        print("  SUMMARY (new / total)")
        print("=" * 60)
        print(f"  Roles:       {created['roles']:3d} / {Role.query.count()}")
        print(f"  Colleges:    {created['colleges']:3d} / {College.query.count()}")
        print(f"  Departments: {created['departments']:3d} / {Department.query.count()}")
        print(f"  Users:       {created['users']:3d} / {User.query.count()}")

        print("\nRole scopes:")
        for role in Role.query.order_by(Role.id).all():
            print(f"  {role.name:30s} {role.scope}")

        if created["users"]:
            print(f"\nSample users share the password '{SAMPLE_PASSWORD}'.")
        print("\nSeed complete.")


if __name__ == "__main__":
    main()
