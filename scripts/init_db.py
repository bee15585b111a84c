import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.boaz.models import Permission, Role, User
from scripts._db_utils import script_session

PERMISSIONS = (
    ("*", "Superuser: everything"),
    ("crm.view", "CRM: view accounts, tasks and health"),
    ("crm.edit", "CRM: edit accounts and tasks"),
    ("support.view", "Support: view tickets and KB"),
    ("support.edit", "Support: edit tickets and KB"),
    ("contracts.view", "Contracts: view"),
    ("contracts.edit", "Contracts: edit and send for signature"),
    ("accounting.view", "Accounting: view ledger and expenses"),
    ("accounting.edit", "Accounting: post entries and manage expenses"),
    ("assets.view", "Assets: view customer environments"),
    ("assets.edit", "Assets: edit customer environments"),
    ("marketing.view", "Marketing: view social posts"),
    ("marketing.edit", "Marketing: edit and publish social posts"),
)

ROLES = {
    "admin": ("Administrator", ("*",)),
    "manager": ("Manager", tuple(k for k, _ in PERMISSIONS if k != "*")),
    "staff": (
        "Staff",
        ("crm.view", "crm.edit", "support.view", "support.edit", "contracts.view", "assets.view", "marketing.view"),
    ),
    "customer": ("Customer", ("support.view",)),
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@boaz.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///boaz.db").strip()

    # Direct engine/session so release can run without building the Flask app.
    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for key, (name, perm_keys) in ROLES.items():
            role = s.query(Role).filter(Role.key == key).one_or_none()
            if not role:
                role = Role(key=key, name=name)
                s.add(role)
            for pk in perm_keys:
                if perms[pk] not in role.permissions:
                    role.permissions.append(perms[pk])
            roles[key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                name="Administrator",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
