import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.distro.models import User  # noqa: E402
from app.distro.seed import seed_global_settings, seed_roles_and_permissions  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user/global label defaults in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@internetrecords.in").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrator").strip()
    default_label = (os.environ.get("DEFAULT_LABEL_NAME") or "Internet Records").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///distro.db").strip()

    # Direct engine/session so this can run in release without building the Flask app.
    with script_session(db_url) as s:
        roles = seed_roles_and_permissions(s)
        seed_global_settings(s, default_label=default_label)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                name=admin_name,
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
