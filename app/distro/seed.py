"""
Idempotent seed data: permissions, roles and global settings.

Shared by scripts/init_db.py (release phase) and the test fixtures.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from app.distro.models import Permission, Role

PERMISSIONS: dict[str, str] = {
    "releases.own": "Releases: create and manage own releases",
    "releases.review": "Releases: review, approve, reject, distribute",
    "metadata.manage": "Metadata: manage dropdown values and global defaults",
    "users.manage": "Users: list, change roles, delete",
    "requests.manage": "Requests: process claims and linking requests",
    "agreements.manage": "Agreements: review signed agreements",
}

ROLES: dict[str, str] = {
    "artist": "Artist",
    "label": "Label",
    "admin": "Administrator",
}

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "artist": ("releases.own",),
    "label": ("releases.own",),
    "admin": tuple(PERMISSIONS),
}

# Roles a user may pick for themselves at signup.
SELF_SERVICE_ROLES = ("artist", "label")


def seed_roles_and_permissions(s: Session) -> dict[str, Role]:
    perms: dict[str, Permission] = {}
    for key, name in PERMISSIONS.items():
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p

    roles: dict[str, Role] = {}
    for key, name in ROLES.items():
        r = s.query(Role).filter(Role.key == key).one_or_none()
        if not r:
            r = Role(key=key, name=name)
            s.add(r)
        for perm_key in ROLE_PERMISSIONS[key]:
            if perms[perm_key] not in r.permissions:
                r.permissions.append(perms[perm_key])
        roles[key] = r
    s.flush()
    return roles


def seed_global_settings(s: Session, *, default_label: str) -> None:
    from app.distro.modules.label_publisher.models import GlobalSetting
    from app.distro.modules.label_publisher.service import DEFAULT_LABEL_KEY, DEFAULT_PUBLISHER_KEY, set_global_setting

    for key in (DEFAULT_LABEL_KEY, DEFAULT_PUBLISHER_KEY):
        existing = s.query(GlobalSetting).filter(GlobalSetting.setting_key == key).one_or_none()
        if existing is None:
            set_global_setting(s, key, default_label)
