from enum import Enum

from .. import repo


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


def resolve_role(user_id: str | None) -> Role:
    """Role of ``user_id`` as recorded in the database right now."""
    if not user_id:
        return Role.USER
    if Role.ADMIN.value in repo.list_roles(str(user_id)):
        return Role.ADMIN
    return Role.USER


def is_admin(user_id: str | None) -> bool:
    return resolve_role(user_id) is Role.ADMIN
