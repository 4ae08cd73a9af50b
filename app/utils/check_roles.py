from fastapi import Depends

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.schemas.auth.actor_schemas import Actor
from app.utils.get_user import get_current_actor

ADMIN_ROLES = ["admin"]
READ_ROLES = ["admin", "inventory"]


def require_role(roles: list[str]):
    async def role_checker(actor: Actor = Depends(get_current_actor)):
        if actor.role.lower() not in [r.lower() for r in roles]:
            raise AppException(
                403,
                "Permission denied",
                ErrorCode.PERMISSION_DENIED,
            )
        return actor
    return role_checker
