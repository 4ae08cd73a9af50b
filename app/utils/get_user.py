from fastapi import Header, Request

from app.core.exceptions import AppException
from app.core.security import decode_access_token
from app.constants.error_codes import ErrorCode
from app.schemas.auth.actor_schemas import Actor
from app.utils.logger import get_logger

logger = get_logger("auth.guard")


async def get_current_actor(
    request: Request,
    authorization: str | None = Header(None),
) -> Actor:
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing bearer token")
        raise AppException(
            401,
            "Invalid authorization header",
            ErrorCode.UNAUTHORIZED,
        )

    token = authorization.split("Bearer ")[1].strip()
    payload = decode_access_token(token)

    actor = Actor(id=str(payload["sub"]), role=str(payload["role"]).lower())

    request.state.actor = actor
    return actor
