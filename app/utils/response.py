from typing import TypeVar, Generic, Optional, Dict, Any
from pydantic import BaseModel

T = TypeVar("T")


def success_response(message: str, data: Optional[T] = None) -> Dict[str, Any]:
    """Success envelope; failures are rendered by the exception handlers."""
    return {
        "ok": True,
        "message": message,
        "data": data,
    }


class APIResponse(BaseModel, Generic[T]):
    ok: bool = True
    message: str
    data: Optional[T] = None
