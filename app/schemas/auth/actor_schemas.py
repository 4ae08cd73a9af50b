from pydantic import BaseModel


class Actor(BaseModel):
    """Caller identity handed over by the authorization layer."""

    id: str
    role: str
