"""Mint an access token for a service or operator actor.

    python -m app.scripts.issue_token <actor-id> [role] [minutes]
"""
from datetime import timedelta
import sys

from app.core.security import create_access_token


def issue_token(actor_id: str, role: str = "admin", minutes: int | None = None) -> str:
    expires = timedelta(minutes=minutes) if minutes else None
    return create_access_token(actor_id, role, expires_delta=expires)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        sys.exit("usage: python -m app.scripts.issue_token <actor-id> [role] [minutes]")

    actor_id = sys.argv[1]
    role = sys.argv[2] if len(sys.argv) > 2 else "admin"
    minutes = int(sys.argv[3]) if len(sys.argv) > 3 else None

    print(issue_token(actor_id, role, minutes))
