from sqlalchemy.ext.asyncio import AsyncSession
from app.models.support.activity_models import ActivityLog
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode
from app.schemas.auth.actor_schemas import Actor


async def emit_activity(
    db: AsyncSession,
    *,
    actor: Actor,
    code: ActivityCode,
    **context,
):
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    try:
        message = template.format(
            actor_role=actor.role.capitalize(),
            actor_id=actor.id,
            **context,
        )
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        ActivityLog(
            actor_id=actor.id,
            actor_role=actor.role,
            code=code.value,
            message=message,
        )
    )
