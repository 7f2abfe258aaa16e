from sqlalchemy.ext.asyncio import AsyncSession
from app.models.support.activity_models import UserActivity
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode


async def emit_activity(
    db: AsyncSession,
    *,
    user_id: int | None,
    username: str,
    code: ActivityCode,
    **context,
):
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        UserActivity(
            user_id=user_id,
            username_snapshot=username,
            activity_code=code.value,
            message=message,
        )
    )


async def emit_user_activity(db: AsyncSession, user, code: ActivityCode, **context):
    """Shorthand for the common "actor did X to target" entries."""
    await emit_activity(
        db=db,
        user_id=user.id,
        username=user.username,
        code=code,
        actor_role=user.role.capitalize(),
        actor_email=user.username,
        **context,
    )


SYSTEM_ACTOR = "system"


async def emit_system_activity(db: AsyncSession, code: ActivityCode, **context):
    """Entries written by scheduler jobs and CLI runs, with no acting user."""
    await emit_activity(
        db=db,
        user_id=None,
        username=SYSTEM_ACTOR,
        code=code,
        actor_role="System",
        actor_email=SYSTEM_ACTOR,
        **context,
    )
