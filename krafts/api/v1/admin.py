"""Admin endpoints."""

from fastapi import APIRouter
from sqlalchemy import func, select

from krafts.api.deps import AdminProfile, DbSession
from krafts.models.chat import Conversation, Message
from krafts.models.post import Post, ProjectApplication
from krafts.models.profile import Profile
from krafts.models.user import User

router = APIRouter()


@router.get("/stats")
async def get_stats(db: DbSession, _: AdminProfile) -> dict:
    """Platform counters for the admin dashboard."""

    async def count(model) -> int:
        result = await db.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    roles = await db.execute(select(Profile.role, func.count()).group_by(Profile.role))

    return {
        "users": await count(User),
        "profiles": await count(Profile),
        "profilesByRole": {role: total for role, total in roles.all()},
        "posts": await count(Post),
        "applications": await count(ProjectApplication),
        "conversations": await count(Conversation),
        "messages": await count(Message),
    }
