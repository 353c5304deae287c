"""API v1 module."""

from fastapi import APIRouter

from krafts.api.v1 import (
    admin,
    auth,
    chat,
    health,
    notifications,
    posts,
    profiles,
    projects,
    schedules,
    uploads,
    users,
)

router = APIRouter()

router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
router.include_router(posts.router, prefix="/posts", tags=["posts"])
router.include_router(projects.router, prefix="/projects", tags=["projects"])
router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
router.include_router(chat.router, prefix="/chat", tags=["chat"])
router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
