"""SQLAlchemy models."""

from krafts.models.chat import Conversation, ConversationMember, Message, Presence
from krafts.models.notification import ExpoPushToken
from krafts.models.post import Post, ProjectApplication
from krafts.models.profile import (
    ArtistProfile,
    Profile,
    ProfileSocialLink,
    RecruiterCompany,
    RecruiterProfile,
)
from krafts.models.project import Project, ProjectMember
from krafts.models.schedule import Schedule, ScheduleMember
from krafts.models.user import OtpVerification, User

__all__ = [
    "User",
    "OtpVerification",
    "Profile",
    "ArtistProfile",
    "RecruiterProfile",
    "RecruiterCompany",
    "ProfileSocialLink",
    "Post",
    "ProjectApplication",
    "Project",
    "ProjectMember",
    "Schedule",
    "ScheduleMember",
    "Conversation",
    "ConversationMember",
    "Message",
    "Presence",
    "ExpoPushToken",
]
