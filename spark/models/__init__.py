"""
Spark - ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from spark.models.profile import Profile
from spark.models.otp import OtpChallenge, OtpStatus
from spark.models.match import Match, Swipe, SwipeAction
from spark.models.message import Message

__all__ = [
    "Profile",
    "OtpChallenge",
    "OtpStatus",
    "Match",
    "Swipe",
    "SwipeAction",
    "Message",
]
