"""
Models package initialization
"""

from .user import User
from .follow import UserFollow, FollowIntent
from .photo import Photo, PhotoLike, PhotoComment, PhotoFlag, PhotoReview
from .notification import Notification, NotificationType
from .task import DeferredTask, TaskStatus

__all__ = [
    "User", "UserFollow", "FollowIntent",
    "Photo", "PhotoLike", "PhotoComment", "PhotoFlag", "PhotoReview",
    "Notification", "NotificationType",
    "DeferredTask", "TaskStatus",
]
