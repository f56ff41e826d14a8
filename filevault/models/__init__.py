from filevault.models.base import IntIdMixin, TimestampMixin
from filevault.models.user import User
from filevault.models.file import File

__all__ = [
    "IntIdMixin",
    "TimestampMixin",
    "User",
    "File",
]
