"""SQLAlchemy ORM models."""

from app.models.api_call_log import ApiCallLog
from app.models.base import Base
from app.models.cache_entry import CacheEntry
from app.models.user import User

__all__ = ["Base", "CacheEntry", "User", "ApiCallLog"]
