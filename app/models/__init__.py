from app.models.audit import AuditLog
from app.models.lost_found import FoundItem, LostItem, Match
from app.models.user import User


__all__ = [
    "AuditLog",
    "FoundItem",
    "LostItem",
    "Match",
    "User",
]
