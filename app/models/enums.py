from enum import Enum

class ItemType(str, Enum):
    PHONE = "phone"
    LAPTOP = "laptop"
    TEXTBOOK = "textbook"
    ID = "id"
    KEYS = "keys"
    WALLET = "wallet"
    BACKPACK = "backpack"
    OTHER = "other"


class ItemKind(str, Enum):
    LOST = "lost"
    FOUND = "found"


class LostItemStatus(str, Enum):
    ACTIVE = "active"
    FOUND = "found"
    CLOSED = "closed"


class FoundItemStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    CLOSED = "closed"


class MatchStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    CLAIMED = "claimed"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Statuses cancelled when an item leaves the active state.
OPEN_MATCH_STATUSES = (MatchStatus.PENDING, MatchStatus.MATCHED, MatchStatus.CLAIMED)


class ContactPreference(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class ProfileVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
