from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class DocumentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class TransactionKind(str, Enum):
    NORMAL = "NORMAL"
    RETURN_REQUEST = "RETURN_REQUEST"


class DocumentActionType(str, Enum):
    ARCHIVE = "ARCHIVE"
    UNARCHIVE = "UNARCHIVE"
    RETURN = "RETURN"


class Inbox(str, Enum):
    INCOMING = "INCOMING"
    IADE = "IADE"  # returns addressed to me
    RED = "RED"  # my offers that were rejected
