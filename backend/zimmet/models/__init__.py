from .enums import Role, DocumentStatus, TransactionStatus, TransactionKind, DocumentActionType, Inbox
from .auth import User, SessionToken
from .custody import Document, CustodyTransaction, DocumentNote, InboxSeen

__all__ = [
    'Role', 'DocumentStatus', 'TransactionStatus', 'TransactionKind', 'DocumentActionType', 'Inbox',
    'User', 'SessionToken',
    'Document', 'CustodyTransaction', 'DocumentNote', 'InboxSeen',
]
