from .auth import User, SessionToken
from .quotes import Quote, LineItem
from .catalog import Material
from .communications import Comment, EmailQueueEntry
from .documents import DocumentSequence, Order
from .audit import AuditLogEntry

__all__ = [
    'User', 'SessionToken',
    'Quote', 'LineItem',
    'Material',
    'Comment', 'EmailQueueEntry',
    'DocumentSequence', 'Order',
    'AuditLogEntry',
]
