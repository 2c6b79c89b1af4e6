from .auth import User, SessionToken
from .deals import Deal, Founder, Accountant, Investor
from .records import Milestone, Document, Note

__all__ = [
    'User', 'SessionToken',
    'Deal', 'Founder', 'Accountant', 'Investor',
    'Milestone', 'Document', 'Note',
]
