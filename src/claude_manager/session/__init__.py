"""Session management."""

from claude_manager.session.models import Session, SessionStatus
from claude_manager.session.registry import SessionRegistry
from claude_manager.session.status import Classification, StatusClassifier, StatusRules
from claude_manager.session.wire import EventType, Wire, WireEvent

__all__ = [
    "Session",
    "SessionStatus",
    "SessionRegistry",
    "Classification",
    "StatusClassifier",
    "StatusRules",
    "EventType",
    "Wire",
    "WireEvent",
]
