"""
Real-time task update relay.
"""

from .handlers import RelayMessageHandler
from .relay import ProjectRoomRelay

__all__ = ["ProjectRoomRelay", "RelayMessageHandler"]
