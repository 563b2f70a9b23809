"""
Inbound websocket message handling for the project-room relay.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.logging import get_logger
from .relay import ProjectRoomRelay

TASK_UPDATED_EVENT = "taskUpdated"


@dataclass
class RelayMessage:
    """Parsed inbound frame."""
    event: str
    payload: Dict[str, Any]
    connection_id: str


class RelayMessageHandler:
    """Routes ``joinProject``, ``leaveProject`` and ``taskUpdate`` frames."""

    def __init__(self, relay: ProjectRoomRelay):
        self.relay = relay
        self.logger = get_logger("task-manager.relay.handler")

    async def handle_message(self, connection_id: str, message_text: str) -> Optional[Dict[str, Any]]:
        """
        Handle one text frame.

        Returns the reply to send back to the sender, or None when there is
        nothing to reply.
        """
        try:
            message_data = json.loads(message_text)

            if not isinstance(message_data, dict):
                raise ValueError("Message must be a JSON object")

            event = message_data.get("event")
            if not event or not isinstance(event, str):
                raise ValueError("Message must have 'event' field")

            message = RelayMessage(event=event, payload=message_data, connection_id=connection_id)
            return await self._route_message(message)

        except json.JSONDecodeError as e:
            self.logger.warning("Invalid JSON message", connection_id=connection_id, error=str(e))
            return {
                "error": "INVALID_JSON",
                "message": "Message must be valid JSON"
            }

        except ValueError as e:
            self.logger.warning("Invalid message format", connection_id=connection_id, error=str(e))
            return {
                "error": "INVALID_FORMAT",
                "message": str(e)
            }

    async def _route_message(self, message: RelayMessage) -> Optional[Dict[str, Any]]:
        handlers = {
            "joinProject": self._handle_join,
            "leaveProject": self._handle_leave,
            "taskUpdate": self._handle_task_update
        }

        handler = handlers.get(message.event)
        if not handler:
            return {
                "error": "UNKNOWN_EVENT",
                "message": f"Unknown event: {message.event}",
                "available_events": list(handlers.keys())
            }

        return await handler(message)

    @staticmethod
    def _project_id(container: Dict[str, Any]) -> str:
        project_id = container.get("projectId")
        if not project_id or not isinstance(project_id, str):
            raise ValueError("'projectId' is required")
        return project_id

    async def _handle_join(self, message: RelayMessage) -> Dict[str, Any]:
        project_id = self._project_id(message.payload)
        self.relay.join_room(message.connection_id, project_id)
        return {"event": "joinedProject", "projectId": project_id}

    async def _handle_leave(self, message: RelayMessage) -> Dict[str, Any]:
        project_id = self._project_id(message.payload)
        self.relay.leave_room(message.connection_id, project_id)
        return {"event": "leftProject", "projectId": project_id}

    async def _handle_task_update(self, message: RelayMessage) -> None:
        """Relay the payload verbatim to the project room, sender included."""
        data = message.payload.get("data")
        if not isinstance(data, dict):
            raise ValueError("'data' must be an object")

        project_id = self._project_id(data)
        await self.relay.publish(project_id, TASK_UPDATED_EVENT, data)
        return None
