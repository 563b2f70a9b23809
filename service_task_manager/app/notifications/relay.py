"""
Project-room relay for real-time task updates.

Connections join rooms named after project ids; anything published to a room
is fanned out to every connection in it. Delivery is best-effort.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from shared.errors import TaskboardException
from shared.logging import get_logger
from shared.metrics import MetricsCollector


@dataclass
class RelayConnection:
    """An open websocket and the rooms it has joined."""
    connection_id: str
    websocket: Any
    rooms: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ProjectRoomRelay:
    """Tracks websocket connections and their project rooms."""

    def __init__(
        self,
        max_connections: int = 1000,
        metrics: Optional[MetricsCollector] = None,
        send_timeout: float = 5.0
    ):
        self.max_connections = max_connections
        self.send_timeout = send_timeout
        self.metrics = metrics
        self.logger = get_logger("task-manager.relay")

        self.connections: Dict[str, RelayConnection] = {}
        self.rooms: Dict[str, Set[str]] = {}  # project_id -> connection_ids
        self._pending: Set[asyncio.Task] = set()

    def _update_gauge(self):
        if self.metrics:
            self.metrics.set_active_connections(len(self.connections))

    async def stop(self):
        """Cancel in-flight publishes and close every connection."""
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

        for connection_id in list(self.connections):
            await self.remove_connection(connection_id)
        self.logger.info("Relay stopped")

    async def add_connection(self, websocket: Any) -> str:
        """Register an accepted websocket and return its connection id."""
        if len(self.connections) >= self.max_connections:
            raise TaskboardException(
                "CONNECTION_LIMIT_EXCEEDED",
                f"Maximum connections ({self.max_connections}) exceeded"
            )

        connection_id = str(uuid.uuid4())
        self.connections[connection_id] = RelayConnection(connection_id=connection_id, websocket=websocket)
        self._update_gauge()

        self.logger.info(
            "Relay connection added",
            connection_id=connection_id,
            total_connections=len(self.connections)
        )
        return connection_id

    async def remove_connection(self, connection_id: str, close: bool = True):
        """Drop a connection from every room it joined."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return

        for room in connection.rooms:
            members = self.rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self.rooms[room]

        if close:
            try:
                await asyncio.wait_for(connection.websocket.close(), timeout=self.send_timeout)
            except (RuntimeError, OSError, asyncio.TimeoutError) as e:
                # Already closed by the peer
                self.logger.debug("Websocket close skipped", connection_id=connection_id, error=str(e))

        self._update_gauge()
        self.logger.info(
            "Relay connection removed",
            connection_id=connection_id,
            total_connections=len(self.connections)
        )

    def join_room(self, connection_id: str, room: str) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        connection.rooms.add(room)
        self.rooms.setdefault(room, set()).add(connection_id)
        self.logger.info("Joined project room", connection_id=connection_id, project_id=room)
        return True

    def leave_room(self, connection_id: str, room: str) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        connection.rooms.discard(room)
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self.rooms[room]
        self.logger.info("Left project room", connection_id=connection_id, project_id=room)
        return True

    def room_members(self, room: str) -> Set[str]:
        return set(self.rooms.get(room, set()))

    async def send_message(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """Send to one connection. Returns False if the send failed."""
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        try:
            await asyncio.wait_for(
                connection.websocket.send_text(json.dumps(message)),
                timeout=self.send_timeout
            )
            return True
        except Exception as e:
            self.logger.warning("Failed to send message to connection", connection_id=connection_id, error=str(e))
            return False

    async def broadcast(self, room: str, message: Dict[str, Any]) -> int:
        """Send to every connection in ``room`` concurrently; failed or stalled connections are dropped."""
        subscribers = list(self.room_members(room))
        results = await asyncio.gather(*(self.send_message(connection_id, message) for connection_id in subscribers))

        sent_count = sum(1 for ok in results if ok)
        failed_connections = [connection_id for connection_id, ok in zip(subscribers, results) if not ok]

        for connection_id in failed_connections:
            await self.remove_connection(connection_id)

        self.logger.debug(
            "Broadcast to project room",
            project_id=room,
            sent_count=sent_count,
            failed_count=len(failed_connections)
        )
        return sent_count

    async def publish(self, room: str, event: str, data: Dict[str, Any]) -> int:
        """Broadcast ``{"event", "data"}`` to a room. Never raises."""
        try:
            sent_count = await self.broadcast(room, {"event": event, "data": data})
        except Exception as e:
            self.logger.error("Relay publish failed", project_id=room, event=event, error=str(e))
            return 0

        if self.metrics:
            self.metrics.record_relayed_message(event)
        return sent_count

    def publish_nowait(self, room: str, event: str, data: Dict[str, Any]) -> asyncio.Task:
        """Schedule ``publish`` in the background and return without waiting for delivery."""
        task = asyncio.create_task(self.publish(room, event, data))
        self._pending.add(task)
        task.add_done_callback(self._publish_done)
        return task

    def _publish_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Background publish failed", error=str(error))
