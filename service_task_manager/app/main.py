"""
Task Manager service.

Projects, tasks, users and analytics over HTTP, plus a websocket relay that
pushes task updates to project rooms.
"""

import json
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import TaskboardException
from shared.logging import set_connection_context

from .auth import IdentityResolver
from .models import (
    Identity, MessageResponse, ProjectCreate, ProjectOut, ProjectUpdate,
    TaskCreate, TaskOut, TaskUpdate, UserOut, UserProfileOut, UserUpdate
)
from .notifications import ProjectRoomRelay, RelayMessageHandler
from .persistence import DocumentStore, create_store
from .services import AnalyticsService, ProjectService, TaskService, UserService
from .services.analytics import ProjectStats, UserStats

SERVICE_NAME = "task-manager"


class TaskManagerService(BaseService):
    """Task Manager service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, store: Optional[DocumentStore] = None):
        self._injected_store = store
        super().__init__(SERVICE_NAME, config)
        self.app.state.task_manager = self

    def _setup_components(self):
        self.store = self._injected_store or create_store(self.config)
        self.relay = ProjectRoomRelay(
            max_connections=self.config.max_ws_connections,
            metrics=self.metrics
        )
        self.relay_handler = RelayMessageHandler(self.relay)
        self.identity_resolver = IdentityResolver(self.config.jwt_secret, self.config.jwt_algorithm)

        self.projects = ProjectService(self.store, metrics=self.metrics)
        self.tasks = TaskService(self.store, relay=self.relay, metrics=self.metrics)
        self.users = UserService(self.store, metrics=self.metrics)
        self.analytics = AnalyticsService(self.store)

    async def startup(self):
        await self.store.start()

    async def shutdown(self):
        await self.relay.stop()
        await self.store.stop()

    def _setup_routes(self):
        super()._setup_routes()

        current_identity = Depends(self.identity_resolver)
        router = APIRouter()

        @self.app.get("/")
        async def root():
            return {
                "service": SERVICE_NAME,
                "message": "Taskboard - Task Manager Service",
                "version": "1.0.0"
            }

        # Projects

        @router.get("/projects", response_model=List[ProjectOut])
        async def list_projects(identity: Identity = current_identity):
            return await self.projects.list(identity)

        @router.get("/projects/{project_id}", response_model=ProjectOut)
        async def get_project(project_id: str, identity: Identity = current_identity):
            return await self.projects.get(identity, project_id)

        @router.post("/projects", response_model=ProjectOut)
        async def create_project(payload: ProjectCreate, identity: Identity = current_identity):
            return await self.projects.create(identity, payload)

        @router.put("/projects/{project_id}", response_model=ProjectOut)
        async def update_project(project_id: str, payload: ProjectUpdate, identity: Identity = current_identity):
            return await self.projects.update(identity, project_id, payload)

        @router.delete("/projects/{project_id}", response_model=MessageResponse)
        async def delete_project(project_id: str, identity: Identity = current_identity):
            await self.projects.remove(identity, project_id)
            return MessageResponse(message="Project removed")

        # Tasks

        @router.get("/tasks", response_model=List[TaskOut])
        async def list_tasks(identity: Identity = current_identity):
            return await self.tasks.list_for_user(identity)

        @router.get("/tasks/project/{project_id}", response_model=List[TaskOut])
        async def list_project_tasks(project_id: str, identity: Identity = current_identity):
            return await self.tasks.list_for_project(identity, project_id)

        @router.get("/tasks/{task_id}", response_model=TaskOut)
        async def get_task(task_id: str, identity: Identity = current_identity):
            return await self.tasks.get(identity, task_id)

        @router.post("/tasks", response_model=TaskOut)
        async def create_task(payload: TaskCreate, identity: Identity = current_identity):
            return await self.tasks.create(identity, payload)

        @router.put("/tasks/{task_id}", response_model=TaskOut)
        async def update_task(task_id: str, payload: TaskUpdate, identity: Identity = current_identity):
            return await self.tasks.update(identity, task_id, payload)

        @router.delete("/tasks/{task_id}", response_model=MessageResponse)
        async def delete_task(task_id: str, identity: Identity = current_identity):
            await self.tasks.remove(identity, task_id)
            return MessageResponse(message="Task removed")

        # Users

        @router.get("/users", response_model=List[UserOut])
        async def list_users(identity: Identity = current_identity):
            return await self.users.list(identity)

        @router.get("/users/{user_id}", response_model=UserOut)
        async def get_user(user_id: str, identity: Identity = current_identity):
            return await self.users.get(identity, user_id)

        @router.put("/users/{user_id}", response_model=UserProfileOut)
        async def update_user(user_id: str, payload: UserUpdate, identity: Identity = current_identity):
            return await self.users.update(identity, user_id, payload)

        @router.delete("/users/{user_id}", response_model=MessageResponse)
        async def delete_user(user_id: str, identity: Identity = current_identity):
            await self.users.remove(identity, user_id)
            return MessageResponse(message="User removed")

        # Analytics

        @router.get("/analytics/project/{project_id}", response_model=ProjectStats)
        async def project_analytics(project_id: str, identity: Identity = current_identity):
            return await self.analytics.project_stats(identity, project_id)

        @router.get("/analytics/user/{user_id}", response_model=UserStats)
        async def user_analytics(user_id: str, identity: Identity = current_identity):
            return await self.analytics.user_stats(identity, user_id)

        self.app.include_router(router)
        self.app.include_router(router, prefix="/api", include_in_schema=False)

        @self.app.websocket("/ws")
        async def relay_endpoint(websocket: WebSocket):
            """Project-room relay. Frames are JSON objects with an ``event`` key."""
            await websocket.accept()

            try:
                connection_id = await self.relay.add_connection(websocket)
            except TaskboardException as e:
                self.logger.warning("Relay connection refused", code=e.code)
                await websocket.send_text(json.dumps({"error": e.code, "message": e.message}))
                await websocket.close()
                return

            set_connection_context(connection_id)
            try:
                while True:
                    try:
                        message_text = await websocket.receive_text()
                    except KeyError:
                        # Binary frame
                        self.logger.warning("Relay frame rejected", connection_id=connection_id, reason="binary")
                        await websocket.send_text(json.dumps({
                            "error": "INVALID_FORMAT",
                            "message": "Frames must be JSON text"
                        }))
                        continue
                    response = await self.relay_handler.handle_message(connection_id, message_text)
                    if response:
                        await websocket.send_text(json.dumps(response))
            except WebSocketDisconnect:
                self.logger.debug("Relay client disconnected", connection_id=connection_id)
            except Exception as e:
                self.logger.error("Relay connection error", connection_id=connection_id, error=str(e))
            finally:
                await self.relay.remove_connection(connection_id, close=False)

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"storage": await self.store.ping()}


def create_app():
    """Create task manager service application."""
    service = TaskManagerService()
    return service.app


if __name__ == "__main__":
    service = TaskManagerService()
    service.run()
