"""
Unit tests for TaskService.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from service_task_manager.app.models import (
    Identity, TaskCreate, TaskPriority, TaskStatus, TaskUpdate
)
from service_task_manager.app.notifications import ProjectRoomRelay
from service_task_manager.app.persistence import InMemoryDocumentStore
from service_task_manager.app.services import TaskService
from shared.errors import AccessDeniedError, NotFoundError, ValidationError
from shared.test_helpers import seed_users, test_data_factory

ALICE = Identity(user_id="alice")
BOB = Identity(user_id="bob")
MALLORY = Identity(user_id="mallory")


class TestTaskService:
    """Test cases for TaskService."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.fixture
    def relay(self):
        relay = MagicMock()
        relay.publish_nowait = MagicMock()
        return relay

    @pytest.fixture
    def service(self, store, relay):
        return TaskService(store, relay=relay)

    async def _seed(self, store):
        await seed_users(store)
        await store.insert("projects", test_data_factory.create_project_document("p1", "alice", ["bob"]))
        await store.insert("projects", test_data_factory.create_project_document("p2", "carol", name="Other"))

    @pytest.mark.asyncio
    async def test_create_applies_defaults(self, service, store):
        await self._seed(store)

        task = await service.create(BOB, TaskCreate(title="Write tests", project="p1"))

        assert task.status == TaskStatus.TODO
        assert task.priority == TaskPriority.MEDIUM
        assert task.time_spent == 0
        assert task.created_by.id == "bob"
        assert task.project.id == "p1"
        assert task.project.name == "Sprint1"
        assert task.assigned_to is None

    @pytest.mark.asyncio
    async def test_create_accepts_time_spent(self, service, store):
        await self._seed(store)

        task = await service.create(ALICE, TaskCreate(title="Backfill", project="p1", time_spent=30))

        assert task.time_spent == 30

    @pytest.mark.asyncio
    async def test_create_missing_project(self, service, store):
        await self._seed(store)

        with pytest.raises(NotFoundError):
            await service.create(ALICE, TaskCreate(title="Orphan", project="missing"))

    @pytest.mark.asyncio
    async def test_create_without_project_access(self, service, store):
        await self._seed(store)

        with pytest.raises(AccessDeniedError):
            await service.create(ALICE, TaskCreate(title="Sneaky", project="p2"))

    @pytest.mark.asyncio
    async def test_create_requires_title(self, service, store):
        await self._seed(store)

        with pytest.raises(ValidationError):
            await service.create(ALICE, TaskCreate(title="  ", project="p1"))

    @pytest.mark.asyncio
    async def test_create_publishes_task_updated(self, service, store, relay):
        await self._seed(store)

        task = await service.create(ALICE, TaskCreate(title="Write tests", project="p1"))

        relay.publish_nowait.assert_called_once()
        room, event, payload = relay.publish_nowait.call_args.args
        assert room == "p1"
        assert event == "taskUpdated"
        assert payload["id"] == task.id
        assert payload["projectId"] == "p1"
        assert payload["action"] == "created"
        assert payload["timeSpent"] == 0

    @pytest.mark.asyncio
    async def test_broken_subscriber_does_not_fail_request(self, store):
        await self._seed(store)
        relay = ProjectRoomRelay()
        websocket = AsyncMock()
        websocket.send_text.side_effect = RuntimeError("socket gone")
        connection_id = await relay.add_connection(websocket)
        relay.join_room(connection_id, "p1")
        service = TaskService(store, relay=relay)

        task = await service.create(ALICE, TaskCreate(title="Write tests", project="p1"))
        await asyncio.gather(*relay._pending)

        assert await store.find_by_id("tasks", task.id) is not None
        assert connection_id not in relay.connections

    @pytest.mark.asyncio
    async def test_stalled_subscriber_does_not_block_writes(self, store):
        await self._seed(store)
        relay = ProjectRoomRelay()
        stalled = asyncio.Event()

        async def never_finishes(_text):
            await stalled.wait()

        websocket = AsyncMock()
        websocket.send_text.side_effect = never_finishes
        connection_id = await relay.add_connection(websocket)
        relay.join_room(connection_id, "p1")
        service = TaskService(store, relay=relay)

        task = await asyncio.wait_for(service.create(ALICE, TaskCreate(title="t", project="p1")), 1.0)

        assert task.title == "t"
        assert len(relay._pending) == 1
        await relay.stop()
        assert relay._pending == set()

    @pytest.mark.asyncio
    async def test_list_for_user_covers_accessible_projects_newest_first(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document(
            "old", "p1", "alice", created_at="2024-01-01T00:00:00+00:00"))
        await store.insert("tasks", test_data_factory.create_task_document(
            "new", "p1", "alice", created_at="2024-03-01T00:00:00+00:00"))
        await store.insert("tasks", test_data_factory.create_task_document("hidden", "p2", "carol"))

        tasks = await service.list_for_user(BOB)

        assert [task.id for task in tasks] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_list_for_user_without_projects(self, service, store):
        await self._seed(store)

        assert await service.list_for_user(MALLORY) == []

    @pytest.mark.asyncio
    async def test_list_for_project_checks_access(self, service, store):
        await self._seed(store)

        with pytest.raises(NotFoundError):
            await service.list_for_project(ALICE, "missing")
        with pytest.raises(AccessDeniedError):
            await service.list_for_project(ALICE, "p2")

    @pytest.mark.asyncio
    async def test_get_expands_references(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice", assigned_to="bob"))

        task = await service.get(BOB, "t1")

        assert task.assigned_to.name == "Bob Member"
        assert task.assigned_to.email == "bob@example.com"
        assert task.created_by.name == "Alice Owner"
        assert task.project.name == "Sprint1"

    @pytest.mark.asyncio
    async def test_get_denied_for_non_member(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p2", "carol"))

        with pytest.raises(AccessDeniedError):
            await service.get(ALICE, "t1")

    @pytest.mark.asyncio
    async def test_orphan_task_is_not_found(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "gone", "alice"))

        with pytest.raises(NotFoundError):
            await service.get(ALICE, "t1")

    @pytest.mark.asyncio
    async def test_update_explicit_zero_time_spent(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice", time_spent=45))

        task = await service.update(BOB, "t1", TaskUpdate.model_validate({"timeSpent": 0}))

        assert task.time_spent == 0
        assert (await store.find_by_id("tasks", "t1"))["time_spent"] == 0

    @pytest.mark.asyncio
    async def test_update_explicit_null_clears_optional_fields(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document(
            "t1", "p1", "alice", assigned_to="bob", estimated_time=60,
            due_date="2024-06-01T00:00:00+00:00"))

        task = await service.update(ALICE, "t1", TaskUpdate.model_validate(
            {"assignedTo": None, "estimatedTime": None, "dueDate": None}))

        assert task.assigned_to is None
        assert task.estimated_time is None
        assert task.due_date is None

    @pytest.mark.asyncio
    async def test_update_leaves_absent_fields_and_bumps_updated_at(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document(
            "t1", "p1", "alice", priority="High", estimated_time=60))

        task = await service.update(ALICE, "t1", TaskUpdate(status=TaskStatus.IN_PROGRESS))

        assert task.status == TaskStatus.IN_PROGRESS
        assert task.priority == TaskPriority.HIGH
        assert task.estimated_time == 60
        assert task.updated_at > datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert task.created_by.id == "alice"
        assert task.project.id == "p1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"title": ""}, {"title": None}, {"status": None}, {"timeSpent": None}])
    async def test_update_rejects_clearing_required_fields(self, service, store, payload):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice"))

        with pytest.raises(ValidationError):
            await service.update(ALICE, "t1", TaskUpdate.model_validate(payload))

    @pytest.mark.asyncio
    async def test_update_publishes_action(self, service, store, relay):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice"))

        await service.update(ALICE, "t1", TaskUpdate(title="Renamed"))

        payload = relay.publish_nowait.call_args.args[2]
        assert payload["action"] == "updated"
        assert payload["title"] == "Renamed"

    @pytest.mark.asyncio
    async def test_any_member_may_delete(self, service, store, relay):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice"))

        await service.remove(BOB, "t1")

        assert await store.find_by_id("tasks", "t1") is None
        assert relay.publish_nowait.call_args.args[2]["action"] == "deleted"

    @pytest.mark.asyncio
    async def test_delete_denied_for_stranger(self, service, store):
        await self._seed(store)
        await store.insert("tasks", test_data_factory.create_task_document("t1", "p1", "alice"))

        with pytest.raises(AccessDeniedError):
            await service.remove(MALLORY, "t1")

        assert await store.find_by_id("tasks", "t1") is not None

    @pytest.mark.asyncio
    async def test_works_without_relay(self, store):
        await self._seed(store)
        service = TaskService(store)

        task = await service.create(ALICE, TaskCreate(title="Quiet", project="p1"))

        assert task.title == "Quiet"
