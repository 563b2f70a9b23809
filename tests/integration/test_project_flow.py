"""
Integration tests for the project/task/analytics flow through the HTTP surface.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from service_task_manager.app.main import TaskManagerService
from service_task_manager.app.persistence import InMemoryDocumentStore
from shared.config import get_config
from shared.test_helpers import mock_token_generator, seed_users, test_environment


class TestProjectFlow:
    """End-to-end flows against an in-process Task Manager."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.fixture
    def app(self, store):
        config = get_config("task-manager", **test_environment.get_mock_config())
        return TaskManagerService(config=config, store=store).app

    @pytest.fixture
    def alice(self):
        return mock_token_generator.auth_headers("alice")

    @pytest.fixture
    def bob(self):
        return mock_token_generator.auth_headers("bob")

    @pytest.fixture
    def carol(self):
        return mock_token_generator.auth_headers("carol", "Manager")

    def _client(self, app) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

    @pytest.mark.asyncio
    async def test_membership_grants_access(self, app, store, alice, bob):
        """A creates Sprint1, B is refused, A adds B, B can read it."""
        await seed_users(store)

        async with self._client(app) as client:
            created = await client.post("/api/projects", json={"name": "Sprint1"}, headers=alice)
            assert created.status_code == 200
            project_id = created.json()["id"]

            refused = await client.get(f"/api/projects/{project_id}", headers=bob)
            assert refused.status_code == 403

            updated = await client.put(f"/api/projects/{project_id}", json={"members": ["bob"]}, headers=alice)
            assert updated.status_code == 200
            assert [member["id"] for member in updated.json()["members"]] == ["bob"]

            allowed = await client.get(f"/api/projects/{project_id}", headers=bob)
            assert allowed.status_code == 200
            assert allowed.json()["name"] == "Sprint1"

    @pytest.mark.asyncio
    async def test_empty_project_analytics(self, app, store, alice):
        await seed_users(store)

        async with self._client(app) as client:
            project_id = (await client.post("/api/projects", json={"name": "Empty"}, headers=alice)).json()["id"]

            response = await client.get(f"/api/analytics/project/{project_id}", headers=alice)

        assert response.status_code == 200
        assert response.json() == {
            "totalTasks": 0,
            "completedTasks": 0,
            "inProgressTasks": 0,
            "todoTasks": 0,
            "completionRate": 0,
            "totalTimeSpent": 0,
            "totalEstimatedTime": 0,
            "tasksByPriority": {"High": 0, "Medium": 0, "Low": 0},
            "overdueTasks": 0
        }

    @pytest.mark.asyncio
    async def test_overdue_task_clears_when_done(self, app, store, alice):
        await seed_users(store)
        yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()

        async with self._client(app) as client:
            project_id = (await client.post("/api/projects", json={"name": "Late"}, headers=alice)).json()["id"]
            task = (await client.post("/api/tasks", json={
                "title": "Ship it",
                "project": project_id,
                "status": "In Progress",
                "dueDate": yesterday
            }, headers=alice)).json()

            before = (await client.get(f"/api/analytics/project/{project_id}", headers=alice)).json()
            assert before["overdueTasks"] == 1

            done = await client.put(f"/api/tasks/{task['id']}", json={"status": "Done"}, headers=alice)
            assert done.status_code == 200

            after = (await client.get(f"/api/analytics/project/{project_id}", headers=alice)).json()
            assert after["overdueTasks"] == 0
            assert after["completionRate"] == 100

    @pytest.mark.asyncio
    async def test_time_spent_can_be_reset_to_zero(self, app, store, alice):
        await seed_users(store)

        async with self._client(app) as client:
            project_id = (await client.post("/api/projects", json={"name": "Hours"}, headers=alice)).json()["id"]
            task = (await client.post("/api/tasks", json={
                "title": "Log time", "project": project_id, "timeSpent": 120
            }, headers=alice)).json()
            assert task["timeSpent"] == 120

            reset = await client.put(f"/api/tasks/{task['id']}", json={"timeSpent": 0}, headers=alice)
            assert reset.json()["timeSpent"] == 0

            fetched = await client.get(f"/api/tasks/{task['id']}", headers=alice)
            assert fetched.json()["timeSpent"] == 0

    @pytest.mark.asyncio
    async def test_non_owner_delete_leaves_project(self, app, store, alice, bob, carol):
        await seed_users(store)

        async with self._client(app) as client:
            created = await client.post(
                "/api/projects", json={"name": "Keep", "members": ["bob", "carol"]}, headers=alice
            )
            project_id = created.json()["id"]

            for headers in (bob, carol):
                response = await client.delete(f"/api/projects/{project_id}", headers=headers)
                assert response.status_code == 403

            still_there = await client.get(f"/api/projects/{project_id}", headers=alice)
            assert still_there.status_code == 200
            assert still_there.json() == created.json()

    @pytest.mark.asyncio
    async def test_user_analytics_over_assigned_tasks(self, app, store, alice, bob):
        await seed_users(store)

        async with self._client(app) as client:
            project_id = (await client.post(
                "/api/projects", json={"name": "Team", "members": ["bob"]}, headers=alice
            )).json()["id"]
            for status, minutes in (("Done", 40), ("Done", 20), ("To Do", 0)):
                await client.post("/api/tasks", json={
                    "title": f"{status} work",
                    "project": project_id,
                    "assignedTo": "bob",
                    "status": status,
                    "timeSpent": minutes
                }, headers=alice)

            stats = (await client.get("/api/analytics/user/bob", headers=bob)).json()

        assert stats["totalTasks"] == 3
        assert stats["completedTasks"] == 2
        assert stats["totalTimeSpent"] == 60
        assert stats["averageCompletionTime"] == 30
