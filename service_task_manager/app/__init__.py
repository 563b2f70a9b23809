"""
Task Manager service package for the Taskboard backend.

Users own or join projects; projects contain tasks. This package provides:

- app.main: FastAPI app, routes, websocket relay and lifecycle wiring.
- app.authorization: Ownership/membership predicates shared by every route.
- app.services: Project, task, user and analytics operations.
- app.persistence: Document store adapters (in-memory, PostgreSQL).
- app.notifications: Project-scoped websocket rooms.
- app.auth: Bearer token verification into a requester identity.

Design notes:
- Services receive the document store by injection; no module-level state.
- Services raise typed errors from shared.errors; status codes are mapped
  once in shared.base_service.
"""
