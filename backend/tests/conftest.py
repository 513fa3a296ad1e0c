import asyncio
import os

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv

# Load the test environment FIRST, before any taskflow imports, so the
# module-level settings and services are built from it.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))

from taskflow.main import app  # noqa: E402
from taskflow.services.context_store import SessionContextStore, context_store  # noqa: E402
from taskflow.services.tool_service import ToolRegistry, tool_registry  # noqa: E402
from taskflow.workflows.engine import ProcessExecutor  # noqa: E402
from taskflow.workflows.registry import ProcessRegistry  # noqa: E402


@pytest.fixture
def registry():
    return ProcessRegistry()


@pytest.fixture
def store():
    return SessionContextStore()


@pytest.fixture
def tools():
    """An empty in-process tool registry; tests register the handlers they need."""
    return ToolRegistry()


@pytest.fixture
def executor(registry, store, tools):
    return ProcessExecutor(registry=registry, store=store, tool_invoker=tools, max_iterations=10)


@pytest.fixture
def task_backend(tools):
    """
    Registers fake task-management tools and records every call made to them.
    Clients and tasks can be pre-seeded through the returned dict.
    """
    state = {"clients": [], "tasks": [], "users": [], "calls": []}

    def record(name):
        def decorator(func):
            def handler(args, call):
                state["calls"].append((name, dict(args)))
                return func(args, call)
            tools.register(name, handler)
            return handler
        return decorator

    @record("search_clients")
    def search_clients(args, call):
        query = (args.get("query") or "").lower()
        return {"clients": [c for c in state["clients"] if query in c["name"].lower()]}

    @record("create_client")
    def create_client(args, call):
        client = {"id": f"client-{len(state['clients']) + 1}", "name": args["name"]}
        state["clients"].append(client)
        return client

    @record("create_task")
    def create_task(args, call):
        task = {"id": f"task-{len(state['tasks']) + 1}", **args}
        state["tasks"].append(task)
        return task

    @record("search_tasks")
    def search_tasks(args, call):
        return {"tasks": list(state["tasks"])[: args.get("limit", 20)]}

    @record("update_task")
    def update_task(args, call):
        return {"success": True, "taskId": args["taskId"]}

    @record("archive_task")
    def archive_task(args, call):
        return {"success": True, "taskId": args["taskId"]}

    @record("get_team_workload")
    def get_team_workload(args, call):
        return {"data": list(state["users"])}

    return state


@pytest.fixture(scope="function")
def test_client():
    """
    Provides a TestClient for API integration tests. The lifespan loads the
    built-in processes; session contexts and tools are reset after each test.
    """
    with TestClient(app) as client:
        yield client
    asyncio.run(context_store.clear())
    tool_registry.clear()
