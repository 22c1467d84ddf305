"""Tests for the HTTP control surface."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator

import httpx
import pytest

from agentrunner.main import app
from agentrunner.orchestration.manager import AgentManager
from agentrunner.runtime import build_registry, get_manager
from agentrunner.store.memory import InMemoryStateStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def manager() -> AsyncIterator[AgentManager]:
    manager = AgentManager(registry=build_registry(), store=InMemoryStateStore())
    app.dependency_overrides[get_manager] = lambda: manager
    yield manager
    app.dependency_overrides.clear()
    await manager.terminate_all()


@pytest.fixture
async def client(manager: AgentManager) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.anyio
async def test_create_agent_and_run_task(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/agents", json={"name": "growth", "max_concurrent_tasks": 2, "timeout_ms": 5000}
    )
    assert response.status_code == 201
    agent = response.json()
    assert agent["status"] == "RUNNING"
    assert agent["max_concurrent_tasks"] == 2

    response = await client.post(
        f"/agents/{agent['agent_id']}/tasks", json={"type": "echo", "payload": {"x": 1}}
    )
    assert response.status_code == 202
    task_id = response.json()["task_id"]

    for _ in range(100):
        metrics = (await client.get(f"/agents/{agent['agent_id']}/metrics")).json()
        if metrics["completed_tasks"] == 1:
            break
        await asyncio.sleep(0.01)
    assert metrics["success_rate"] == 1.0

    tasks = (await client.get(f"/agents/{agent['agent_id']}/tasks")).json()
    assert tasks["completed"][0]["id"] == task_id
    assert tasks["completed"][0]["result"] == {"x": 1}


@pytest.mark.anyio
async def test_lifecycle_conflicts_map_to_409(client: httpx.AsyncClient) -> None:
    agent = (await client.post("/agents", json={"name": "idle", "autostart": False})).json()
    agent_id = agent["agent_id"]
    assert agent["status"] == "STOPPED"

    assert (await client.post(f"/agents/{agent_id}/pause")).status_code == 409
    assert (await client.post(f"/agents/{agent_id}/start")).status_code == 200
    assert (await client.post(f"/agents/{agent_id}/start")).status_code == 409
    assert (await client.post(f"/agents/{agent_id}/pause")).json()["status"] == "PAUSED"
    assert (await client.post(f"/agents/{agent_id}/resume")).json()["status"] == "RUNNING"
    assert (await client.post(f"/agents/{agent_id}/stop")).json()["status"] == "STOPPED"


@pytest.mark.anyio
async def test_unknown_agent_and_skill_are_rejected(client: httpx.AsyncClient) -> None:
    assert (await client.get("/agents/missing")).status_code == 404

    agent = (await client.post("/agents", json={"name": "strict"})).json()
    response = await client.post(f"/agents/{agent['agent_id']}/tasks", json={"type": "nope"})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_invalid_agent_limits_fail_validation(client: httpx.AsyncClient) -> None:
    response = await client.post("/agents", json={"name": "bad", "max_concurrent_tasks": 0})
    assert response.status_code == 422


@pytest.mark.anyio
async def test_skills_are_listed(client: httpx.AsyncClient) -> None:
    skills = (await client.get("/skills")).json()
    assert [skill["type"] for skill in skills] == ["echo"]
