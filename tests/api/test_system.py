"""
Application shell tests
"""
import os
import subprocess
import sys

import pytest
from httpx import AsyncClient

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "healthy"
    assert data["sockets"] == 0


@pytest.mark.parametrize("first", [
    "mockmate.services.alert_service",
    "mockmate.realtime",
    "mockmate.realtime.gateway",
    "mockmate.main",
])
def test_modules_import_in_any_order(first):
    """A fresh interpreter can import the app starting from any layer"""
    env = {**os.environ, "REDIS_URL": "", "LOG_TO_FILE": "false"}
    result = subprocess.run(
        [sys.executable, "-c", f"import {first}; import mockmate.main"],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, result.stderr
