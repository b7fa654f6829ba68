"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Path fixtures: Sample data file paths
- Config fixtures: Directory connection settings
- Mock fixtures: Pre-configured mocks for the Directory client
- Data fixtures: Department and user records
"""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from tenacity import wait_none

from src.directory_sync.api.client import DirectoryClient
from src.directory_sync.config import DirectoryConfig
from src.directory_sync.models.responses import (
    Checkpoint,
    CommitResult,
    QueueResult,
    TransactionStatus,
)

BASE_URL = "https://directory.example.com/api"

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def samples_dir() -> Path:
    """Get path to sample data directory."""
    return Path(__file__).parent.parent / "samples"


@pytest.fixture
def sample_sync_file(samples_dir: Path) -> Path:
    """Get path to the sample full sync file."""
    return samples_dir / "sample_sync.json"


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def directory_config() -> DirectoryConfig:
    return DirectoryConfig(
        base_url=BASE_URL,
        tenant_id="tenant-1",
        api_token="token-abcdefghijkl",
        retry_attempts=3,
        batch_size=2,
    )


@pytest.fixture
async def client(directory_config: DirectoryConfig):
    """Real client with retry backoff disabled."""
    client = DirectoryClient(directory_config)
    client._retry_wait = wait_none()
    yield client
    await client.close()


@pytest.fixture
def directory_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables for a configured Directory connection."""
    monkeypatch.setenv("QMPLUS_BASE_URL", BASE_URL)
    monkeypatch.setenv("QMPLUS_TENANT_ID", "tenant-1")
    monkeypatch.setenv("QMPLUS_API_TOKEN", "token-abcdefghijkl")
    monkeypatch.setenv("API_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("POLL_INTERVAL", "0")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's .env and shell settings out of the tests."""
    for name in (
        "QMPLUS_BASE_URL",
        "QMPLUS_TENANT_ID",
        "QMPLUS_API_TOKEN",
        "API_TIMEOUT",
        "API_RETRY_ATTEMPTS",
        "API_BATCH_SIZE",
        "API_VERIFY_SSL",
        "POLL_INTERVAL",
        "POLL_MAX_ATTEMPTS",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "LOG_FILE",
        "LOG_ERROR_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


# =============================================================================
# Mock Client Fixtures
# =============================================================================


@pytest.fixture
def mock_client() -> AsyncMock:
    """Create a pre-configured mock Directory client.

    Returns an AsyncMock with spec=DirectoryClient and the transaction
    methods pre-configured. Individual tests can override specific methods.
    """
    client = AsyncMock(spec=DirectoryClient)
    client.create_checkpoint.return_value = Checkpoint(transaction_id="tx-1")
    client.sync_departments.return_value = QueueResult(operations_queued=1)
    client.sync_users.return_value = QueueResult(operations_queued=1)
    client.commit_transaction.return_value = CommitResult(
        transaction_id="tx-1", job_id="job-1", total_operations=2, successful_operations=2
    )
    client.get_transaction_status.return_value = TransactionStatus(
        transaction_id="tx-1",
        transaction_status="COMPLETED",
        total_operations=2,
        completed_operations=2,
    )
    return client


# =============================================================================
# Data Fixtures
# =============================================================================


def department(external_id: str, parent: str | None = None, name: str | None = None) -> dict:
    return {
        "externalId": external_id,
        "departmentName": name or external_id.title(),
        "active": True,
        "parentExternalId": parent,
    }


def user(external_id: str, email: str, *departments: str) -> dict[str, Any]:
    return {
        "externalId": external_id,
        "firstName": "Test",
        "lastName": external_id.title(),
        "email": email,
        "active": True,
        "userTypes": [
            {"departmentExternalId": dept, "userTypeId": "1"} for dept in departments
        ],
    }


@pytest.fixture
def departments() -> list[dict]:
    """Child-first department chain: team -> division -> root."""
    return [
        department("team", "division"),
        department("division", "root"),
        department("root"),
    ]


@pytest.fixture
def users() -> list[dict[str, Any]]:
    return [
        user("emp-1", "one@example.com", "team"),
        user("emp-2", "two@example.com", "division", "root"),
        user("emp-3", "three@example.com", "root"),
    ]


@pytest.fixture
def sync_data(departments: list[dict], users: list[dict[str, Any]]) -> dict[str, Any]:
    return {"departments": departments, "users": users}
