"""Unit tests for the DirectoryClient against a mocked Directory API."""

import json
from datetime import UTC, datetime

import httpx
import pytest
import respx
from structlog.testing import capture_logs
from tenacity import wait_none

from src.directory_sync.api.client import DirectoryClient, _retry_after
from src.directory_sync.config import DirectoryConfig
from src.directory_sync.models.directory import Department
from src.directory_sync.models.responses import CommitResult, QueueResult
from src.directory_sync.utils.exceptions import (
    DirectoryAPIError,
    DirectoryAuthenticationError,
    DirectoryNetworkError,
    DirectoryPermissionError,
    DirectoryRateLimitError,
    DirectoryValidationError,
    ResourceNotFoundError,
    ValidationError,
)

BASE_URL = "https://directory.example.com/api"
CHECKPOINT = f"{BASE_URL}/provisioning/directory/checkpoint"
COMMIT = f"{BASE_URL}/provisioning/directory/commit"
DEPARTMENTS = f"{BASE_URL}/provisioning/directory/department"
USERS = f"{BASE_URL}/provisioning/directory/user"
TRANSACTIONS = f"{BASE_URL}/provisioning/directory/transactions"


def tx_users(transaction_id="tx-1"):
    return f"{BASE_URL}/provisioning/directory/{transaction_id}/user"


def body(call):
    return json.loads(call.request.content)


@pytest.fixture
def api():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def transaction_routes(api):
    """Checkpoint, queue and commit endpoints for a successful transaction."""
    return {
        "checkpoint": api.post(CHECKPOINT).mock(
            return_value=httpx.Response(200, json={"transactionId": "tx-1"})
        ),
        "departments": api.post(DEPARTMENTS).mock(
            return_value=httpx.Response(200, json={"operationsQueued": 3})
        ),
        "users": api.post(tx_users()).mock(
            return_value=httpx.Response(200, json={"operationsQueued": 1})
        ),
        "commit": api.post(COMMIT).mock(
            return_value=httpx.Response(
                200,
                json={
                    "transactionId": "tx-1",
                    "jobId": 77,
                    "totalOperations": 6,
                    "successfulOperations": 6,
                    "failedOperations": 0,
                },
            )
        ),
    }


class TestRequest:
    """Test low-level request handling."""

    async def test_auth_headers(self, client, api):
        route = api.get(DEPARTMENTS).mock(return_value=httpx.Response(200, json={"entries": []}))

        await client.get_departments()

        headers = route.calls.last.request.headers
        assert headers["auth-tenant-id"] == "tenant-1"
        assert headers["auth-token"] == "token-abcdefghijkl"
        assert headers["content-type"] == "application/json"

    async def test_base_url_trailing_slash(self, api):
        config = DirectoryConfig(base_url=f"{BASE_URL}/", tenant_id="t", api_token="x")
        route = api.post(CHECKPOINT).mock(
            return_value=httpx.Response(200, json={"transactionId": "tx-1"})
        )

        async with DirectoryClient(config) as client:
            await client.create_checkpoint()

        assert route.called

    async def test_empty_body_returns_none(self, client, api):
        api.post(f"{BASE_URL}/anything").mock(return_value=httpx.Response(204))
        assert await client.post("/anything") is None

    @pytest.mark.parametrize(
        "status,payload,error_class,message",
        [
            (401, {"message": "Invalid token"}, DirectoryAuthenticationError, "Invalid token"),
            (403, {"error": "Missing role"}, DirectoryPermissionError, "Missing role"),
            (400, {"message": "Bad payload"}, DirectoryValidationError, "Bad payload"),
            (409, {"message": "Conflict"}, DirectoryAPIError, "Conflict"),
            (500, {}, DirectoryAPIError, "API Error: 500"),
        ],
    )
    async def test_error_mapping(self, client, api, status, payload, error_class, message):
        api.get(USERS).mock(return_value=httpx.Response(status, json=payload))

        with pytest.raises(error_class) as exc_info:
            await client.get_users()

        assert str(exc_info.value) == message
        assert exc_info.value.status_code == status

    async def test_validation_error_details(self, client, api):
        errors = [{"path": "email", "message": "required"}]
        api.post(DEPARTMENTS).mock(
            return_value=httpx.Response(400, json={"message": "Invalid", "errors": errors})
        )

        with pytest.raises(DirectoryValidationError) as exc_info:
            await client.sync_departments([{"externalId": "a"}])

        assert exc_info.value.details == errors
        assert exc_info.value.code == "VALIDATION_ERROR"

    async def test_not_found(self, client, api):
        api.get(f"{BASE_URL}/provisioning/directory/transaction/tx-9/status").mock(
            return_value=httpx.Response(404, json={"message": "No such transaction"})
        )

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await client.get_transaction_status("tx-9")

        assert "No such transaction" in str(exc_info.value)
        assert exc_info.value.code == "NOT_FOUND"

    async def test_rate_limit(self, client, api):
        api.get(USERS).mock(return_value=httpx.Response(429, headers={"Retry-After": "30"}))

        with pytest.raises(DirectoryRateLimitError) as exc_info:
            await client.get_users()

        assert exc_info.value.retry_after == 30

    async def test_rate_limit_with_http_date(self, client, api):
        api.get(TRANSACTIONS).mock(
            return_value=httpx.Response(
                429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}
            )
        )

        with pytest.raises(DirectoryRateLimitError) as exc_info:
            await client.list_transactions()

        assert exc_info.value.retry_after == 0
        assert exc_info.value.status_code == 429

    @pytest.mark.parametrize(
        "header,expected",
        [
            (None, 5),
            ("", 5),
            ("120", 120),
            ("1.5", 2),
            ("soon", 5),
            ("Wed, 21 Oct 2026 07:28:30 GMT", 30),
            ("Wed, 21 Oct 2026 07:27:00 GMT", 0),
        ],
    )
    def test_retry_after_parsing(self, header, expected):
        now = datetime(2026, 10, 21, 7, 28, tzinfo=UTC)
        assert _retry_after(header, now=now) == expected

    async def test_plain_text_error_body(self, client, api):
        api.get(USERS).mock(return_value=httpx.Response(502, text="Bad gateway"))

        with pytest.raises(DirectoryAPIError) as exc_info:
            await client.get_users()

        assert str(exc_info.value) == "Bad gateway"

    async def test_error_is_logged(self, client, api):
        api.get(USERS).mock(return_value=httpx.Response(403, json={"message": "Nope"}))

        with capture_logs() as logs, pytest.raises(DirectoryPermissionError):
            await client.get_users()

        errors = [log for log in logs if log["event"] == "API error occurred"]
        assert errors[0]["status"] == 403
        assert errors[0]["error_type"] == "PERMISSION_ERROR"

    async def test_network_errors_are_retried(self, client, api):
        route = api.get(USERS).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(DirectoryNetworkError) as exc_info:
            await client.get_users()

        assert route.call_count == 3
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    async def test_timeout_then_success(self, client, api):
        route = api.get(USERS).mock(
            side_effect=[httpx.ReadTimeout("slow"), httpx.Response(200, json={"entries": []})]
        )

        result = await client.get_users()

        assert result.entries == []
        assert route.call_count == 2

    async def test_http_errors_are_not_retried(self, client, api):
        route = api.get(USERS).mock(return_value=httpx.Response(500, json={}))

        with pytest.raises(DirectoryAPIError):
            await client.get_users()

        assert route.call_count == 1

    async def test_unexpected_response_shape(self, client, api):
        api.post(CHECKPOINT).mock(return_value=httpx.Response(200, json={"unexpected": True}))

        with pytest.raises(DirectoryAPIError, match="Unexpected response from create_checkpoint"):
            await client.create_checkpoint()

    async def test_close_resets_client(self, directory_config):
        client = DirectoryClient(directory_config)
        first = client.client

        await client.close()

        assert client._client is None
        assert client.client is not first
        await client.close()


class TestTransactions:
    """Test transaction management."""

    async def test_create_checkpoint(self, client, transaction_routes):
        checkpoint = await client.create_checkpoint()

        assert checkpoint.transaction_id == "tx-1"
        assert transaction_routes["checkpoint"].called

    async def test_commit_transaction(self, client, transaction_routes):
        result = await client.commit_transaction("tx-1")

        request = transaction_routes["commit"].calls.last.request
        assert request.url.params["transactionId"] == "tx-1"
        assert result.job_id == 77
        assert result.success_rate == 100.0

    async def test_commit_with_failures_logs_warning(self, client, api):
        api.post(COMMIT).mock(
            return_value=httpx.Response(
                200,
                json={
                    "transactionId": "tx-1",
                    "totalOperations": 3,
                    "successfulOperations": 2,
                    "failedOperations": 1,
                    "errors": [{"messages": [{"message": "Duplicate email"}]}],
                },
            )
        )

        with capture_logs() as logs:
            result = await client.commit_transaction("tx-1")

        assert result.failed_operations == 1
        warning = next(log for log in logs if log["log_level"] == "warning")
        assert warning["event"] == "Transaction completed with 1 failures"
        assert warning["errors"] == ["Duplicate email"]

    async def test_get_transaction_status(self, client, api):
        api.get(f"{BASE_URL}/provisioning/directory/transaction/tx-1/status").mock(
            return_value=httpx.Response(
                200,
                json={
                    "transactionId": "tx-1",
                    "transactionStatus": "PROCESSING",
                    "totalOperations": 10,
                    "completedOperations": 4,
                },
            )
        )

        status = await client.get_transaction_status("tx-1")

        assert status.progress == "4/10"

    async def test_list_transactions_params(self, client, api):
        route = api.get(TRANSACTIONS).mock(
            return_value=httpx.Response(
                200,
                json={"transactions": [{"transactionId": "tx-1"}], "totalCount": 1},
            )
        )

        history = await client.list_transactions(
            status="COMPLETED", created_by="admin", page=2, page_size=10
        )

        params = route.calls.last.request.url.params
        assert params["page"] == "2"
        assert params["pageSize"] == "10"
        assert params["status"] == "COMPLETED"
        assert params["createdBy"] == "admin"
        assert "createdAfter" not in params
        assert history.total_count == 1

    async def test_list_transactions_invalid_pagination(self, client, api):
        route = api.get(TRANSACTIONS)

        with pytest.raises(ValidationError) as exc_info:
            await client.list_transactions(page=-1, page_size=5000)

        assert len(exc_info.value.errors) == 2
        assert not route.called


class TestDepartmentsAndUsers:
    """Test department and user synchronisation."""

    async def test_sync_departments_transaction_mode(self, client, transaction_routes):
        result = await client.sync_departments(
            [Department(external_id="root", department_name="Root")], "tx-1"
        )

        call = transaction_routes["departments"].calls.last
        assert call.request.url.params["transactionId"] == "tx-1"
        assert body(call) == [
            {
                "externalId": "root",
                "departmentName": "Root",
                "active": True,
                "parentExternalId": None,
            }
        ]
        assert isinstance(result, QueueResult)
        assert result.operations_queued == 3

    async def test_sync_departments_direct_mode(self, client, api):
        route = api.post(DEPARTMENTS).mock(
            return_value=httpx.Response(200, json={"processed": 1, "errors": []})
        )

        result = await client.sync_departments([{"externalId": "a", "departmentName": "A"}])

        assert "transactionId" not in route.calls.last.request.url.params
        assert result.processed == 1

    async def test_get_departments_active_filter(self, client, api):
        route = api.get(DEPARTMENTS).mock(
            return_value=httpx.Response(200, json={"entries": [{"externalId": "a"}]})
        )

        result = await client.get_departments(active=False)

        assert route.calls.last.request.url.params["active"] == "false"
        assert result.entries == [{"externalId": "a"}]

    async def test_get_users_without_filter(self, client, api):
        route = api.get(USERS).mock(return_value=httpx.Response(200, json={"entries": []}))

        await client.get_users()

        assert "active" not in route.calls.last.request.url.params

    async def test_sync_users_transaction_mode(self, client, transaction_routes, users):
        result = await client.sync_users(users, "tx-1")

        assert body(transaction_routes["users"].calls.last)[0]["externalId"] == "emp-1"
        assert isinstance(result, QueueResult)
        assert not transaction_routes["commit"].called

    async def test_sync_users_direct_mode_wraps_transaction(
        self, client, transaction_routes, users
    ):
        result = await client.sync_users(users)

        assert transaction_routes["checkpoint"].call_count == 1
        assert transaction_routes["users"].call_count == 1
        assert transaction_routes["commit"].call_count == 1
        assert isinstance(result, CommitResult)


class TestWorkflows:
    """Test the convenience workflows."""

    async def test_full_sync_orders_departments_and_commits(
        self, client, api, transaction_routes, sync_data
    ):
        result = await client.full_sync(sync_data)

        urls = [str(call.request.url).split("?")[0] for call in api.calls]
        assert urls == [CHECKPOINT, DEPARTMENTS, tx_users(), COMMIT]
        sent = body(transaction_routes["departments"].calls.last)
        assert [d["externalId"] for d in sent] == ["root", "division", "team"]
        assert result.total_operations == 6

    async def test_full_sync_with_cycle_still_sends_everything(
        self, client, transaction_routes
    ):
        departments = [
            {"externalId": "a", "departmentName": "A", "parentExternalId": "b"},
            {"externalId": "b", "departmentName": "B", "parentExternalId": "a"},
            {"externalId": "root", "departmentName": "Root"},
        ]

        with capture_logs() as logs:
            await client.full_sync({"departments": departments})

        sent = body(transaction_routes["departments"].calls.last)
        assert [d["externalId"] for d in sent] == ["root", "a", "b"]
        assert not transaction_routes["users"].called
        assert any(log["event"].startswith("Circular or missing parent") for log in logs)

    async def test_full_sync_failure_does_not_commit(self, client, transaction_routes, sync_data):
        transaction_routes["users"].mock(
            return_value=httpx.Response(400, json={"message": "Bad user"})
        )

        with capture_logs() as logs, pytest.raises(DirectoryValidationError):
            await client.full_sync(sync_data)

        assert not transaction_routes["commit"].called
        assert any(log["event"] == "Full synchronization failed" for log in logs)

    async def test_bulk_user_import_batches(self, client, transaction_routes, users):
        await client.bulk_user_import(users)

        calls = transaction_routes["users"].calls
        assert [len(body(call)) for call in calls] == [2, 1]
        assert transaction_routes["checkpoint"].call_count == 1
        assert transaction_routes["commit"].call_count == 1

    async def test_bulk_user_import_explicit_batch_size(self, client, transaction_routes, users):
        await client.bulk_user_import(users, batch_size=1)
        assert transaction_routes["users"].call_count == 3

    async def test_bulk_user_import_rejects_negative_batch(self, client, transaction_routes, users):
        with pytest.raises(ValueError):
            await client.bulk_user_import(users, batch_size=-1)
        assert not transaction_routes["checkpoint"].called

    async def test_organization_setup_is_direct_and_ordered(
        self, client, transaction_routes, departments
    ):
        await client.organization_setup(departments)

        call = transaction_routes["departments"].calls.last
        assert "transactionId" not in call.request.url.params
        assert [d["externalId"] for d in body(call)] == ["root", "division", "team"]
        assert not transaction_routes["checkpoint"].called


class TestUtilities:
    """Test job lookup and credential validation."""

    async def test_get_job(self, client, api):
        api.get(f"{BASE_URL}/job/77").mock(
            return_value=httpx.Response(
                200, json={"value": {"id": 77, "status": "COMPLETED", "donePercentage": 100}}
            )
        )

        job = await client.get_job(77)

        assert job.status == "COMPLETED"
        assert job.done_percentage == 100

    async def test_validate_auth_success(self, client, api):
        route = api.get(TRANSACTIONS).mock(
            return_value=httpx.Response(200, json={"transactions": [], "totalCount": 0})
        )

        assert await client.validate_auth() is True
        assert route.calls.last.request.url.params["pageSize"] == "1"

    async def test_validate_auth_rejected(self, client, api):
        api.get(TRANSACTIONS).mock(return_value=httpx.Response(401, json={}))
        assert await client.validate_auth() is False

    async def test_validate_auth_rate_limited(self, client, api):
        api.get(TRANSACTIONS).mock(
            return_value=httpx.Response(
                429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}
            )
        )
        assert await client.validate_auth() is False

    async def test_validate_auth_network_failure(self, directory_config, api):
        directory_config.retry_attempts = 1
        client = DirectoryClient(directory_config)
        client._retry_wait = wait_none()
        api.get(TRANSACTIONS).mock(side_effect=httpx.ConnectError("down"))

        try:
            assert await client.validate_auth() is False
        finally:
            await client.close()
