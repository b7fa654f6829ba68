"""Directory Integration API Client.

Synchronises departments and users with the Directory API.

Architecture Overview:
---------------------
- Async HTTP communication via httpx
- Automatic retry with exponential backoff for network errors and timeouts
- Error responses mapped to typed exceptions carrying an error code
- Typed response models (pydantic) for every documented endpoint

Authentication:
--------------
Every request carries two headers: ``auth-tenant-id`` and ``auth-token``.
There is no session; a rejected pair surfaces as a 401 on any call.

Transactions:
------------
Writes are normally grouped in a transaction:
1. POST /provisioning/directory/checkpoint -> transactionId
2. Queue departments and users against the transaction
3. POST /provisioning/directory/commit?transactionId=... -> background job
4. Poll /provisioning/directory/transaction/{id}/status until terminal

Departments may also be sent in "direct mode" (no transactionId), which the
server executes immediately.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import DirectoryConfig
from ..constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRY_AFTER_SECONDS,
    TENANT_HEADER,
    TOKEN_HEADER,
)
from ..dependency.orderer import DependencyOrderer
from ..models.directory import DirectoryModel, SyncData
from ..models.responses import (
    Checkpoint,
    CommitResult,
    EntryList,
    Job,
    JobResponse,
    QueueResult,
    TransactionList,
    TransactionStatus,
)
from ..observability.logger import log_sync_result, log_transaction
from ..utils.exceptions import (
    DirectoryAPIError,
    DirectoryAuthenticationError,
    DirectoryNetworkError,
    DirectoryPermissionError,
    DirectoryRateLimitError,
    DirectoryValidationError,
    ResourceNotFoundError,
    ValidationError,
)
from ..validation.validator import validate_pagination
from .endpoints import DirectoryEndpoints

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

RETRIABLE_ERRORS = (httpx.NetworkError, httpx.TimeoutException)


def _serialize(records: Iterable[Any]) -> list[Any]:
    """Convert models to wire payloads; mappings pass through unchanged."""
    return [
        record.to_payload() if isinstance(record, DirectoryModel) else dict(record)
        for record in records
    ]


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    """Extract (message, details) from an error response."""
    fallback = f"API Error: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return (text or fallback), text or None

    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or fallback
        return str(message), data.get("errors") or data
    return fallback, data


def _retry_after(value: str | None, now: datetime | None = None) -> int:
    """
    Parse a Retry-After header into whole seconds.

    Accepts delta-seconds (fractions round up) or an HTTP-date; anything else
    falls back to the default wait.
    """
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    value = value.strip()
    try:
        return max(math.ceil(float(value)), 0)
    except (ValueError, OverflowError):
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    delta = (retry_at - (now or datetime.now(UTC))).total_seconds()
    return max(math.ceil(delta), 0)


class DirectoryClient:
    """
    Directory Integration API Client.

    Features:
    - Transaction management (checkpoint, commit, status, history)
    - Department and user synchronisation (transaction or direct mode)
    - Convenience workflows: full sync, bulk import, organisation setup
    - Connection pooling via httpx.AsyncClient

    Usage:
        async with DirectoryClient(config) as client:
            result = await client.full_sync(data)
    """

    def __init__(self, config: DirectoryConfig):
        """
        Initialize the client.

        Args:
            config: Directory connection configuration
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.headers = {
            TENANT_HEADER: config.tenant_id,
            TOKEN_HEADER: config.api_token,
            "Content-Type": "application/json",
        }
        self.orderer = DependencyOrderer()

        # HTTP client management
        self._client: httpx.AsyncClient | None = None  # Lazy-loaded

        # Backoff between network retries
        self._retry_wait = wait_exponential(multiplier=1, min=2, max=10)

    async def __aenter__(self):
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client with lazy initialization."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                headers=self.headers,
            )
        return self._client

    # -------------------------------------------------------------------------
    # Low-level request handling
    # -------------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None,
        json: Any,
    ) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RETRIABLE_ERRORS),
            stop=stop_after_attempt(max(self.config.retry_attempts, 1)),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying request after network error",
                        method=method,
                        url=url,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self.client.request(method, url, params=params, json=json)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Make an authenticated request to the Directory API.

        Args:
            method: HTTP method
            endpoint: Endpoint path (relative to base URL)
            params: Query parameters (sequence values repeat the key)
            json: JSON body

        Returns:
            Parsed JSON response (None for empty bodies)

        Raises:
            DirectoryAuthenticationError: 401
            DirectoryPermissionError: 403
            DirectoryValidationError: 400
            ResourceNotFoundError: 404
            DirectoryRateLimitError: 429
            DirectoryAPIError: Any other error status
            DirectoryNetworkError: No response after all retries
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug("API request", method=method, endpoint=endpoint)

        try:
            response = await self._send(method, url, params, json)
        except httpx.TransportError as e:
            logger.error("Network error occurred", url=url, error=str(e))
            raise DirectoryNetworkError(original_error=e) from e

        if response.is_error:
            self._raise_for_status(response, endpoint)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        status = response.status_code
        message, details = _error_message(response)

        if status == 401:
            error: DirectoryAPIError = DirectoryAuthenticationError(message, details=details)
        elif status == 403:
            error = DirectoryPermissionError(message, status_code=status, details=details)
        elif status == 400:
            error = DirectoryValidationError(message, status_code=status, details=details)
        elif status == 404:
            error = ResourceNotFoundError(f"Resource ({endpoint})", message, details=details)
        elif status == 429:
            error = DirectoryRateLimitError(_retry_after(response.headers.get("Retry-After")))
        else:
            error = DirectoryAPIError(message, status_code=status, details=details)

        logger.error(
            "API error occurred",
            status=status,
            error_type=error.code,
            message=str(error),
            details=details,
        )
        raise error

    async def get(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        """Helper for GET requests."""
        return await self.request("GET", endpoint, params=params)

    async def post(
        self, endpoint: str, json: Any = None, params: Mapping[str, Any] | None = None
    ) -> Any:
        """Helper for POST requests."""
        return await self.request("POST", endpoint, params=params, json=json)

    def _parse(self, model: type[M], data: Any, operation: str) -> M:
        try:
            return model.model_validate(data if data is not None else {})
        except PydanticValidationError as e:
            logger.error(
                "Unexpected response structure",
                operation=operation,
                validation_errors=e.errors(),
            )
            raise DirectoryAPIError(
                f"Unexpected response from {operation}", details=data
            ) from e

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    async def create_checkpoint(self) -> Checkpoint:
        """Create a new transaction for queueing operations."""
        logger.info("Creating new checkpoint")
        data = await self.post(DirectoryEndpoints.CHECKPOINT)
        checkpoint = self._parse(Checkpoint, data, "create_checkpoint")
        log_transaction("created", checkpoint.transaction_id)
        return checkpoint

    async def commit_transaction(self, transaction_id: str) -> CommitResult:
        """
        Commit a transaction, executing all queued operations.

        The server starts a background job; the result carries its job id
        and the operation counts known at commit time.
        """
        logger.info("Committing transaction", transaction_id=transaction_id)
        data = await self.post(DirectoryEndpoints.COMMIT, params={"transactionId": transaction_id})
        result = self._parse(CommitResult, data, "commit_transaction")

        if result.failed_operations > 0:
            logger.warning(
                f"Transaction completed with {result.failed_operations} failures",
                transaction_id=transaction_id,
                successful=result.successful_operations,
                failed=result.failed_operations,
                errors=[error.first_message for error in result.errors],
            )
        else:
            log_transaction(
                "committed",
                transaction_id,
                job_id=result.job_id,
                successful=result.successful_operations,
            )
        return result

    async def get_transaction_status(self, transaction_id: str) -> TransactionStatus:
        """Get progress and failure details for a transaction."""
        data = await self.get(DirectoryEndpoints.transaction_status(transaction_id))
        return self._parse(TransactionStatus, data, "get_transaction_status")

    async def list_transactions(
        self,
        status: str | None = None,
        created_by: str | None = None,
        created_after: str | None = None,
        created_before: str | None = None,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> TransactionList:
        """
        List transactions with optional filtering.

        Raises:
            ValidationError: If page or page_size is out of range
        """
        errors = validate_pagination(page, page_size)
        if errors:
            raise ValidationError("Invalid pagination parameters", errors=errors)

        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        if status:
            params["status"] = status
        if created_by:
            params["createdBy"] = created_by
        if created_after:
            params["createdAfter"] = created_after
        if created_before:
            params["createdBefore"] = created_before

        data = await self.get(DirectoryEndpoints.TRANSACTIONS, params=params)
        return self._parse(TransactionList, data, "list_transactions")

    # -------------------------------------------------------------------------
    # Department Management
    # -------------------------------------------------------------------------

    async def sync_departments(
        self, departments: Iterable[Any], transaction_id: str | None = None
    ) -> QueueResult:
        """
        Synchronise departments.

        With a transaction_id the operations are queued; without one the
        server processes them immediately (direct mode).
        """
        payload = _serialize(departments)
        logger.info(
            f"Syncing {len(payload)} departments",
            transaction_mode=transaction_id is not None,
            transaction_id=transaction_id,
        )

        if transaction_id:
            data = await self.post(
                DirectoryEndpoints.DEPARTMENTS,
                json=payload,
                params={"transactionId": transaction_id},
            )
            result = self._parse(QueueResult, data, "sync_departments")
            logger.info(
                f"Queued {len(payload)} department operations",
                transaction_id=transaction_id,
                operations_queued=result.operations_queued,
            )
            return result

        data = await self.post(DirectoryEndpoints.DEPARTMENTS, json=payload)
        result = self._parse(QueueResult, data, "sync_departments")
        logger.info(
            f"Processed {result.processed} departments directly",
            processed=result.processed,
            errors=len(result.errors),
        )
        return result

    async def get_departments(self, active: bool | None = None) -> EntryList:
        """List departments, optionally filtered by active status."""
        params = {"active": str(active).lower()} if active is not None else None
        data = await self.get(DirectoryEndpoints.DEPARTMENTS, params=params)
        return self._parse(EntryList, data, "get_departments")

    # -------------------------------------------------------------------------
    # User Management
    # -------------------------------------------------------------------------

    async def sync_users(
        self, users: Iterable[Any], transaction_id: str | None = None
    ) -> QueueResult | CommitResult:
        """
        Synchronise users.

        With a transaction_id the operations are queued and a QueueResult is
        returned. Without one a transaction is created, the users queued and
        the transaction committed; the CommitResult is returned.
        """
        payload = _serialize(users)
        logger.info(
            f"Syncing {len(payload)} users",
            transaction_mode=transaction_id is not None,
            transaction_id=transaction_id,
        )

        if transaction_id:
            endpoint = DirectoryEndpoints.transaction_users(transaction_id)
            data = await self.post(endpoint, json=payload)
            result = self._parse(QueueResult, data, "sync_users")
            logger.info(
                f"Queued {len(payload)} user operations",
                transaction_id=transaction_id,
                operations_queued=result.operations_queued,
            )
            return result

        checkpoint = await self.create_checkpoint()
        endpoint = DirectoryEndpoints.transaction_users(checkpoint.transaction_id)
        await self.post(endpoint, json=payload)
        commit = await self.commit_transaction(checkpoint.transaction_id)
        logger.info(
            f"Processed {len(payload)} users with auto-transaction",
            transaction_id=checkpoint.transaction_id,
            successful=commit.successful_operations,
            failed=commit.failed_operations,
        )
        return commit

    async def get_users(self, active: bool | None = None) -> EntryList:
        """List users, optionally filtered by active status."""
        params = {"active": str(active).lower()} if active is not None else None
        data = await self.get(DirectoryEndpoints.USERS, params=params)
        return self._parse(EntryList, data, "get_users")

    # -------------------------------------------------------------------------
    # Convenience Workflows
    # -------------------------------------------------------------------------

    def order_departments(self, departments: Iterable[Any]) -> list[Any]:
        """Order departments parents-first, logging any that cannot be resolved."""
        report = self.orderer.order_with_report(departments)
        if report.has_unresolved:
            logger.warning(
                "Circular or missing parent dependencies in departments, adding remaining",
                unresolved=len(report.unresolved),
            )
        return report.ordered

    async def full_sync(self, data: SyncData | Mapping[str, Any]) -> CommitResult:
        """
        Synchronise departments and users in a single transaction.

        Departments are queued parents-first, then users, then the
        transaction is committed.
        """
        if isinstance(data, SyncData):
            departments: list[Any] = list(data.departments)
            users: list[Any] = list(data.users)
        else:
            departments = list(data.get("departments") or [])
            users = list(data.get("users") or [])

        logger.info("Starting full synchronization", departments=len(departments), users=len(users))

        checkpoint = await self.create_checkpoint()
        transaction_id = checkpoint.transaction_id

        try:
            if departments:
                await self.sync_departments(self.order_departments(departments), transaction_id)
            if users:
                await self.sync_users(users, transaction_id)
            result = await self.commit_transaction(transaction_id)
        except Exception as e:
            logger.error("Full synchronization failed", transaction_id=transaction_id, error=str(e))
            raise

        log_sync_result(
            "Full synchronization",
            result.total_operations,
            result.successful_operations,
            result.failed_operations,
        )
        return result

    async def bulk_user_import(
        self, users: Iterable[Any], batch_size: int | None = None
    ) -> CommitResult:
        """Queue users in batches within one transaction, then commit."""
        all_users = list(users)
        effective_batch_size = batch_size or self.config.batch_size
        if effective_batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        total_batches = -(-len(all_users) // effective_batch_size)

        logger.info(
            "Starting bulk user import",
            total_users=len(all_users),
            batch_size=effective_batch_size,
            total_batches=total_batches,
        )

        checkpoint = await self.create_checkpoint()
        transaction_id = checkpoint.transaction_id

        try:
            for start in range(0, len(all_users), effective_batch_size):
                batch = all_users[start : start + effective_batch_size]
                batch_number = start // effective_batch_size + 1
                logger.info(
                    f"Processing batch {batch_number}/{total_batches}",
                    batch_size=len(batch),
                    transaction_id=transaction_id,
                )
                await self.sync_users(batch, transaction_id)
            result = await self.commit_transaction(transaction_id)
        except Exception as e:
            logger.error("Bulk user import failed", transaction_id=transaction_id, error=str(e))
            raise

        log_sync_result(
            "Bulk user import",
            len(all_users),
            result.successful_operations,
            result.failed_operations,
        )
        return result

    async def organization_setup(self, departments: Iterable[Any]) -> QueueResult:
        """Create a department hierarchy in direct mode, parents first."""
        all_departments = list(departments)
        logger.info("Setting up organizational hierarchy", departments=len(all_departments))
        return await self.sync_departments(self.order_departments(all_departments))

    # -------------------------------------------------------------------------
    # Monitoring & Utilities
    # -------------------------------------------------------------------------

    async def get_job(self, job_id: str | int) -> Job:
        """Get the background job created by a commit."""
        data = await self.get(DirectoryEndpoints.job(job_id))
        return self._parse(JobResponse, data, "get_job").value

    async def validate_auth(self) -> bool:
        """
        Check that the credentials are accepted.

        Returns:
            True if a transaction listing succeeds, False on any API error
        """
        try:
            await self.list_transactions(page_size=1)
        except DirectoryAPIError as e:
            logger.error("Authentication validation failed", error=str(e), code=e.code)
            return False
        logger.info("Authentication validation successful")
        return True
