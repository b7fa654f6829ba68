"""Poll a committed transaction until the background job finishes."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from ..constants import DEFAULT_POLL_INTERVAL
from ..models.responses import TransactionState, TransactionStatus
from ..observability.logger import log_progress
from ..utils.exceptions import TransactionTimeoutError

if TYPE_CHECKING:
    from ..api.client import DirectoryClient

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[TransactionStatus], Awaitable[None] | None]


class TransactionMonitor:
    """
    Track transaction progress by polling its status endpoint.

    COMPLETED and FAILED are terminal. OPEN and PROCESSING keep polling;
    an unknown status is logged and polling continues.
    """

    def __init__(
        self,
        client: "DirectoryClient",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int | None = None,
    ):
        if poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def wait(
        self, transaction_id: str, on_progress: ProgressCallback | None = None
    ) -> TransactionStatus:
        """
        Poll until the transaction reaches a terminal state.

        Args:
            transaction_id: Transaction to watch
            on_progress: Called with every status response (sync or async)

        Returns:
            The final TransactionStatus (COMPLETED or FAILED)

        Raises:
            TransactionTimeoutError: If max_attempts polls pass without a terminal state
        """
        logger.info("Monitoring transaction", transaction_id=transaction_id)
        attempts = 0

        while True:
            status = await self.client.get_transaction_status(transaction_id)
            attempts += 1

            if on_progress is not None:
                result = on_progress(status)
                if inspect.isawaitable(result):
                    await result

            state = status.state
            if state is TransactionState.COMPLETED:
                logger.info("Transaction completed successfully", transaction_id=transaction_id)
                return status
            if state is TransactionState.FAILED:
                logger.error(
                    "Transaction failed",
                    transaction_id=transaction_id,
                    failed_operations=status.failed_operations,
                )
                return status

            if state is TransactionState.PROCESSING:
                log_progress(
                    transaction_id,
                    status.completed_operations,
                    status.total_operations,
                    "processing",
                )
            elif state is TransactionState.OPEN:
                logger.debug("Transaction still open", transaction_id=transaction_id)
            else:
                logger.warning(
                    "Unknown transaction status",
                    transaction_id=transaction_id,
                    status=status.transaction_status,
                )

            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise TransactionTimeoutError(
                    transaction_id, attempts, last_status=status.transaction_status
                )

            await asyncio.sleep(self.poll_interval)
