"""
Operation Base Classes

An operation is a single-shot, cancellable unit of asynchronous work that
issues exactly one web service call.

Lifecycle:
    READY -> EXECUTING -> FINISHED (success, cancelled or error)

Contract:
- start() schedules perform_request() on the running event loop, which is
  also the callback context: every callback of the operation runs there,
  serialized, in order
- cancel() is cooperative: it sets a flag that is checked before each
  callback; an in-flight HTTP call is never interrupted
- finish() runs exactly once and dispatches the batch completion callback,
  always after all per-item callbacks
- OperationQueue keeps a strong reference to each operation until it finishes
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from opencloudkit.core.errors import (
    CloudKitError,
    OperationCancelledError,
    OperationStateError,
)
from opencloudkit.core.models import JSONDocument

if TYPE_CHECKING:
    from opencloudkit.core.database import Database

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    READY = "ready"
    EXECUTING = "executing"
    FINISHED = "finished"


class Operation(ABC):
    """
    Base class for all operations.

    Subclasses implement ``perform_request`` (build the request, send it,
    map the response, call ``finish``) and usually override
    ``finish_on_callback_context`` to deliver their completion callback.
    """

    def __init__(self):
        self.operation_id = uuid.uuid4().hex[:12]
        self.state = OperationState.READY
        self.error: Optional[Exception] = None
        self._cancelled = False
        self._done: Optional[asyncio.Future] = None
        self._task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.operation_id}, state={self.state.value})"

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_executing(self) -> bool:
        return self.state is OperationState.EXECUTING

    @property
    def is_finished(self) -> bool:
        return self.state is OperationState.FINISHED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Future:
        """
        Start the operation on the running event loop.

        Returns immediately; the returned future resolves to the operation
        once it has finished.

        Raises:
            OperationStateError: If the operation was already started
            RuntimeError: If called outside a running event loop
        """
        if self.state is not OperationState.READY:
            raise OperationStateError(f"{self!r} cannot be started again")

        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self.state = OperationState.EXECUTING
        logger.debug(f"Starting {self!r}")
        self._task = loop.create_task(self._execute())
        return self._done

    def cancel(self) -> None:
        """Request cancellation. Idempotent; takes effect at the next callback."""
        if not self._cancelled and not self.is_finished:
            logger.info(f"Cancelling {self!r}")
        self._cancelled = True

    def finish(self, error: Optional[Exception] = None) -> None:
        """
        Move to FINISHED and dispatch the completion callback.

        A cancelled operation always finishes with OperationCancelledError.
        Calls after the first are ignored.
        """
        if self.state is OperationState.FINISHED:
            logger.warning(f"{self!r} finished more than once, ignoring")
            return
        if self.state is OperationState.READY:
            raise OperationStateError(f"{self!r} cannot finish before it starts")

        if self._cancelled and not isinstance(error, OperationCancelledError):
            error = OperationCancelledError()

        self.error = error
        self.state = OperationState.FINISHED
        if error is not None:
            logger.info(f"{self!r} finished with error: {error}")
        else:
            logger.debug(f"{self!r} finished")

        try:
            self.finish_on_callback_context(error)
        finally:
            if self._done is not None and not self._done.done():
                self._done.set_result(self)

    async def wait(self) -> "Operation":
        """Wait until the operation has finished."""
        if self._done is None:
            raise OperationStateError(f"{self!r} has not been started")
        return await self._done

    def __await__(self):
        return self.wait().__await__()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def perform_request(self) -> None:
        """Build and send the request, map the response, then call finish()."""

    def finish_on_callback_context(self, error: Optional[Exception]) -> None:
        """Deliver completion callbacks. Runs once, inside finish()."""

    def _invoke(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        """Run a user callback; its exceptions are logged, never propagated."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Callback raised in {self!r}")

    async def _execute(self) -> None:
        if self._cancelled:
            self.finish(OperationCancelledError())
            return
        try:
            await self.perform_request()
        except asyncio.CancelledError:
            if not self.is_finished:
                self._cancelled = True
                self.finish(OperationCancelledError())
            raise
        except CloudKitError as e:
            if self.is_finished:
                logger.error(f"{self!r} raised after finishing: {e}")
            else:
                self.finish(e)
        except Exception as e:
            logger.exception(f"Unexpected error in {self!r}")
            if not self.is_finished:
                self.finish(e)
        else:
            if not self.is_finished:
                logger.warning(f"{self!r} returned without finishing")
                self.finish()


class DatabaseOperation(Operation):
    """Operation bound to one database of a container."""

    def __init__(self, database: Optional["Database"] = None):
        super().__init__()
        self.database = database

    @property
    def operation_url(self) -> str:
        if self.database is None:
            raise OperationStateError(f"{self!r} is not attached to a database")
        return self.database.operation_url

    async def send(self, endpoint: str, document: JSONDocument) -> JSONDocument:
        """
        Sign and send a request document to an endpoint of the database.

        Raises:
            KeyNotFoundError, SigningError: Before anything is sent
            TransportError, MalformedResponseError: From the transport
        """
        url = f"{self.operation_url}/{endpoint.lstrip('/')}"
        return await self.database.transport.request(url, document)


class OperationQueue:
    """
    Executor for operations.

    Starts each added operation and holds it until it finishes, so callers
    do not need to keep their own reference to in-flight work.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._in_flight: Dict[Operation, asyncio.Future] = {}

    @property
    def operation_count(self) -> int:
        return len(self._in_flight)

    @property
    def operations(self) -> List[Operation]:
        return list(self._in_flight)

    def add(self, operation: Operation) -> asyncio.Future:
        """Start an operation and track it until it finishes."""
        done = operation.start()
        self._in_flight[operation] = done
        done.add_done_callback(lambda _: self._in_flight.pop(operation, None))
        logger.debug(f"Queue {self.name}: added {operation!r} ({self.operation_count} in flight)")
        return done

    def cancel_all(self) -> None:
        for operation in self.operations:
            operation.cancel()

    async def wait_all(self) -> None:
        """Wait until every operation added so far has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()))
