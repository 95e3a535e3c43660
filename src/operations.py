"""
Submit-and-poll coordination for Cloud SQL long-running operations.

Mutations (SSL policy, ACL, passwords) are asynchronous jobs on the Cloud SQL
side. The coordinator submits one, then polls the returned operation's
selfLink until it reports DONE, holding a lock for the whole lifecycle so
that a single coordinator never tracks two jobs at once.
"""

import contextlib
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

import requests
from rich.console import Console

from errors import EmptyOperationError, OperationFailedError, OperationTimeoutError
from models import Operation
from templates import OPERATION_STATUS, RequestRenderer
from transport import HttpExecutor


class CoordinatorState(Enum):
    """Lifecycle states of the coordinator."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"


class OperationCoordinator:
    """Runs one mutating call at a time through submit and poll."""

    def __init__(
        self,
        executor: HttpExecutor,
        renderer: RequestRenderer,
        poll_interval: float = 1.0,
        poll_timeout: Optional[float] = None,
        show_progress: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        console: Optional[Console] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            executor: Transport used for submission and polling
            renderer: Renderer used to build the status requests
            poll_interval: Seconds to sleep before each status poll
            poll_timeout: Default deadline in seconds for polling; None waits
                indefinitely
            show_progress: Show a console spinner while polling
            sleep: Sleep function, injectable for tests
            clock: Monotonic clock used for deadlines
            console: rich Console for the spinner (stderr by default)
            logger: Logger to use instead of the module logger
        """
        self.executor = executor
        self.renderer = renderer
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.show_progress = show_progress
        self._sleep = sleep
        self._clock = clock
        self._console = console
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._state = CoordinatorState.IDLE
        self._last_operation: Optional[Operation] = None

    @contextlib.contextmanager
    def exclusive(self):
        """Hold the coordinator lock; run() and wait() may be called inside it."""
        with self._lock:
            yield

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def last_operation(self) -> Optional[Operation]:
        """The most recently submitted or polled operation, if any."""
        return self._last_operation

    def run(
        self,
        build_request: Callable[[], requests.PreparedRequest],
        credential,
        on_done: Optional[Callable[[Operation], None]] = None,
        timeout: Optional[float] = None,
    ) -> Operation:
        """
        Submit a mutating request and wait for its operation to finish.

        The lock is held from rendering through the final poll, and
        ``on_done`` runs before it is released. The lock is re-entrant, so a
        caller may already hold it through ``exclusive()``.

        Args:
            build_request: Renders the mutating request
            credential: Credential used for the status polls
            on_done: Callback invoked with the finished operation
            timeout: Polling deadline in seconds, overriding poll_timeout

        Returns:
            The finished operation

        Raises:
            CloudSqlError: Any error from rendering, submission or polling
        """
        with self._lock:
            try:
                self._state = CoordinatorState.SUBMITTING
                request = build_request()
                self.logger.info(f"Submitting {request.method} request")
                self._last_operation = self.executor.execute(
                    request, Operation.from_dict
                )
                self.logger.info(
                    f"Operation {self._last_operation.name or '(unnamed)'} "
                    f"({self._last_operation.operation_type}) submitted: "
                    f"{self._last_operation.status}"
                )
                operation = self._wait(credential, timeout)
                if on_done is not None:
                    on_done(operation)
            except Exception:
                self._state = CoordinatorState.FAILED
                raise
            self._state = CoordinatorState.DONE
            return operation

    def wait(
        self,
        operation: Optional[Operation],
        credential,
        timeout: Optional[float] = None,
    ) -> Operation:
        """
        Poll an already-submitted operation until it is DONE.

        Raises:
            EmptyOperationError: If ``operation`` is None, or is not DONE and
                has no selfLink
        """
        with self._lock:
            try:
                self._last_operation = operation
                operation = self._wait(credential, timeout)
            except Exception:
                self._state = CoordinatorState.FAILED
                raise
            self._state = CoordinatorState.DONE
            return operation

    def _wait(self, credential, timeout: Optional[float]) -> Operation:
        operation = self._last_operation
        if operation is None or (not operation.is_done and not operation.self_link):
            raise EmptyOperationError("No submitted operation to poll")

        self._state = CoordinatorState.POLLING
        limit = self.poll_timeout if timeout is None else timeout
        deadline = None if limit is None else self._clock() + limit
        polls = 0

        with self._progress(operation) as status:
            while not operation.is_done:
                if deadline is not None and self._clock() >= deadline:
                    raise OperationTimeoutError(
                        f"Operation {operation.name or operation.self_link} still "
                        f"{operation.status} after {limit}s"
                    )
                self._sleep(self.poll_interval)

                request = self.renderer.render(
                    OPERATION_STATUS,
                    {"self_link": operation.self_link},
                    credential=credential,
                )
                polled = self.executor.execute(request, Operation.from_dict)
                # keep polling the same link if the response omits it
                polled.self_link = polled.self_link or operation.self_link
                operation = polled
                self._last_operation = operation
                polls += 1
                self.logger.debug(f"Poll {polls}: {operation.status}")
                if status is not None:
                    status.update(self._progress_message(operation))

        if operation.error:
            raise OperationFailedError(
                f"Operation {operation.name or operation.self_link} failed: "
                f"{_describe_error(operation.error)}"
            )

        self.logger.info(
            f"✓ Operation {operation.operation_type or operation.name} DONE "
            f"after {polls} poll(s)"
        )
        return operation

    def _progress(self, operation: Operation):
        if not self.show_progress:
            return contextlib.nullcontext()
        if self._console is None:
            self._console = Console(stderr=True)
        return self._console.status(self._progress_message(operation))

    @staticmethod
    def _progress_message(operation: Operation) -> str:
        kind = operation.operation_type or "pending"
        return f"Waiting for {kind} operation to complete ({operation.status})"


def _describe_error(error) -> str:
    if isinstance(error, dict):
        errors = error.get("errors") or []
        messages = [
            f"{e.get('code', '')}: {e.get('message', '')}".strip(": ")
            for e in errors
            if isinstance(e, dict)
        ]
        if messages:
            return "; ".join(messages)
    return str(error)
