"""Task polling for asynchronous control-plane jobs."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Union

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_before_delay, wait_fixed

from ..config.settings import DEFAULT_POLL_INTERVAL, PipelineSettings
from ..errors import TaskTimeoutError
from ..utils.logging_config import timed
from ..utils.retry import with_retry
from .results import Task

logger = logging.getLogger(__name__)

TaskFetcher = Callable[[str], Awaitable[Union[Task, dict[str, Any]]]]


class TaskPoller(ABC):
    """Looks up task state by handle."""

    @abstractmethod
    async def find(self, upid: str) -> Task:
        """Non-blocking snapshot of a task."""
        pass

    @abstractmethod
    async def wait(self, upid: str, timeout: float) -> Task:
        """Poll until the task is no longer running.

        Raises:
            TaskTimeoutError: If the task is still running at the deadline
        """
        pass


class PollingTaskPoller(TaskPoller):
    """TaskPoller built on a single status-fetch coroutine.

    Status lookups are retried on transient transport errors. wait() polls at
    a fixed interval and raises TaskTimeoutError at the deadline, including
    when a lookup or its retries are still in flight.
    """

    def __init__(
        self,
        fetch: TaskFetcher,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        fetch_attempts: int = 3,
        fetch_retry_wait: float = 1,
    ):
        self.poll_interval = poll_interval
        self._fetch = with_retry(
            max_attempts=fetch_attempts,
            min_wait=fetch_retry_wait,
            max_wait=max(fetch_retry_wait, 10),
        )(fetch)

    @classmethod
    def from_settings(cls, fetch: TaskFetcher, settings: PipelineSettings, **kwargs) -> "PollingTaskPoller":
        """Poller using the configured poll interval."""
        return cls(fetch, poll_interval=settings.poll_interval, **kwargs)

    async def find(self, upid: str) -> Task:
        data = await self._fetch(upid)
        if isinstance(data, Task):
            return data
        return Task.from_dict({"upid": upid, **data})

    async def _poll(self, upid: str, timeout: float) -> Task:
        polling = AsyncRetrying(
            stop=stop_before_delay(timeout),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(lambda task: task.pending),
        )
        return await polling(self.find, upid)

    @timed("task_wait")
    async def wait(self, upid: str, timeout: float) -> Task:
        try:
            task = await asyncio.wait_for(self._poll(upid, timeout), timeout)
        except (RetryError, asyncio.TimeoutError) as e:
            logger.warning(f"Task {upid} still running after {timeout:g}s")
            raise TaskTimeoutError(upid, timeout) from e

        logger.debug(f"Task {upid} finished: {task.exitstatus}")
        return task
