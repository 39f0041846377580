"""Polls ECS for a service's tasks and reports changes through callbacks.

The monitor keeps the last snapshot of all tasks and of the running subset.
It polls every ``poll_interval_s`` seconds, or every
``volatile_poll_interval_s`` seconds while a task is between states, and
invokes its callbacks in order on the polling task.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from enum import Enum
from typing import Any, Callable, Optional

from task_discovery.core.errors import RemoteQueryError
from task_discovery.core.logging import get_logger
from task_discovery.metrics.prometheus import (
    TD_RESOLVE_LATENCY,
    TD_RUNNING_TASKS,
    TD_TASKS,
    TD_UPDATES,
)
from task_discovery.models.schemas import TaskInfo
from task_discovery.services.finder import TaskFinder
from task_discovery.services.snapshot import running_tasks, task_infos_equal

log = get_logger("monitor")

DEFAULT_POLL_INTERVAL_S = 10.0
DEFAULT_VOLATILE_POLL_INTERVAL_S = 1.0

# Successful updates required after an error before fast polling is allowed.
NUM_UPDATES_FOR_STABLE = 5

TasksCallback = Callable[[list[TaskInfo]], Any]
ErrorCallback = Callable[[Exception], Any]


class MonitorState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    CANCELLED = "cancelled"


async def _invoke(cb: Optional[Callable[..., Any]], arg: Any) -> None:
    if cb is None:
        return
    result = cb(arg)
    if inspect.isawaitable(result):
        await result


class MonitorHandle:
    """Stops a running monitor. Cancelling more than once has no effect."""

    def __init__(self, monitor: "TaskMonitor"):
        self._monitor = monitor
        self._event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        self._monitor._cancel()

    async def wait(self) -> None:
        """Wait for the polling task to exit."""
        if self._task is not None:
            await self._task


class TaskMonitor:
    """
    Watches one service and fires callbacks when its tasks change.

    ``on_status_change`` receives the full snapshot whenever any task changes,
    ``on_task_change`` receives the running subset whenever that changes, and
    ``on_error`` receives resolution errors. Callbacks may be plain functions
    or coroutine functions. Only one ``monitor()`` loop should run per
    instance.
    """

    def __init__(
        self,
        finder: TaskFinder,
        service: str,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        volatile_poll_interval_s: float = DEFAULT_VOLATILE_POLL_INTERVAL_S,
        resolve_timeout_s: Optional[float] = None,
    ):
        self.service = service
        self.poll_interval_s = poll_interval_s
        self.volatile_poll_interval_s = volatile_poll_interval_s
        self.resolve_timeout_s = resolve_timeout_s
        self.on_status_change: Optional[TasksCallback] = None
        self.on_task_change: Optional[TasksCallback] = None
        self.on_error: Optional[ErrorCallback] = None
        self._finder = finder
        self._all_tasks: Optional[list[TaskInfo]] = None
        self._running_tasks: Optional[list[TaskInfo]] = None
        self._updates_since_err = 0
        self._state = MonitorState.IDLE

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def has_snapshot(self) -> bool:
        """True once an update has succeeded."""
        return self._all_tasks is not None

    def _cancel(self) -> None:
        self._state = MonitorState.CANCELLED

    @property
    def all_tasks(self) -> list[TaskInfo]:
        """All known tasks, including pending and stopping ones."""
        return list(self._all_tasks or [])

    @property
    def running_tasks(self) -> list[TaskInfo]:
        """Tasks both running and desired to be running."""
        return list(self._running_tasks or [])

    def is_volatile(self) -> bool:
        """True if a task is changing state and the monitor has been stable since its last error."""
        if self._updates_since_err < NUM_UPDATES_FOR_STABLE:
            return False
        return any(t.desired_status != t.last_status for t in self._all_tasks or [])

    def next_interval(self) -> float:
        return self.volatile_poll_interval_s if self.is_volatile() else self.poll_interval_s

    async def _resolve(self) -> list[TaskInfo]:
        start = time.perf_counter()
        try:
            if self.resolve_timeout_s is None:
                return await self._finder.tasks(self.service)
            try:
                return await asyncio.wait_for(self._finder.tasks(self.service), self.resolve_timeout_s)
            except asyncio.TimeoutError as e:
                raise RemoteQueryError(
                    "resolve tasks",
                    f"timed out after {self.resolve_timeout_s}s",
                    cluster=self._finder.cluster,
                    service=self.service,
                ) from e
        finally:
            TD_RESOLVE_LATENCY.observe(time.perf_counter() - start)

    async def update(self) -> bool:
        """Query the latest tasks; return True if the set of running tasks changed.

        A failed query leaves the cached snapshots untouched and is reported
        through ``on_error`` only.
        """
        try:
            tasks = await self._resolve()
        except Exception as e:
            self._updates_since_err = 0
            TD_UPDATES.labels(service=self.service, result="error").inc()
            if self._state is MonitorState.CANCELLED:
                return False
            log.warning("update failed for %s: %s", self.service, e)
            await _invoke(self.on_error, e)
            return False
        if self._state is MonitorState.CANCELLED:
            return False

        self._updates_since_err += 1
        if task_infos_equal(tasks, self._all_tasks):
            TD_UPDATES.labels(service=self.service, result="unchanged").inc()
            return False

        TD_UPDATES.labels(service=self.service, result="changed").inc()
        running = running_tasks(tasks)
        running_changed = not task_infos_equal(running, self._running_tasks)
        # both caches are replaced before any callback can raise
        self._all_tasks = tasks
        self._running_tasks = running
        TD_TASKS.labels(service=self.service).set(len(tasks))
        TD_RUNNING_TASKS.labels(service=self.service).set(len(running))

        await _invoke(self.on_status_change, list(tasks))
        if running_changed:
            await _invoke(self.on_task_change, list(running))
        return running_changed

    async def monitor(self) -> MonitorHandle:
        """Run one update now, then keep polling in the background.

        Returns a handle whose ``cancel()`` stops the loop at its next wait.
        Errors from the first update go to ``on_error`` like any other.
        """
        handle = MonitorHandle(self)
        self._state = MonitorState.POLLING
        await self.update()
        handle._task = asyncio.create_task(self._run(handle), name=f"task-monitor:{self.service}")
        return handle

    async def _run(self, handle: MonitorHandle) -> None:
        while True:
            try:
                await asyncio.wait_for(handle._event.wait(), timeout=self.next_interval())
            except asyncio.TimeoutError:
                pass
            if handle.cancelled:
                log.info("stopped monitoring %s", self.service)
                return
            try:
                await self.update()
            except Exception:
                # a raising callback must not end the loop
                log.exception("callback failed while monitoring %s", self.service)
