"""
Rclone monitor -- relays events from a running rclone process to asyncio.

The monitor runs as a task. It receives inputs (new process, cancel) over a
bounded queue, polls the current process every ``poll_interval`` seconds,
and publishes what it learns on an outbound queue that ``stream()`` reads.
At most one process is watched at a time; a new one replaces the old.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional, Union

from ..errors import CommandError
from .rclone import ProcessOutcome, RcloneProcess, RcloneProcessEvent

logger = logging.getLogger("savekeep.cloud.monitor")

POLL_INTERVAL = 0.001
INPUT_QUEUE_SIZE = 10_000


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewProcess:
    process: RcloneProcess


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


MonitorInput = Union[NewProcess, Tick, Cancel]


class MonitorSender:
    """Handle for feeding inputs to a running monitor."""

    def __init__(self, inputs: asyncio.Queue) -> None:
        self._inputs = inputs

    def send(self, message: MonitorInput) -> bool:
        """Queue an input. Returns False if the queue is full."""
        try:
            self._inputs.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping monitor input, queue is full: %s", message)
            return False
        return True

    def new_process(self, process: RcloneProcess) -> bool:
        return self.send(NewProcess(process))

    def cancel(self) -> bool:
        return self.send(Cancel())


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ready:
    sender: MonitorSender


@dataclass(frozen=True)
class Data:
    events: list[RcloneProcessEvent] = field(default_factory=list)


@dataclass(frozen=True)
class Succeeded:
    pass


@dataclass(frozen=True)
class Failed:
    error: CommandError


@dataclass(frozen=True)
class Cancelled:
    pass


MonitorEvent = Union[Ready, Data, Succeeded, Failed, Cancelled]


class RcloneMonitor:
    """Watches one rclone process at a time and reports on it."""

    def __init__(self, poll_interval: float = POLL_INTERVAL, input_limit: int = INPUT_QUEUE_SIZE) -> None:
        self.poll_interval = poll_interval
        self._inputs: asyncio.Queue[MonitorInput] = asyncio.Queue(maxsize=input_limit)
        self._events: asyncio.Queue[MonitorEvent] = asyncio.Queue()
        self._process: Optional[RcloneProcess] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def process(self) -> Optional[RcloneProcess]:
        return self._process

    def sender(self) -> MonitorSender:
        return MonitorSender(self._inputs)

    async def run(self) -> None:
        """Emit ``Ready``, then handle inputs until cancelled."""
        self._emit(Ready(self.sender()))
        try:
            while True:
                try:
                    message = await asyncio.wait_for(self._inputs.get(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    message = Tick()
                self.handle(message)
        finally:
            if self._process is not None:
                self._process.kill()
                self._process = None

    def handle(self, message: MonitorInput) -> None:
        if isinstance(message, NewProcess):
            if self._process is not None:
                logger.debug("Replacing rclone process %s", self._process.pid)
                self._process.kill()
            self._process = message.process
        elif isinstance(message, Tick):
            self._tick()
        elif isinstance(message, Cancel):
            if self._process is not None:
                self._process.kill()
                self._process = None
            self._emit(Cancelled())

    def _tick(self) -> None:
        process = self._process
        if process is None:
            return

        events = process.poll_events()
        if events:
            self._emit(Data(events))
            return

        outcome = process.check_exit()
        if outcome is None:
            return
        self._process = None
        if outcome.succeeded:
            self._emit(Succeeded())
        else:
            self._emit(Failed(outcome.error))

    def _emit(self, event: MonitorEvent) -> None:
        self._events.put_nowait(event)

    def start(self) -> asyncio.Task:
        """Run the monitor as a task on the current event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="rclone-monitor")
        return self._task

    async def next_event(self) -> MonitorEvent:
        return await self._events.get()

    async def stream(self) -> AsyncIterator[MonitorEvent]:
        while True:
            yield await self._events.get()

    async def stop(self) -> None:
        """Cancel the task. Any watched process is killed."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


async def watch(
    process: RcloneProcess,
    on_events: Optional[Callable[[list[RcloneProcessEvent]], None]] = None,
    monitor: Optional[RcloneMonitor] = None,
) -> ProcessOutcome:
    """Run a monitor over ``process`` until it finishes.

    ``on_events`` is called with each batch of decoded events. A cancelled
    watch returns an outcome with ``cancelled`` set. A process still running
    when the watch ends is killed.
    """
    monitor = monitor or RcloneMonitor()
    monitor.start()
    try:
        async for event in monitor.stream():
            if isinstance(event, Ready):
                event.sender.new_process(process)
            elif isinstance(event, Data):
                if on_events is not None:
                    on_events(event.events)
            elif isinstance(event, Succeeded):
                return ProcessOutcome()
            elif isinstance(event, Failed):
                return ProcessOutcome(event.error)
            elif isinstance(event, Cancelled):
                return ProcessOutcome(cancelled=True)
    finally:
        await monitor.stop()
    return ProcessOutcome()
