"""Periodic reconciliation of published state with the device."""

import asyncio
import logging
from asyncio import Task
from typing import Any, Optional

from pyavrbridge.device import ReceiverDevice
from pyavrbridge.exceptions import AvrError


class StateReconciler:
    """Polls one device and republishes its state until stopped.

    The next poll starts ``poll_interval_seconds`` after the previous one
    finished. The interval is read from the device's record each time, so
    edits apply from the following tick. A failed poll is logged and the
    previous state is kept.
    """

    def __init__(self, device: ReceiverDevice):
        self._device = device
        self._logger = logging.getLogger(__name__)
        self._task: Optional[Task[Any]] = None
        self._stop_event = asyncio.Event()
        self._wake_event = asyncio.Event()
        self._consecutive_failures = 0
        self._poll_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def poll_count(self) -> int:
        """Number of polls attempted, successful or not."""
        return self._poll_count

    def start(self):
        """Start polling. Must be called from within a running event loop."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._device.set_refresh_callback(self.request_refresh)
        self._logger.info(
            f"Reconciler started for {self._device.device_id} "
            f"(interval={self._device.record.poll_interval_seconds}s)"
        )

    async def stop(self):
        """Signal the loop to stop and wait for it to finish."""
        self._stop_event.set()
        self._wake_event.set()
        self._device.set_refresh_callback(None)
        if self._task is None:
            return
        task = self._task
        self._task = None
        if not task.done():
            # a poll in progress may be waiting on the network
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info(f"Reconciler stopped for {self._device.device_id}")

    def request_refresh(self):
        """Cut the current wait short and poll now."""
        self._wake_event.set()

    async def _run(self):
        while not self._stop_event.is_set():
            # a refresh requested during the poll still wakes the next wait
            self._wake_event.clear()
            await self._poll()
            if self._stop_event.is_set():
                break
            await self._wait(self._device.record.poll_interval_seconds)

    async def _poll(self):
        self._poll_count += 1
        try:
            await self._device.async_update()
        except AvrError as e:
            self._consecutive_failures += 1
            self._logger.warning(
                f"Poll of {self._device.device_id} failed "
                f"({self._consecutive_failures} in a row): {e}"
            )
            return
        except Exception as e:
            self._consecutive_failures += 1
            self._logger.error(f"Unexpected error polling {self._device.device_id}: {e}", exc_info=True)
            return
        if self._consecutive_failures:
            self._logger.info(
                f"{self._device.device_id} reachable again after {self._consecutive_failures} failed polls"
            )
        self._consecutive_failures = 0

    async def _wait(self, interval: float):
        try:
            await asyncio.wait_for(self._wake_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
