"""Compute resource backed by an isolated worker process.

The worker speaks newline-delimited JSON over its stdin and stdout. It
announces ``{"type": "ready"}`` once it is listening; every other line it
writes is a reply to a request.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from ...const import MESSAGE_TYPE_FIELD, READY_MESSAGE_TYPE, RESOURCE_CLOSED_REASON, WORKER_MODULE
from ...ports.compute_resource import ComputeResource

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT = 15.0
SHUTDOWN_TIMEOUT = 2.0


class SubprocessComputeResource(ComputeResource):
    """Runs ``python -m gifguard.worker`` and exchanges JSON lines with it."""

    def __init__(self, command: Optional[List[str]] = None, startup_timeout: float = DEFAULT_STARTUP_TIMEOUT):
        super().__init__()
        self.command = command or [sys.executable, "-m", WORKER_MODULE]
        self.startup_timeout = startup_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()
        self._write_lock = asyncio.Lock()

    async def create(self) -> None:
        """Spawn the worker and wait for its ready announcement."""
        self._ready = asyncio.Event()
        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
        )
        logger.info(f"Started compute worker pid={self._process.pid}")
        self._reader_task = asyncio.create_task(self._read_loop(self._process))

        ready_waiter = asyncio.create_task(self._ready.wait())
        done, _ = await asyncio.wait(
            {ready_waiter, self._reader_task},
            timeout=self.startup_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if ready_waiter in done:
            return

        ready_waiter.cancel()
        if self._reader_task in done:
            reason = f"Compute worker exited during startup with code {self._process.returncode}"
        else:
            reason = f"Compute worker did not become ready within {self.startup_timeout}s"
        await self.close()
        raise RuntimeError(reason)

    async def is_alive(self) -> bool:
        # A dead reader means replies can no longer be received
        if self._reader_task is None or self._reader_task.done():
            return False
        return self._process is not None and self._process.returncode is None

    async def wait_ready(self, grace: float) -> None:
        """Wait for the ready announcement, but never longer than ``grace``."""
        if self._ready.is_set():
            return
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=grace)
        except asyncio.TimeoutError:
            logger.debug("Compute worker not announced ready within grace period; sending anyway")

    async def send(self, request: Dict[str, Any]) -> None:
        if not await self.is_alive() or self._process.stdin is None:
            raise ConnectionError("Compute worker is not running")
        line = json.dumps(request).encode("utf-8") + b"\n"
        async with self._write_lock:
            self._process.stdin.write(line)
            await self._process.stdin.drain()

    async def close(self) -> None:
        process = self._process
        if process is None:
            return
        self._process = None

        if process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"Compute worker pid={process.pid} did not exit; killing it")
                process.kill()
                await process.wait()

        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._reader_task = None
        logger.info(f"Stopped compute worker pid={process.pid}")

    async def _read_loop(self, process: asyncio.subprocess.Process) -> None:
        try:
            while True:
                try:
                    line = await process.stdout.readline()
                except ValueError as e:
                    # Over-long line; readline has already dropped it from the buffer
                    logger.warning(f"Discarding oversized line from compute worker: {e}")
                    continue
                if not line:
                    break
                try:
                    message = json.loads(line)
                except ValueError:
                    logger.warning(f"Discarding non-JSON line from compute worker: {line[:120]!r}")
                    continue
                if isinstance(message, dict) and message.get(MESSAGE_TYPE_FIELD) == READY_MESSAGE_TYPE:
                    self._ready.set()
                    continue
                try:
                    self._deliver(message)
                except Exception:
                    logger.exception(f"Failed to handle message from compute worker: {line[:120]!r}")
        finally:
            self._closed(RESOURCE_CLOSED_REASON)
