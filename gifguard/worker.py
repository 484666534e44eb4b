"""Isolated fingerprint worker.

Run as ``python -m gifguard.worker``. Reads ``{"requestId", "sourceUrl"}``
lines on stdin and answers ``{"requestId", "fingerprint"}`` or
``{"requestId", "error"}`` on stdout. Logs go to stderr so that stdout stays
a clean message channel. Requests are served concurrently; the process exits
when stdin closes.
"""

import asyncio
import io
import json
import logging
import sys
from typing import Any, Dict

import httpx
import imagehash
from PIL import Image, UnidentifiedImageError

from gifguard.phash.const import (
    ERROR_FIELD,
    FINGERPRINT_FIELD,
    MESSAGE_TYPE_FIELD,
    PHASH_SIZE,
    READY_MESSAGE_TYPE,
    REQUEST_ID_FIELD,
    SOURCE_URL_FIELD,
)
from gifguard.shared.config import Config
from gifguard.shared.logging import LoggingManager

logger = logging.getLogger("gifguard.worker")


def compute_phash(image_bytes: bytes) -> str:
    """Compute a 256-bit perceptual hash of the first frame, as 64 hex symbols."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.seek(0)
        return str(imagehash.phash(img.convert("RGB"), hash_size=PHASH_SIZE))


class ThumbnailTooLarge(ValueError):
    """The thumbnail is larger than the configured download limit."""


class FingerprintWorker:
    """Serves fingerprint requests read from stdin."""

    def __init__(self, config: Config):
        self.config = config
        self._write_lock = asyncio.Lock()
        self._tasks = set()

    async def _emit(self, message: Dict[str, Any]) -> None:
        async with self._write_lock:
            sys.stdout.write(json.dumps(message) + "\n")
            sys.stdout.flush()

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        limit = self.config.thumbnail_max_bytes
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            declared = response.headers.get("content-length")
            if declared is not None and declared.isdigit() and int(declared) > limit:
                raise ThumbnailTooLarge(f"Thumbnail exceeds {limit} bytes")

            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > limit:
                    raise ThumbnailTooLarge(f"Thumbnail exceeds {limit} bytes")
                chunks.append(chunk)
        return b"".join(chunks)

    async def handle(self, client: httpx.AsyncClient, request: Dict[str, Any]) -> None:
        request_id = request.get(REQUEST_ID_FIELD)
        url = request.get(SOURCE_URL_FIELD)
        if not isinstance(url, str) or not url:
            await self._emit({REQUEST_ID_FIELD: request_id, ERROR_FIELD: "Missing sourceUrl"})
            return

        try:
            image_bytes = await self._download(client, url)
            loop = asyncio.get_running_loop()
            fingerprint = await loop.run_in_executor(None, compute_phash, image_bytes)
        except httpx.InvalidURL as e:
            reason = f"Invalid thumbnail URL: {e}"
        except httpx.HTTPStatusError as e:
            reason = f"Thumbnail fetch failed with HTTP {e.response.status_code}"
        except httpx.HTTPError as e:
            reason = f"Thumbnail fetch failed: {e.__class__.__name__}: {e}"
        except ThumbnailTooLarge as e:
            reason = str(e)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            reason = f"Could not decode thumbnail: {e}"
        except Exception as e:
            # Every request must be answered, or its caller waits out the full timeout
            logger.exception(f"Unexpected failure fingerprinting {url}")
            reason = f"Worker failed: {e.__class__.__name__}: {e}"
        else:
            logger.debug(f"Fingerprinted {url}: {fingerprint}")
            await self._emit({REQUEST_ID_FIELD: request_id, FINGERPRINT_FIELD: fingerprint})
            return

        logger.warning(f"Request {request_id} for {url} failed: {reason}")
        await self._emit({REQUEST_ID_FIELD: request_id, ERROR_FIELD: reason})

    async def serve(self) -> None:
        loop = asyncio.get_running_loop()
        timeout = httpx.Timeout(self.config.thumbnail_download_timeout)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            await self._emit({MESSAGE_TYPE_FIELD: READY_MESSAGE_TYPE})
            while True:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                try:
                    request = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring malformed request line: {line[:120]!r}")
                    continue
                if not isinstance(request, dict):
                    continue
                task = asyncio.create_task(self.handle(client, request))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

            if self._tasks:
                await asyncio.gather(*self._tasks)


def main() -> None:
    config = Config()
    LoggingManager.setup_logging(config.log_level, config=config, stream=sys.stderr)
    asyncio.run(FingerprintWorker(config).serve())


if __name__ == "__main__":
    main()
