"""Transient on-disk storage for uploaded files.

:class:`TempFileStore` holds each upload for the duration of a single
request.  Every stored file gets a fresh random handle, so concurrent requests
never share a file and need no coordination.

Contract
--------
- ``put`` persists bytes under the size bound and returns a handle.  If the
  bound is exceeded mid-write the partial file is removed before
  :class:`~gemini_gateway.core.errors.PayloadTooLarge` is raised.
  A caller cancelled mid-write gets no handle, and the file is removed once
  the write thread finishes.
- ``get`` returns the stored bytes, or raises
  :class:`~gemini_gateway.core.errors.NotFound` if the handle was never written
  or has already been deleted.
- ``delete`` is idempotent: deleting twice, or deleting an unknown handle, is
  a no-op.
- ``scoped`` guarantees exactly one ``delete`` per handle on every exit path,
  including task cancellation.  A failed cleanup never hides the error that
  ended the block.

All filesystem work runs in a worker thread via :func:`asyncio.to_thread` so
that one request's file I/O never stalls the event loop serving the others.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import BinaryIO

from gemini_gateway.core.errors import InternalIOError, NotFound, PayloadTooLarge

logger = logging.getLogger(__name__)

# Handles are uuid4 hex strings; anything else is rejected before it can be
# joined onto the storage directory.
_HANDLE_RE = re.compile(r"^[0-9a-f]{32}$")

_CHUNK_SIZE = 1024 * 1024


class TempFileStore:
    """Bounded, per-request temporary file storage.

    Attributes:
        directory: Directory that holds the transient files.
        max_bytes: Largest payload ``put`` will accept.
    """

    def __init__(self, directory: Path, max_bytes: int) -> None:
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    # -- Public interface ---------------------------------------------------

    async def put(self, source: bytes | BinaryIO) -> str:
        """Persist *source* and return its handle.

        Args:
            source: Raw bytes, or a binary file object read from its start.

        Returns:
            Opaque handle identifying the stored file.

        Raises:
            PayloadTooLarge: If more than ``max_bytes`` are supplied.
            InternalIOError: If the file cannot be written.
            asyncio.CancelledError: If the caller is cancelled mid-write; the
                partial file is removed when the write thread finishes.
        """
        handle = uuid.uuid4().hex
        write = asyncio.ensure_future(asyncio.to_thread(self._write, handle, source))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            # The worker thread keeps writing; remove its file once it stops.
            write.add_done_callback(lambda _: self._discard(write, handle))
            raise
        return handle

    async def get(self, handle: str) -> bytes:
        """Return the bytes stored under *handle*.

        Raises:
            NotFound: If the handle was never written or is already deleted.
            InternalIOError: If the file exists but cannot be read.
        """
        return await asyncio.to_thread(self._read, handle)

    async def delete(self, handle: str) -> None:
        """Remove the file stored under *handle*, if any.

        Raises:
            InternalIOError: If an existing file cannot be removed.
        """
        await asyncio.to_thread(self._remove, handle)

    def path(self, handle: str) -> Path:
        """Return the on-disk path for *handle*.

        Raises:
            NotFound: If *handle* is not a well-formed store handle.
        """
        if not isinstance(handle, str) or not _HANDLE_RE.match(handle):
            raise NotFound(details=f"Malformed temp file handle: {handle!r}")
        return self.directory / handle

    def exists(self, handle: str) -> bool:
        """Return True if a file is currently stored under *handle*."""
        try:
            return self.path(handle).is_file()
        except NotFound:
            return False

    @asynccontextmanager
    async def scoped(self, handle: str) -> AsyncIterator[str]:
        """Yield *handle* and delete its file when the block exits.

        The delete is shielded from cancellation: if the surrounding task is
        cancelled (for example, the client disconnected), the removal still
        runs to completion in its worker thread.

        If the block raises and the delete then fails too, the delete failure
        is logged and the block's own exception propagates.
        """
        try:
            yield handle
        except BaseException:
            try:
                await asyncio.shield(self.delete(handle))
            except InternalIOError:
                logger.exception("Cleanup of temp file %s failed during error handling", handle)
            raise
        await asyncio.shield(self.delete(handle))

    # -- Blocking helpers (run in worker threads) ---------------------------

    def _write(self, handle: str, source: bytes | BinaryIO) -> None:
        target = self.path(handle)
        written = 0
        try:
            with open(target, "xb") as out:
                if isinstance(source, (bytes, bytearray, memoryview)):
                    written = len(source)
                    if written > self.max_bytes:
                        raise PayloadTooLarge(
                            f"File too large; max {self.max_bytes} bytes",
                        )
                    out.write(source)
                else:
                    source.seek(0)
                    while chunk := source.read(_CHUNK_SIZE):
                        written += len(chunk)
                        if written > self.max_bytes:
                            raise PayloadTooLarge(
                                f"File too large; max {self.max_bytes} bytes",
                            )
                        out.write(chunk)
        except PayloadTooLarge:
            self._remove(handle)
            raise
        except OSError as exc:
            self._remove_quietly(handle)
            raise InternalIOError(details=f"Writing temp file failed: {exc}") from exc

        logger.debug("Stored temp file %s (%d bytes)", handle, written)

    def _read(self, handle: str) -> bytes:
        target = self.path(handle)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise NotFound(details=f"No temp file for handle {handle}") from exc
        except OSError as exc:
            raise InternalIOError(details=f"Reading temp file failed: {exc}") from exc

    def _remove(self, handle: str) -> None:
        try:
            target = self.path(handle)
        except NotFound:
            return

        # Check existence first; a concurrent delete of the same handle can
        # still win the race, which missing_ok absorbs.
        if not target.exists():
            return
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete temp file %s: %s", target, exc)
            raise InternalIOError(details=f"Deleting temp file failed: {exc}") from exc

        logger.debug("Deleted temp file %s", handle)

    def _remove_quietly(self, handle: str) -> None:
        # Used on a write failure, where the original error is the one to report.
        try:
            self._remove(handle)
        except InternalIOError:
            logger.warning("Could not clean up partial temp file %s", handle)

    def _discard(self, write: asyncio.Future, handle: str) -> None:
        # Done callback for a write whose caller was cancelled.
        if not write.cancelled() and write.exception() is not None:
            logger.debug("Abandoned write of %s failed: %s", handle, write.exception())
        self._remove_quietly(handle)
