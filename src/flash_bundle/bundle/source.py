"""Re-readable byte sources backing a bundle.

A source is either owned by the bundle (opened from a path, closed by the
bundle) or external (a stream supplied by the caller, never closed by the
bundle). Both rewind to the position the container started at.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024  # 64 KB chunks
DEFAULT_SPOOL_MAX_SIZE = 16 * 1024 * 1024


def _is_seekable(stream: BinaryIO) -> bool:
    try:
        return bool(stream.seekable())
    except (AttributeError, ValueError):
        return False


def _spool_file(max_size: int) -> BinaryIO:
    # SpooledTemporaryFile treats max_size=0 as unbounded memory
    if max_size > 0:
        return tempfile.SpooledTemporaryFile(max_size=max_size)
    return tempfile.TemporaryFile()


class ReReadableSource:
    """Byte source that can be rewound to its start and read again."""

    owned: bool = False

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._start = stream.tell()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def reset(self) -> BinaryIO:
        """Rewind to the start of the container and return the stream."""
        self._stream.seek(self._start)
        return self._stream

    def close(self) -> None:
        pass


class ExternalSource(ReReadableSource):
    """Caller-owned stream.

    Seekable streams are read in place. Non-seekable streams are copied
    once into a temporary file, kept in memory up to spool_max_size bytes
    (0 writes straight to disk); only that copy is ever closed.
    """

    owned = False

    def __init__(self, stream: BinaryIO, spool_max_size: int = DEFAULT_SPOOL_MAX_SIZE) -> None:
        self._spool: Optional[BinaryIO] = None
        if not _is_seekable(stream):
            self._spool = _spool_file(spool_max_size)
            try:
                shutil.copyfileobj(stream, self._spool, COPY_CHUNK_SIZE)
            except BaseException:
                self._spool.close()
                raise
            logger.debug(f"Spooled non-seekable stream ({self._spool.tell()} bytes)")
            self._spool.seek(0)
            stream = self._spool
        super().__init__(stream)

    def close(self) -> None:
        if self._spool is not None:
            self._spool.close()


class OwnedFileSource(ReReadableSource):
    """File opened and owned by the bundle."""

    owned = True

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        handle = open(self.path, 'rb')
        super().__init__(handle)

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()
            logger.debug(f"Released handle on {self.path}")


def open_source(
    stream: Optional[BinaryIO] = None,
    path: Optional[Path] = None,
    spool_max_size: int = DEFAULT_SPOOL_MAX_SIZE,
) -> ReReadableSource:
    """Wrap exactly one of a stream or a path as a re-readable source.

    Raises:
        ValueError: If both or neither of stream and path are given
        OSError: If the path cannot be opened
    """
    if (stream is None) == (path is None):
        raise ValueError("Exactly one of stream or path must be given")
    if path is not None:
        return OwnedFileSource(path)
    return ExternalSource(stream, spool_max_size=spool_max_size)
