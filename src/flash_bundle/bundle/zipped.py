"""ZIP-backed bundle."""

import io
import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, FrozenSet, Optional

from flash_bundle.common import LogContext
from flash_bundle.config import BundleConfig
from flash_bundle.errors import (
    ContainerOpenError,
    ContainerReadError,
    ContainerReplaceError,
    ContainerRewriteError,
)
from .base import Bundle, Payload
from .source import COPY_CHUNK_SIZE, ReReadableSource, open_source

logger = logging.getLogger(__name__)

# Failures of the container codec that are reported like I/O errors
CONTAINER_ERRORS = (OSError, EOFError, zipfile.BadZipFile, zipfile.LargeZipFile)

# Entries zipfile cannot decode: unsupported methods (e.g. Deflate64) and encryption
CODEC_ERRORS = (NotImplementedError, RuntimeError)


def read_payload(payload: Payload) -> bytes:
    """Materialize a replacement payload given as bytes or a stream."""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    return payload.read()


class ZippedBundle(Bundle):
    """Bundle over the payload entries of a ZIP archive.

    The archive is re-parsed on every access; no offsets are cached between
    calls. Replacing an entry rewrites the whole archive next to the
    original and swaps it in with a single rename.

    Args:
        stream: Caller-owned binary stream holding the archive
        path: Archive file; the bundle opens and owns the handle
        config: Bundle settings (defaults when omitted)

    Exactly one of stream and path must be given. Bundles built from a
    stream are read-only.
    """

    EXTENSION = "zip"

    def __init__(
        self,
        stream: Optional[BinaryIO] = None,
        path: Optional[Path] = None,
        config: Optional[BundleConfig] = None,
    ) -> None:
        self.config = config or BundleConfig()
        self.path = Path(path) if path is not None else None
        self._source: Optional[ReReadableSource] = None
        self._keys: FrozenSet[str] = frozenset()
        self._init_bundle(stream, self.path)

    @classmethod
    def from_file(cls, path: Path, config: Optional[BundleConfig] = None) -> "ZippedBundle":
        return cls(path=path, config=config)

    @classmethod
    def from_stream(cls, stream: BinaryIO, config: Optional[BundleConfig] = None) -> "ZippedBundle":
        return cls(stream=stream, config=config)

    def _init_bundle(self, stream: Optional[BinaryIO], path: Optional[Path]) -> None:
        """Open the source and index it, replacing any previous state."""
        if (stream is None) == (path is None):
            raise ValueError("Exactly one of stream or path must be given")

        try:
            source = open_source(stream=stream, path=path, spool_max_size=self.config.spool_max_size)
        except OSError as e:
            raise ContainerOpenError(f"Cannot open container: {e}", path=str(path)) from e

        try:
            keys = self._scan(source)
        except CONTAINER_ERRORS as e:
            source.close()
            raise ContainerOpenError(f"Cannot index container: {e}", path=str(path)) from e

        self._source = source
        self._keys = keys
        logger.debug(f"Indexed {len(keys)} payload(s) in {path or 'stream'}")

    def _reopen(self) -> None:
        """Re-index the backing file; on failure leave the bundle detached."""
        try:
            self._init_bundle(None, self.path)
        except ContainerOpenError:
            self._source = None
            logger.error(f"Bundle detached: cannot reopen {self.path}")
            raise

    def _require_source(self) -> ReReadableSource:
        if self._source is None or self._source.closed:
            raise ContainerReadError(
                "Bundle has no open container", path=str(self.path)
            )
        return self._source

    def _open_zip(self) -> zipfile.ZipFile:
        return zipfile.ZipFile(self._require_source().reset(), 'r')

    def _scan(self, source: ReReadableSource) -> FrozenSet[str]:
        with zipfile.ZipFile(source.reset(), 'r') as zf:
            return frozenset(
                info.filename for info in zf.infolist()
                if self.config.matches(info.filename)
            )

    def get_keys(self) -> FrozenSet[str]:
        return self._keys

    def get_openable(self, key: str) -> Optional[io.BytesIO]:
        """Extract one payload into a detached in-memory stream.

        Returns None when key is not indexed, and also when it is indexed
        but no longer present in the archive (backing data changed since
        the last scan).

        Raises:
            ContainerReadError: If the archive or the entry cannot be read,
                or the bundle is closed
        """
        if key not in self._keys:
            return None

        try:
            with self._open_zip() as zf:
                for info in zf.infolist():
                    if info.filename == key:
                        with zf.open(info) as entry:
                            return io.BytesIO(entry.read())
        except CONTAINER_ERRORS + CODEC_ERRORS as e:
            raise ContainerReadError(
                f"Cannot read {key}: {e}", path=str(self.path), key=key
            ) from e

        logger.warning(f"Indexed entry {key} not found in {self.path or 'stream'}, treating as absent")
        return None

    def get_extension(self) -> str:
        return self.EXTENSION

    def is_read_only(self) -> bool:
        return self.path is None or not os.access(self.path, os.W_OK)

    def put_openable(self, key: Optional[str], payload: Payload) -> bool:
        """Replace an existing entry, rewriting the archive.

        Returns:
            False without touching storage if the bundle is read-only, key
            is None, key is not indexed, or key has vanished from the
            archive since the last scan; True once the new archive is in
            place and re-indexed

        Raises:
            ContainerReadError: If the bundle is closed or detached
            ContainerRewriteError: If writing the new archive fails (original untouched)
            ContainerReplaceError: If the new archive cannot be moved into place
            ContainerOpenError: If the replaced archive cannot be re-indexed
        """
        if self.is_read_only():
            return False
        if key is None:
            return False
        if key not in self._keys:
            return False

        self._require_source()
        data = read_payload(payload)

        with LogContext(logger, operation="replace", path=str(self.path), key=key):
            logger.info(f"Replacing {key} in {self.path} ({len(data)} bytes)")
            temp_path = self._rewrite(key, data)
            if temp_path is None:
                logger.warning(f"Indexed entry {key} not found in {self.path}, nothing replaced")
                return False
            self._promote(temp_path)
            logger.info(f"Replaced {key} in {self.path}")

        return True

    def _rewrite(self, key: str, data: bytes) -> Optional[Path]:
        """Write a copy of the archive with key's payload substituted.

        Returns:
            Path of the temporary archive, or None (nothing left on disk)
            when the archive no longer holds key
        """
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=self.config.temp_suffix,
                dir=self.path.parent,
            )
        except OSError as e:
            raise ContainerRewriteError(
                f"Cannot create temporary container: {e}", path=str(self.path), key=key
            ) from e
        temp_path = Path(temp_name)

        replaced = False
        try:
            with os.fdopen(fd, 'wb') as out:
                with self._open_zip() as zin, zipfile.ZipFile(out, 'w') as zout:
                    zout.comment = zin.comment
                    for info in zin.infolist():
                        if info.filename == key:
                            zout.writestr(
                                self._replacement_info(info),
                                data,
                                compresslevel=self.config.compress_level,
                            )
                            replaced = True
                        else:
                            self._copy_entry(zin, zout, info)

            if replaced and self.config.verify_rewrite:
                self._verify(temp_path)
        except CONTAINER_ERRORS + CODEC_ERRORS as e:
            self._discard(temp_path)
            raise ContainerRewriteError(
                f"Failed to rewrite container: {e}", path=str(self.path), key=key
            ) from e
        except BaseException:
            self._discard(temp_path)
            raise

        if not replaced:
            self._discard(temp_path)
            return None
        return temp_path

    def _replacement_info(self, original: zipfile.ZipInfo) -> zipfile.ZipInfo:
        info = self._clone_info(original)
        info.compress_type = self.config.compress_type
        return info

    @staticmethod
    def _clone_info(original: zipfile.ZipInfo) -> zipfile.ZipInfo:
        # Extra fields are not carried: zip64 extras are regenerated on write
        info = zipfile.ZipInfo(original.filename, date_time=original.date_time)
        info.compress_type = original.compress_type
        info.comment = original.comment
        info.create_system = original.create_system
        info.external_attr = original.external_attr
        info.file_size = original.file_size
        return info

    def _copy_entry(self, zin: zipfile.ZipFile, zout: zipfile.ZipFile, info: zipfile.ZipInfo) -> None:
        with zin.open(info) as src, zout.open(self._clone_info(info), 'w') as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)

    def _verify(self, temp_path: Path) -> None:
        with zipfile.ZipFile(temp_path, 'r') as zf:
            bad_entry = zf.testzip()
        if bad_entry is not None:
            raise ContainerRewriteError(
                f"CRC check failed for {bad_entry} in rewritten container",
                path=str(self.path),
                entry=bad_entry,
            )

    def _promote(self, temp_path: Path) -> None:
        """Move the rewritten archive over the original and re-index."""
        self._source.close()
        try:
            shutil.copymode(self.path, temp_path)
            os.replace(temp_path, self.path)
        except OSError as e:
            logger.error(f"Cannot move {temp_path} over {self.path}: {e}")
            self._discard(temp_path)
            try:
                self._reopen()
            except ContainerOpenError as reopen_error:
                raise ContainerReplaceError(
                    f"Failed to replace container: {e} (reopening original failed: {reopen_error})",
                    path=str(self.path),
                    reopen_error=str(reopen_error),
                ) from e
            raise ContainerReplaceError(
                f"Failed to replace container: {e}", path=str(self.path)
            ) from e

        self._reopen()

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
            logger.debug(f"Removed temporary container {temp_path}")
        except OSError as e:
            logger.warning(f"Failed to remove temporary container {temp_path}: {e}")

    def close(self) -> None:
        """Release the archive handle if the bundle owns it."""
        if self._source is not None:
            self._source.close()

    def __repr__(self) -> str:
        return f"ZippedBundle({self.path or 'stream'}, {len(self._keys)} payload(s))"
