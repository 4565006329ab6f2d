"""Bundle interface."""

from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, FrozenSet, Iterator, Optional, Union

Payload = Union[BinaryIO, bytes, bytearray, memoryview]


class Bundle(ABC):
    """A keyed collection of binary payloads.

    Lookups return detached random-access streams; replacement is only
    possible for keys that already exist.
    """

    @abstractmethod
    def get_keys(self) -> FrozenSet[str]:
        """Snapshot of the current keys."""

    @abstractmethod
    def get_openable(self, key: str) -> Optional[BinaryIO]:
        """Payload for key as a seekable stream, or None if absent."""

    @abstractmethod
    def get_extension(self) -> str:
        """Identifier of the container format."""

    @abstractmethod
    def is_read_only(self) -> bool:
        """Whether put_openable can ever succeed."""

    @abstractmethod
    def put_openable(self, key: Optional[str], payload: Payload) -> bool:
        """Replace the payload stored under an existing key.

        Returns:
            True if replaced, False if the bundle is read-only or the key
            is unknown
        """

    def length(self) -> int:
        return len(self.get_keys())

    def get_all(self) -> Dict[str, BinaryIO]:
        """Every payload, one lookup per key."""
        payloads = {}
        for key in sorted(self.get_keys()):
            payload = self.get_openable(key)
            if payload is not None:
                payloads[key] = payload
        return payloads

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return self.length()

    def __contains__(self, key: object) -> bool:
        return key in self.get_keys()

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.get_keys()))

    def __enter__(self) -> "Bundle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
