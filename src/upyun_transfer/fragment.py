"""Bounded read-only views over a byte range of a local source."""

from __future__ import annotations

import hashlib
import io
import os
from typing import BinaryIO

from .constants import STREAMING_CHUNK_SIZE


class FragmentView(io.RawIOBase):
    """
    Read-only view of ``length`` bytes of ``source`` starting at ``offset``.

    The view keeps its own position and seeks the underlying source before every read, so several views
    over the same handle can be used one after another without interfering. The length is clamped to the
    end of the source.

    Example:
        with open("large_file.bin", "rb") as fd:
            part = FragmentView(fd, offset=2 * 1024**2, length=1024**2)
            checksum = part.md5()
            part.seek(0)
            requests.put(url, data=part)
    """

    def __init__(self, source: BinaryIO, offset: int, length: int):
        """
        :param source: seekable binary file object
        :param offset: start of the view within the source
        :param length: requested length of the view
        """
        if offset < 0 or length < 0:
            raise ValueError(f"Invalid fragment range: offset={offset}, length={length}")

        self._source = source
        self._offset = offset

        source_size = os.fstat(source.fileno()).st_size if _has_fileno(source) else _seek_size(source)
        self._length = max(0, min(length, source_size - offset))
        self._position = 0

    def __len__(self) -> int:
        return self._length

    @property
    def offset(self) -> int:
        """Start of the view within the source"""
        return self._offset

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Seek within the view, positions are relative to the start of the fragment"""
        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._position + offset
        elif whence == io.SEEK_END:
            position = self._length + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")

        if position < 0:
            raise ValueError(f"Negative seek position {position}")
        self._position = position
        return self._position

    def readinto(self, buffer, /) -> int:
        """Read up to len(buffer) bytes of the fragment into buffer"""
        remaining = self._length - self._position
        if remaining <= 0:
            return 0

        size = min(len(buffer), remaining)
        self._source.seek(self._offset + self._position)
        data = self._source.read(size)
        nbytes = len(data)
        buffer[:nbytes] = data
        self._position += nbytes
        return nbytes

    def md5(self) -> str:
        """Hex MD5 digest of the whole fragment. Leaves the position at the end of the view."""
        md5_hash = hashlib.md5()
        self.seek(0)
        while chunk := self.read(STREAMING_CHUNK_SIZE):
            md5_hash.update(chunk)
        return md5_hash.hexdigest()

    def close(self):
        """Close the view. The underlying source stays open."""
        super().close()


def _has_fileno(source) -> bool:
    try:
        source.fileno()
    except (AttributeError, OSError):
        return False
    return True


def _seek_size(source) -> int:
    current = source.tell()
    size = source.seek(0, io.SEEK_END)
    source.seek(current)
    return size
