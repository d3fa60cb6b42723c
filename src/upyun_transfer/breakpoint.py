"""
Stores for the breakpoints of suspended multipart uploads.

A breakpoint store is shared between separate invocations (e.g. a crashed upload and its resume).
Callers are responsible for serializing access to a store; the stores do no locking of their own.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from os import PathLike
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .exceptions import BreakpointNotFoundError, BreakpointStoreError
from .models.objects import BreakpointState

log = logging.getLogger(__name__)


class BreakpointStore(Protocol):
    """Persistence of breakpoints keyed by upload ID."""

    def get(self, upload_id: str) -> BreakpointState:
        """
        Retrieve the breakpoint of an upload.

        :raises BreakpointNotFoundError: if no breakpoint is stored for upload_id
        :raises BreakpointStoreError: if the store cannot be read
        """
        ...

    def set(self, state: BreakpointState) -> None:
        """
        Store (or replace) the breakpoint of an upload.

        :raises BreakpointStoreError: if the store cannot be written
        """
        ...

    def delete(self, upload_id: str) -> None:
        """
        Remove the breakpoint of an upload, if one is stored.

        :raises BreakpointStoreError: if the store cannot be written
        """
        ...


class MemoryBreakpointStore:
    """Breakpoint store that lives only as long as the process."""

    def __init__(self):
        self._states: dict[str, BreakpointState] = {}

    def get(self, upload_id: str) -> BreakpointState:
        try:
            return self._states[upload_id]
        except KeyError as e:
            raise BreakpointNotFoundError(f"No breakpoint stored for upload {upload_id}") from e

    def set(self, state: BreakpointState) -> None:
        self._states[state.upload_id] = state

    def delete(self, upload_id: str) -> None:
        self._states.pop(upload_id, None)

    def __len__(self) -> int:
        return len(self._states)


class FileBreakpointStore:
    """
    Breakpoint store backed by a single JSON document mapping upload IDs to breakpoints.

    The document is rewritten through a temporary file and renamed into place,
    so an interrupted write never leaves a truncated store behind.
    """

    __log = log.getChild("FileBreakpointStore")

    def __init__(self, file_path: str | PathLike):
        self._file_path = Path(file_path)

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _read(self) -> dict[str, dict]:
        if not self._file_path.exists():
            return {}
        try:
            with open(self._file_path, encoding="utf-8") as fd:
                content = json.load(fd)
        except (OSError, json.JSONDecodeError) as e:
            raise BreakpointStoreError(f"Unable to read breakpoints from {self._file_path}") from e

        if not isinstance(content, dict):
            raise BreakpointStoreError(f"Malformed breakpoint store {self._file_path}")
        return content

    def get(self, upload_id: str) -> BreakpointState:
        states = self._read()
        if upload_id not in states:
            raise BreakpointNotFoundError(f"No breakpoint stored for upload {upload_id} in {self._file_path}")
        try:
            return BreakpointState.model_validate(states[upload_id])
        except ValidationError as e:
            raise BreakpointStoreError(f"Invalid breakpoint for upload {upload_id}: {e}") from e

    def _write(self, states: dict[str, dict]) -> None:
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._file_path.parent, prefix=f".{self._file_path.name}.")
        except OSError as e:
            raise BreakpointStoreError(f"Unable to write breakpoints to {self._file_path}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                json.dump(states, tmp_file, indent=2)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise BreakpointStoreError(f"Unable to write breakpoints to {self._file_path}") from e

    def set(self, state: BreakpointState) -> None:
        states = self._read()
        states[state.upload_id] = state.model_dump(mode="json")
        self._write(states)
        self.__log.debug("Stored breakpoint for upload %s at part %d", state.upload_id, state.next_part_id)

    def delete(self, upload_id: str) -> None:
        states = self._read()
        if states.pop(upload_id, None) is None:
            return
        self._write(states)
        self.__log.debug("Removed breakpoint of upload %s", upload_id)
