"""
Resumable multipart uploads.

An upload runs through ``init → upload parts → complete``. Parts are uploaded strictly one after another.
When a part still fails after ``max_resume_put_tries`` attempts, a breakpoint is written to the breakpoint
store and an ``ExhaustedRetriesError`` is raised; passing that breakpoint to ``upload`` later continues
with the failed part.
"""

from __future__ import annotations

import base64
import io
import logging
import os
from typing import BinaryIO

from tqdm.auto import tqdm

from .breakpoint import BreakpointStore
from .constants import MIN_RESUME_PUT_FILE_SIZE, TQDM_DEFAULTS
from .decoder import decode_multipart_uploads, decode_uploaded_parts
from .exceptions import (
    BreakpointStoreError,
    ExhaustedRetriesError,
    ResumeStateError,
    TransientNetworkError,
    ValidationError,
)
from .executor import RequestExecutor
from .fragment import FragmentView
from .models.config import TransferOptions
from .models.objects import BreakpointState, MultipartUploadFile, PartPlan, UploadedPart, UploadSession
from .planner import plan_parts
from .utils.checksums import calculate_md5

log = logging.getLogger(__name__)


def source_size(source: BinaryIO) -> int:
    """Current size of a seekable binary source."""
    try:
        return os.fstat(source.fileno()).st_size
    except (AttributeError, OSError):
        position = source.tell()
        size = source.seek(0, io.SEEK_END)
        source.seek(position)
        return size


class MultipartUploader:
    """Upload orchestrator for single and resumable multipart uploads."""

    __log = log.getChild("MultipartUploader")

    def __init__(
        self,
        executor: RequestExecutor,
        breakpoint_store: BreakpointStore,
        options: TransferOptions | None = None,
    ):
        """
        :param executor: executor for the REST requests
        :param breakpoint_store: store receiving the breakpoint of suspended uploads
        :param options: retry, checksum and part size options
        """
        self._executor = executor
        self._breakpoint_store = breakpoint_store
        self._options = options or TransferOptions()

    def put_object(self, path: str, source: BinaryIO | bytes, headers: dict[str, str] | None = None) -> None:
        """
        Upload the whole source with a single request.

        :param path: remote path of the object
        :param source: payload, either bytes or a binary file object
        :param headers: additional request headers, e.g. Content-Type
        :raises ValidationError: if use_md5 is set and the source is a non-seekable stream
        """
        request_headers = dict(headers or {})
        if self._options.use_md5 and not any(k.lower() == "content-md5" for k in request_headers):
            if isinstance(source, bytes):
                request_headers["Content-MD5"] = calculate_md5(io.BytesIO(source))
            elif not getattr(source, "seekable", lambda: False)():
                raise ValidationError(f"Cannot send Content-MD5 for {path}: the source is not seekable")
            else:
                request_headers["Content-MD5"] = calculate_md5(source)

        self.__log.debug("Uploading %s with a single request", path)
        self._executor.execute("PUT", path, headers=request_headers, body=source).close()

    def init_multipart_upload(
        self,
        path: str,
        part_size: int = 0,
        content_length: int = 0,
        content_type: str = "",
        order_upload: bool = True,
    ) -> UploadSession:
        """
        Initiate a multipart upload session.

        :param path: remote path of the object
        :param part_size: part size in bytes, 0 selects the default
        :param content_length: declared total size (optional, 0 to omit)
        :param content_type: content type of the final object
        :param order_upload: parts are uploaded in ascending order
        :raises ValidationError: if the part size is invalid for content_length
        """
        plan = plan_parts(part_size, content_length)

        headers = {
            "X-Upyun-Multi-Stage": "initiate",
            "X-Upyun-Multi-Type": content_type,
            "X-Upyun-Multi-Part-Size": str(plan.part_size),
        }
        if content_length > 0:
            headers["X-Upyun-Multi-Length"] = str(content_length)
        if not order_upload:
            headers["X-Upyun-Multi-Disorder"] = "true"

        response = self._executor.execute("PUT", path, headers=headers)
        response.close()

        session = UploadSession(
            upload_id=response.headers.get("X-Upyun-Multi-Uuid", ""),
            path=path,
            part_size=plan.part_size,
        )
        self.__log.debug("Initiated multipart upload of %s (upload_id: %s)", path, session.upload_id)
        return session

    def upload_part(self, session: UploadSession, part_id: int, body: BinaryIO | bytes, part_size: int) -> None:
        """Upload a single part of a multipart session."""
        headers = {
            "X-Upyun-Multi-Stage": "upload",
            "X-Upyun-Multi-Uuid": session.upload_id,
            "X-Upyun-Part-Id": str(part_id),
            "Content-Length": str(part_size),
        }
        self._executor.execute("PUT", session.path, headers=headers, body=body).close()

    def complete_multipart_upload(self, session: UploadSession, md5: str | None = None) -> None:
        """
        Complete a multipart session, making the object visible.

        :param md5: hex MD5 of the whole object, verified by the service if given
        """
        headers = {
            "X-Upyun-Multi-Stage": "complete",
            "X-Upyun-Multi-Uuid": session.upload_id,
        }
        if md5:
            headers["X-Upyun-Multi-Md5"] = md5
        self._executor.execute("PUT", session.path, headers=headers).close()
        self.__log.debug("Completed multipart upload of %s (upload_id: %s)", session.path, session.upload_id)

    def list_multipart_uploads(self, prefix: str = "", limit: int = 0) -> list[MultipartUploadFile]:
        """List the multipart sessions of the bucket, optionally restricted to a key prefix."""
        headers = {"X-Upyun-List-Type": "multi"}
        if prefix:
            headers["X-Upyun-List-Prefix"] = base64.b64encode(prefix.encode("utf-8")).decode("ascii")
        if limit > 0:
            headers["X-Upyun-List-Limit"] = str(limit)

        response = self._executor.execute("GET", "/", headers=headers)
        return decode_multipart_uploads(response.content)

    def list_multipart_parts(self, session: UploadSession, begin_id: int = 0) -> list[UploadedPart]:
        """List the parts already stored for a session, starting at begin_id."""
        headers = {"X-Upyun-Multi-Uuid": session.upload_id}
        if begin_id > 0:
            headers["X-Upyun-Part-Id"] = str(begin_id)

        response = self._executor.execute("GET", session.path, headers=headers)
        return decode_uploaded_parts(response.content)

    def upload(
        self,
        path: str,
        source: BinaryIO,
        headers: dict[str, str] | None = None,
        breakpoint: BreakpointState | None = None,
    ) -> UploadSession | None:
        """
        Upload a seekable source, in parts if it is large enough.

        :param path: remote path of the object
        :param source: seekable binary file object, only read through fragment views
        :param headers: request headers, Content-Type is used for the multipart session
        :param breakpoint: breakpoint of a suspended upload of the same source to continue
        :returns: the multipart session, or None if a new upload was small enough for a single request
        :raises ResumeStateError: if the source no longer matches the breakpoint
        :raises ExhaustedRetriesError: if a part could not be uploaded; the breakpoint has been stored
        :raises BreakpointStoreError: if the breakpoint of a suspended upload could not be stored or removed
        """
        headers = headers or {}
        total_size = source_size(source)
        resumed = breakpoint is not None

        if breakpoint is None and total_size < MIN_RESUME_PUT_FILE_SIZE:
            self.put_object(path, source, headers)
            return None

        if breakpoint is None:
            plan = plan_parts(self._options.resume_part_size, total_size)
            session = self.init_multipart_upload(
                path,
                part_size=plan.part_size,
                content_length=total_size,
                content_type=headers.get("Content-Type", ""),
                order_upload=True,
            )
            breakpoint = BreakpointState(
                upload_id=session.upload_id,
                next_part_id=0,
                part_size=session.part_size,
                max_part_id=plan.max_part_id,
                checksum_enabled=self._options.verify_resume,
            )
        else:
            session = UploadSession(upload_id=breakpoint.upload_id, path=path, part_size=breakpoint.part_size)
            self._validate_resume(source, total_size, breakpoint)
            self.__log.info(
                "Resuming upload of %s (upload_id: %s) at part %d/%d",
                path,
                breakpoint.upload_id,
                breakpoint.next_part_id,
                breakpoint.max_part_id,
            )

        plan = PartPlan(part_size=breakpoint.part_size, part_count=breakpoint.max_part_id + 1)
        self._upload_parts(session, source, plan, breakpoint.next_part_id, total_size)

        md5 = calculate_md5(source, progress=self._options.progress) if self._options.use_md5 else None
        self.complete_multipart_upload(session, md5)
        if resumed:
            self._breakpoint_store.delete(session.upload_id)
        return session

    def _validate_resume(self, source: BinaryIO, total_size: int, breakpoint: BreakpointState) -> None:
        if breakpoint.checksum_enabled and breakpoint.pending_fragment_checksum:
            fragment = FragmentView(source, breakpoint.next_part_id * breakpoint.part_size, breakpoint.part_size)
            if fragment.md5() != breakpoint.pending_fragment_checksum:
                raise ResumeStateError(
                    f"Cannot resume upload {breakpoint.upload_id}: source has changed since last attempt "
                    f"(part {breakpoint.next_part_id} checksum mismatch)"
                )

        if total_size < breakpoint.expected_min_size:
            raise ResumeStateError(
                f"Cannot resume upload {breakpoint.upload_id}: resume target expired "
                f"(source has {total_size} bytes, at least {breakpoint.expected_min_size} expected)"
            )

    def _upload_parts(
        self,
        session: UploadSession,
        source: BinaryIO,
        plan: PartPlan,
        first_part_id: int,
        total_size: int,
    ) -> None:
        max_tries = self._options.max_resume_put_tries

        with tqdm(
            total=total_size,
            initial=min(first_part_id * plan.part_size, total_size),
            desc="UPLOAD  ",
            disable=not self._options.progress,
            **TQDM_DEFAULTS,  # type: ignore[call-overload]
        ) as pbar:
            pbar.set_postfix_str(session.path, refresh=False)

            for part_id in range(first_part_id, plan.max_part_id + 1):
                fragment = FragmentView(source, part_id * plan.part_size, plan.part_size)

                tries = 0
                while True:
                    tries += 1
                    fragment.seek(0)
                    try:
                        self.upload_part(session, part_id, fragment, len(fragment))
                        break
                    except TransientNetworkError as e:
                        self.__log.warning(
                            "Upload of part %d failed (attempt %d/%s): %s",
                            part_id,
                            tries,
                            max_tries or "unlimited",
                            e,
                        )
                        if max_tries and tries >= max_tries:
                            self._suspend(session, fragment, part_id, plan, e)

                pbar.update(len(fragment))

    def _suspend(
        self,
        session: UploadSession,
        fragment: FragmentView,
        part_id: int,
        plan: PartPlan,
        cause: Exception,
    ):
        breakpoint = BreakpointState(
            upload_id=session.upload_id,
            next_part_id=part_id,
            part_size=plan.part_size,
            max_part_id=plan.max_part_id,
            checksum_enabled=self._options.verify_resume,
            pending_fragment_checksum=fragment.md5(),
        )
        try:
            self._breakpoint_store.set(breakpoint)
        except BreakpointStoreError:
            self.__log.error("Failed to store breakpoint of upload %s at part %d", session.upload_id, part_id)
            raise

        self.__log.error(
            "Upload of %s suspended at part %d after %d attempts, resume with upload ID %s",
            session.path,
            part_id,
            self._options.max_resume_put_tries,
            session.upload_id,
        )
        raise ExhaustedRetriesError(
            f"Part {part_id} of {session.path} failed {self._options.max_resume_put_tries} times, "
            f"upload {session.upload_id} suspended",
            breakpoint=breakpoint,
        ) from cause
