"""
Client for the REST API of an object storage bucket.
"""

from __future__ import annotations

import logging
import posixpath
import queue
import threading
from collections.abc import Iterator
from os import PathLike
from pathlib import Path
from typing import BinaryIO

from tqdm.auto import tqdm

from .breakpoint import BreakpointStore, MemoryBreakpointStore
from .constants import STREAMING_CHUNK_SIZE, TQDM_DEFAULTS
from .decoder import decode_int, parse_object_headers
from .executor import RequestExecutor, RestRequestExecutor, escape_uri
from .listing import ListConfig, ListingTraversal, TraversalState
from .models.config import ConfigModel, TransferOptions
from .models.objects import MultipartUploadFile, ObjectMetadata, UploadedPart, UploadSession
from .multipart import MultipartUploader

log = logging.getLogger(__name__)


class UpYunClient:
    """Transfer and listing operations on one bucket."""

    __log = log.getChild("UpYunClient")

    def __init__(
        self,
        config: ConfigModel | None = None,
        executor: RequestExecutor | None = None,
        breakpoint_store: BreakpointStore | None = None,
        options: TransferOptions | None = None,
    ):
        """
        :param config: configuration, used to create the default executor and options
        :param executor: request executor, defaults to a ``RestRequestExecutor`` for ``config.rest``
        :param breakpoint_store: store for breakpoints of suspended uploads, defaults to an in-memory store
        :param options: transfer options, defaults to ``config.transfer``
        """
        if executor is None:
            if config is None:
                raise ValueError("Either config or executor must be given")
            executor = RestRequestExecutor(config.rest)

        self._bucket = config.rest.bucket if config is not None else getattr(executor, "bucket", "")
        self._executor = executor
        self._options = options or (config.transfer if config is not None else TransferOptions())
        self._breakpoint_store = breakpoint_store or MemoryBreakpointStore()
        self._uploader = MultipartUploader(executor, self._breakpoint_store, self._options)
        self._traversal = ListingTraversal(executor)

    @property
    def breakpoint_store(self) -> BreakpointStore:
        return self._breakpoint_store

    def put(
        self,
        path: str,
        local_path: str | PathLike | None = None,
        reader: BinaryIO | bytes | None = None,
        headers: dict[str, str] | None = None,
        resume: bool = False,
    ) -> UploadSession | None:
        """
        Upload a local file or a reader to ``path``.

        :param local_path: file to upload, takes precedence over reader
        :param reader: bytes or binary file object to upload
        :param headers: additional request headers
        :param resume: upload large files in parts that can be resumed after failures (needs a seekable source)
        :returns: the multipart session of resumable uploads, otherwise None
        """
        if local_path is not None:
            with open(local_path, "rb") as fd:
                return self.put(path, reader=fd, headers=headers, resume=resume)
        if reader is None:
            raise ValueError("Either local_path or reader must be given")

        if resume:
            if isinstance(reader, bytes) or not reader.seekable():
                raise ValueError("Resumable uploads need a seekable file object")
            return self._uploader.upload(path, reader, headers)

        self._uploader.put_object(path, reader, headers)
        return None

    def resume_put(
        self,
        path: str,
        upload_id: str,
        local_path: str | PathLike | None = None,
        reader: BinaryIO | None = None,
        headers: dict[str, str] | None = None,
    ) -> UploadSession | None:
        """
        Continue a suspended upload from the breakpoint stored for ``upload_id``.

        :raises BreakpointNotFoundError: if no breakpoint is stored for upload_id
        :raises ResumeStateError: if the source changed since the upload was suspended
        """
        breakpoint = self._breakpoint_store.get(upload_id)
        if local_path is not None:
            with open(local_path, "rb") as fd:
                return self._uploader.upload(path, fd, headers, breakpoint=breakpoint)
        if reader is None:
            raise ValueError("Either local_path or reader must be given")
        return self._uploader.upload(path, reader, headers, breakpoint=breakpoint)

    def get(
        self,
        path: str,
        local_path: str | PathLike | None = None,
        writer: BinaryIO | None = None,
        headers: dict[str, str] | None = None,
    ) -> ObjectMetadata:
        """
        Download the object at ``path`` into a local file or writer.

        :returns: metadata of the object, its size is the number of bytes written
        """
        if local_path is not None:
            with open(local_path, "wb") as fd:
                return self.get(path, writer=fd, headers=headers)
        if writer is None:
            raise ValueError("Either local_path or writer must be given")

        request_headers = dict(headers or {})
        request_headers["x-upyun-folder"] = "false"

        response = self._executor.execute("GET", path, headers=request_headers, stream=True)
        with response:
            info = parse_object_headers(path, response.headers)
            written = 0
            with tqdm(
                total=info.size or None,
                desc="DOWNLOAD",
                disable=not self._options.progress,
                **TQDM_DEFAULTS,  # type: ignore[call-overload]
            ) as pbar:
                for chunk in response.iter_content(chunk_size=STREAMING_CHUNK_SIZE):
                    writer.write(chunk)
                    written += len(chunk)
                    pbar.update(len(chunk))

        info.size = written
        return info

    def get_info(self, path: str) -> ObjectMetadata:
        """Metadata of a file or directory."""
        response = self._executor.execute("HEAD", path)
        response.close()
        return parse_object_headers(path, response.headers, head=True)

    def list(
        self,
        config: ListConfig,
        objects: queue.Queue,
        cancel: threading.Event | None = None,
    ) -> TraversalState:
        """List a directory tree into a queue, see ``ListingTraversal.list``."""
        return self._traversal.list(config, objects, cancel)

    def iter_objects(self, config: ListConfig) -> Iterator[ObjectMetadata]:
        """Yield the entries of a recursive listing, see ``ListingTraversal.iter_objects``."""
        return self._traversal.iter_objects(config, queue_size=self._options.queue_size)

    def list_config(self, path: str, **kwargs) -> ListConfig:
        """Listing options for ``path`` with defaults taken from the transfer options."""
        defaults = {
            "max_list_objects": self._options.max_list_objects,
            "max_list_tries": self._options.max_list_tries,
            "max_list_level": self._options.max_list_level,
            "page_size": self._options.list_page_size,
        }
        defaults.update(kwargs)
        return ListConfig(path=path, **defaults)

    def list_objects(
        self,
        path: str,
        cursor: str = "",
        desc_order: bool = False,
        limit: int = 0,
        headers: dict[str, str] | None = None,
    ) -> tuple[list[ObjectMetadata], str]:
        """Fetch one page of a directory, see ``ListingTraversal.list_objects``."""
        return self._traversal.list_objects(
            path,
            cursor=cursor,
            desc_order=desc_order,
            limit=limit,
            max_list_tries=self._options.max_list_tries,
            headers=headers,
        )

    def init_multipart_upload(
        self,
        path: str,
        part_size: int = 0,
        content_length: int = 0,
        content_type: str = "",
        order_upload: bool = True,
    ) -> UploadSession:
        return self._uploader.init_multipart_upload(path, part_size, content_length, content_type, order_upload)

    def upload_part(self, session: UploadSession, part_id: int, body: BinaryIO | bytes, part_size: int) -> None:
        self._uploader.upload_part(session, part_id, body, part_size)

    def complete_multipart_upload(self, session: UploadSession, md5: str | None = None) -> None:
        self._uploader.complete_multipart_upload(session, md5)

    def list_multipart_uploads(self, prefix: str = "", limit: int = 0) -> list[MultipartUploadFile]:
        return self._uploader.list_multipart_uploads(prefix, limit)

    def list_multipart_parts(self, session: UploadSession, begin_id: int = 0) -> list[UploadedPart]:
        return self._uploader.list_multipart_parts(session, begin_id)

    def mkdir(self, path: str) -> None:
        self._executor.execute("POST", path, headers={"folder": "true", "x-upyun-folder": "true"}).close()

    def _source_header(self, src_path: str) -> str:
        return posixpath.join("/", self._bucket, escape_uri(src_path.lstrip("/")))

    def move(self, src_path: str, dest_path: str, headers: dict[str, str] | None = None) -> None:
        request_headers = {"X-Upyun-Move-Source": self._source_header(src_path), **(headers or {})}
        self._executor.execute("PUT", dest_path, headers=request_headers).close()

    def copy(self, src_path: str, dest_path: str, headers: dict[str, str] | None = None) -> None:
        request_headers = {"X-Upyun-Copy-Source": self._source_header(src_path), **(headers or {})}
        self._executor.execute("PUT", dest_path, headers=request_headers).close()

    def delete(self, path: str, async_delete: bool = False, folder: bool = False) -> None:
        """Delete a file, or an empty directory with ``folder=True``."""
        headers = {}
        if async_delete:
            headers["x-upyun-async"] = "true"
        if folder:
            headers["x-upyun-folder"] = "true"
        self._executor.execute("DELETE", path, headers=headers).close()

    def modify_metadata(self, path: str, headers: dict[str, str], operation: str = "merge") -> None:
        """Change the ``x-upyun-meta-*`` headers of an object (operation: merge, replace or delete)."""
        self._executor.execute("PATCH", path, headers=headers, query=f"metadata={operation}").close()

    def usage(self) -> int:
        """Storage used by the bucket in bytes."""
        response = self._executor.execute("GET", "/", query="usage")
        return decode_int(response.content)

    def download_tree(self, path: str, local_dir: str | PathLike) -> int:
        """
        Download every file below ``path`` into ``local_dir``, keeping the directory layout.

        :returns: the number of files downloaded
        """
        local_dir = Path(local_dir)
        count = 0
        for entry in self.iter_objects(self.list_config(path, max_list_level=-1, max_list_objects=0)):
            target = local_dir / entry.name
            if entry.is_dir:
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            self.__log.info("Download file: '%s' -> '%s'", entry.name, target)
            self.get(posixpath.join(path, entry.name), local_path=target)
            count += 1
        return count
