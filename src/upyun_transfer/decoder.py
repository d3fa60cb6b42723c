"""Decoding of REST response bodies and headers."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import DecodeError
from .models.objects import MultipartUploadFile, ObjectMetadata, UploadedPart

META_HEADER_PREFIX = "x-upyun-meta-"


class _ListingFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = ""
    length: int = 0
    last_modified: int = 0


class _ListingBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    files: list[_ListingFile] = Field(default_factory=list)
    iter: str = ""


class _MultipartUploadFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    uuid: str
    completed: bool = False
    created_at: int = 0


class _MultipartUploadsBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    files: list[_MultipartUploadFile] | None = None


class _UploadedPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    etag: str = ""
    size: int = 0
    id: int


class _UploadedPartsBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parts: list[_UploadedPart] | None = None


def decode_listing(raw_body: bytes | str) -> tuple[str, list[ObjectMetadata]]:
    """
    Decode one page of a directory listing.

    :param raw_body: JSON body of the listing response
    :returns: the continuation cursor and the entries of the page in order
    :raises DecodeError: if the body is not a valid listing
    """
    try:
        body = _ListingBody.model_validate_json(raw_body)
    except ValidationError as e:
        raise DecodeError(f"Invalid listing body: {e}") from e

    entries = [
        ObjectMetadata(
            name=f.name,
            size=f.length,
            content_type=f.type,
            is_dir=f.type == "folder",
            mod_time=datetime.fromtimestamp(f.last_modified, tz=UTC),
        )
        for f in body.files
    ]
    return body.iter, entries


def decode_multipart_uploads(raw_body: bytes | str) -> list[MultipartUploadFile]:
    """Decode the body of a multipart upload listing."""
    try:
        body = _MultipartUploadsBody.model_validate_json(raw_body)
    except ValidationError as e:
        raise DecodeError(f"Invalid multipart upload listing: {e}") from e

    return [
        MultipartUploadFile(key=f.key, upload_id=f.uuid, completed=f.completed, created_at=f.created_at)
        for f in body.files or []
    ]


def decode_uploaded_parts(raw_body: bytes | str) -> list[UploadedPart]:
    """Decode the body of a multipart part listing."""
    try:
        body = _UploadedPartsBody.model_validate_json(raw_body)
    except ValidationError as e:
        raise DecodeError(f"Invalid multipart part listing: {e}") from e

    return [UploadedPart(part_id=p.id, etag=p.etag, size=p.size) for p in body.parts or []]


def decode_int(raw_body: bytes | str) -> int:
    """Decode a plain integer body, e.g. of the usage request."""
    text = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
    try:
        return int(text.strip())
    except ValueError as e:
        raise DecodeError(f"Expected an integer body, got {text!r}") from e


def _parse_int(value: str | None) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


def parse_object_headers(name: str, headers: Mapping[str, str], head: bool = False) -> ObjectMetadata:
    """
    Build object metadata from response headers.

    :param name: path of the object
    :param headers: case-insensitive response headers
    :param head: headers belong to a HEAD request, which reports size, type and date in x-upyun-file-* headers
    """
    metadata = {k.lower(): v for k, v in headers.items() if k.lower().startswith(META_HEADER_PREFIX)}
    info = ObjectMetadata(name=name, content_type=headers.get("Content-Type", ""), metadata=metadata)

    if head:
        info.is_dir = headers.get("x-upyun-file-type") == "folder"
        info.size = _parse_int(headers.get("x-upyun-file-size"))
        file_date = _parse_int(headers.get("x-upyun-file-date"))
        info.mod_time = datetime.fromtimestamp(file_date, tz=UTC) if file_date else None
        info.checksum = headers.get("Content-MD5", "")
    else:
        info.size = _parse_int(headers.get("Content-Length"))
        info.checksum = headers.get("Content-MD5") or headers.get("ETag", "").strip('"')
        last_modified = headers.get("Last-Modified")
        if last_modified:
            try:
                info.mod_time = parsedate_to_datetime(last_modified)
            except (TypeError, ValueError):
                info.mod_time = None
    return info
