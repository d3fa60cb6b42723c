"""Resumable uploads and recursive listings for the UpYun REST API."""

from .breakpoint import BreakpointStore, FileBreakpointStore, MemoryBreakpointStore
from .client import UpYunClient
from .exceptions import (
    BreakpointNotFoundError,
    BreakpointStoreError,
    DecodeError,
    ExhaustedRetriesError,
    PermanentRemoteError,
    ResumeStateError,
    TransferError,
    TransientNetworkError,
    ValidationError,
)
from .executor import RequestExecutor, RestRequestExecutor
from .listing import END_OF_LISTING, ListConfig, ListingTraversal
from .models.config import ConfigModel, RestOptions, TransferOptions
from .models.objects import BreakpointState, ObjectMetadata, PartPlan, UploadSession
from .multipart import MultipartUploader
from .planner import plan_parts

__all__ = [
    "END_OF_LISTING",
    "BreakpointNotFoundError",
    "BreakpointState",
    "BreakpointStore",
    "BreakpointStoreError",
    "ConfigModel",
    "DecodeError",
    "ExhaustedRetriesError",
    "FileBreakpointStore",
    "ListConfig",
    "ListingTraversal",
    "MemoryBreakpointStore",
    "MultipartUploader",
    "ObjectMetadata",
    "PartPlan",
    "PermanentRemoteError",
    "RequestExecutor",
    "RestOptions",
    "RestRequestExecutor",
    "ResumeStateError",
    "TransferError",
    "TransferOptions",
    "TransientNetworkError",
    "UpYunClient",
    "UploadSession",
    "ValidationError",
    "plan_parts",
]
