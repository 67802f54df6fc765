"""adlstore - A python client for Data Lake store (WebHDFS) accounts."""

from .auth import CallableTokenProvider, StaticTokenProvider, TokenProvider
from .client import StoreClient
from .constants import VERSION as __version__
from .core.acl import AclAction, AclEntry, AclScope, AclType, acl_spec_to_string, parse_acl_spec
from .core.latency import LatencyTracker
from .core.model import (                                            # re-export
    AccessDeniedError,
    AclStatus,
    ArgumentError,
    CallOptions,
    CallResult,
    ContentSummary,
    DirectoryEntry,
    DirectoryEntryType,
    PathExistsError,
    PathNotFoundError,
    ProtocolError,
    StoreError,
    StreamClosedError,
    TransportError,
)
from .core.retry import DefaultRetryPolicy, ExponentialOnThrottlePolicy, NoRetryPolicy, RetryPolicy
from .io import ReadBuffer, WriteBuffer, WriteMode
from .protocol import Operation, RequestDispatcher

__all__ = [
    "StoreClient",
    "TokenProvider", "StaticTokenProvider", "CallableTokenProvider",
    "RequestDispatcher", "Operation", "CallOptions", "CallResult",
    "ReadBuffer", "WriteBuffer", "WriteMode",
    "RetryPolicy", "NoRetryPolicy", "DefaultRetryPolicy", "ExponentialOnThrottlePolicy",
    "LatencyTracker",
    "DirectoryEntry", "DirectoryEntryType", "ContentSummary", "AclStatus",
    "AclEntry", "AclScope", "AclType", "AclAction", "parse_acl_spec", "acl_spec_to_string",
    "StoreError", "TransportError", "ProtocolError", "PathNotFoundError", "PathExistsError",
    "AccessDeniedError", "ArgumentError", "StreamClosedError",
    "__version__",
]
