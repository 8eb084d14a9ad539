"""Object storage abstraction layer.

This module provides a protocol-based abstraction over an authenticated
OpenStack Swift session together with the error taxonomy shared by every
storage operation.
"""

from .client import (
    AuthenticationError,
    ContainerCreateError,
    ContainerNotFoundError,
    DeadlineExceededError,
    InvalidArgumentError,
    ObjectHead,
    ObjectIntegrityError,
    ObjectNotFoundError,
    OperationCanceledError,
    SegmentInfo,
    SourceReadError,
    StorageError,
    SwiftConnection,
    is_not_found_error,
)
from .streams import ObjectReader

__all__ = [
    "AuthenticationError",
    "ContainerCreateError",
    "ContainerNotFoundError",
    "DeadlineExceededError",
    "InvalidArgumentError",
    "ObjectHead",
    "ObjectIntegrityError",
    "ObjectNotFoundError",
    "ObjectReader",
    "OperationCanceledError",
    "SegmentInfo",
    "SourceReadError",
    "StorageError",
    "SwiftConnection",
    "is_not_found_error",
]
