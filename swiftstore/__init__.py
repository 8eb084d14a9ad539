"""OpenStack Swift adapter for the uniform object store contract."""

from swiftstore.common.config import ConfigError, SwiftSettings, get_settings
from swiftstore.domain.objstore import DIR_DELIM, Bucket, ObjectAttributes
from swiftstore.infra.storage import (
    AuthenticationError,
    ContainerCreateError,
    ContainerNotFoundError,
    DeadlineExceededError,
    InvalidArgumentError,
    ObjectIntegrityError,
    ObjectNotFoundError,
    OperationCanceledError,
    SourceReadError,
    StorageError,
    is_not_found_error,
)
from swiftstore.services.container_service import (
    SwiftContainer,
    ensure_container,
    new_container,
)
from swiftstore.services.upload import UploadPath, UploadResult

__all__ = [
    "AuthenticationError",
    "Bucket",
    "ConfigError",
    "ContainerCreateError",
    "ContainerNotFoundError",
    "DIR_DELIM",
    "DeadlineExceededError",
    "InvalidArgumentError",
    "ObjectAttributes",
    "ObjectIntegrityError",
    "ObjectNotFoundError",
    "OperationCanceledError",
    "SourceReadError",
    "StorageError",
    "SwiftContainer",
    "SwiftSettings",
    "UploadPath",
    "UploadResult",
    "ensure_container",
    "get_settings",
    "is_not_found_error",
    "new_container",
]
