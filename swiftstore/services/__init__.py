from .base import BaseService
from .container_service import SwiftContainer, ensure_container, new_container
from .upload import UploadEngine, UploadPath, UploadResult, UploadState

__all__ = [
    "BaseService",
    "SwiftContainer",
    "ensure_container",
    "new_container",
    "UploadEngine",
    "UploadPath",
    "UploadResult",
    "UploadState",
]
