from __future__ import annotations

import threading

from swiftstore.infra.storage.client import (
    InvalidArgumentError,
    OperationCanceledError,
    SwiftConnection,
)


class BaseService:
    """Provides guard rails and helpers shared by storage services."""

    def __init__(self, connection: SwiftConnection):
        self._connection = connection

    @property
    def connection(self) -> SwiftConnection:
        return self._connection

    def _ensure_name(self, name: str | None) -> str:
        if not name:
            raise InvalidArgumentError("object name cannot be empty")
        return name

    def _check_canceled(self, cancel: threading.Event | None, action: str) -> None:
        if cancel is not None and cancel.is_set():
            raise OperationCanceledError(f"{action}: operation canceled")
