from __future__ import annotations


class SyncError(Exception):
    """Base synchronization error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class TransportError(SyncError):
    """The live channel could not be opened or was lost."""


class RequestFailed(SyncError):
    """A pull, send or upload call failed at the HTTP level."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class UploadFailed(RequestFailed):
    pass


class ValidationError(SyncError):
    pass


class StaleResult(SyncError):
    """A history page arrived after the selection moved on."""

    def __init__(self, carried_epoch: int, current_epoch: int) -> None:
        self.carried_epoch = carried_epoch
        self.current_epoch = current_epoch
        super().__init__(f"epoch {carried_epoch} superseded by {current_epoch}")
