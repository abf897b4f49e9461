from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class UnauthenticatedError(AppError):
    pass


class HistoryUnavailableError(AppError):
    pass


class SendFailedError(AppError):
    pass


class ChannelError(AppError):
    pass


class ValidationError(AppError):
    pass
