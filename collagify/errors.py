# collagify/errors.py
from typing import Optional


class CollagifyError(Exception):
    """Base class for every error raised by collagify."""


class StoreError(CollagifyError):
    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)


class DuplicateChannelError(StoreError):
    def __init__(self, chat_id: int, cause: Optional[BaseException] = None):
        self.chat_id = chat_id
        super().__init__(f"register chat {chat_id}: already registered", cause)


class FetchError(CollagifyError):
    """An image payload could not be downloaded."""


class MessagingError(CollagifyError):
    """The messaging platform rejected or failed a request."""


class TilerError(CollagifyError):
    pass


class DecodeError(TilerError):
    pass


class EncodeError(TilerError):
    pass


class CollageRunError(CollagifyError):
    """Every failure of one pipeline run, joined into a single error."""

    def __init__(self, failures):
        self.failures = list(failures)
        lines = [str(failure) for failure in self.failures]
        super().__init__(f"{len(lines)} failure(s) during collage run:\n" + "\n".join(lines))
