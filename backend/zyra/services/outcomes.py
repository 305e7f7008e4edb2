"""
Command and callback outcomes - explicit result values instead of exceptions
"""

import enum
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


class OutcomeKind(str, enum.Enum):
    COMPLETED = "completed"
    CLIENT_ERROR = "client_error"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"
    DEPENDENCY_FAILURE = "dependency_failure"


_HTTP_STATUS = {
    OutcomeKind.COMPLETED: 200,
    OutcomeKind.CLIENT_ERROR: 400,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.IGNORED: 200,
    OutcomeKind.DEPENDENCY_FAILURE: 500,
}


@dataclass(frozen=True)
class CommandOutcome:
    """
    Result of handling one inbound chat command.

    retryable is only meaningful for DEPENDENCY_FAILURE: True when the failure
    happened before any local mutation was committed, so a redelivery of the
    same message can safely run the command again.
    """
    kind: OutcomeKind
    code: str
    message: str
    transaction_id: Optional[UUID] = None
    retryable: bool = False

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]

    @property
    def is_error(self) -> bool:
        return self.http_status >= 400

    @classmethod
    def completed(cls, code: str, message: str, transaction_id: Optional[UUID] = None) -> "CommandOutcome":
        return cls(OutcomeKind.COMPLETED, code, message, transaction_id=transaction_id)

    @classmethod
    def client_error(cls, code: str, message: str) -> "CommandOutcome":
        return cls(OutcomeKind.CLIENT_ERROR, code, message)

    @classmethod
    def not_found(cls, code: str, message: str) -> "CommandOutcome":
        return cls(OutcomeKind.NOT_FOUND, code, message)

    @classmethod
    def ignored(cls, code: str, message: str) -> "CommandOutcome":
        return cls(OutcomeKind.IGNORED, code, message)

    @classmethod
    def dependency_failure(
        cls,
        code: str,
        message: str,
        retryable: bool = False,
        transaction_id: Optional[UUID] = None,
    ) -> "CommandOutcome":
        return cls(OutcomeKind.DEPENDENCY_FAILURE, code, message, transaction_id=transaction_id, retryable=retryable)


class CallbackStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of handling one deposit completion callback"""
    status: CallbackStatus
    message: str
    transaction_id: Optional[UUID] = None

    @property
    def http_status(self) -> int:
        return 500 if self.status == CallbackStatus.ERROR else 200
