"""Typed failures of the gasless transfer flow."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MALFORMED_INTENT = "MalformedIntent"
    CHAIN_READ_ERROR = "ChainReadError"
    FUNDING_REQUEST_REJECTED = "FundingRequestRejected"
    FUNDING_TIMEOUT = "FundingTimeout"
    SIGNER_REJECTED = "SignerRejected"
    SUBMISSION_ERROR = "SubmissionError"
    RELAY_ERROR = "RelayError"


class GaslessFlowError(RuntimeError):
    """Base class for every failure that aborts a run.

    ``state`` is filled in by the orchestrator with the flow state that failed.
    """

    kind: ErrorKind

    def __init__(self, message: str, *, state: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.state = state

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "state": self.state}


class MalformedIntent(GaslessFlowError):
    kind = ErrorKind.MALFORMED_INTENT


class ChainReadError(GaslessFlowError):
    kind = ErrorKind.CHAIN_READ_ERROR


class FundingRequestRejected(GaslessFlowError):
    kind = ErrorKind.FUNDING_REQUEST_REJECTED

    def __init__(self, message: str, *, status_code: Optional[int] = None, state: Optional[str] = None) -> None:
        super().__init__(message, state=state)
        self.status_code = status_code


class FundingTimeout(GaslessFlowError):
    kind = ErrorKind.FUNDING_TIMEOUT

    def __init__(self, message: str, *, attempts: int = 0, state: Optional[str] = None) -> None:
        super().__init__(message, state=state)
        self.attempts = attempts


class SignerRejected(GaslessFlowError):
    kind = ErrorKind.SIGNER_REJECTED


class SubmissionError(GaslessFlowError):
    """Broadcast failed after signing; the on-chain outcome may be unknown."""

    kind = ErrorKind.SUBMISSION_ERROR

    def __init__(self, message: str, *, tx_hash: Optional[str] = None, state: Optional[str] = None) -> None:
        super().__init__(message, state=state)
        self.tx_hash = tx_hash


class RelayError(GaslessFlowError):
    kind = ErrorKind.RELAY_ERROR

    def __init__(self, message: str, *, status_code: Optional[int] = None, state: Optional[str] = None) -> None:
        super().__init__(message, state=state)
        self.status_code = status_code
