"""
Facilitator error taxonomy
Every failure in verify/settle carries one of these kinds; the API maps kinds to HTTP statuses
"""

from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    DECODE_ERROR = "DECODE_ERROR"
    SCHEME_OR_NETWORK_MISMATCH = "SCHEME_OR_NETWORK_MISMATCH"
    FIELD_MISMATCH = "FIELD_MISMATCH"
    SIMULATION_FAILURE = "SIMULATION_FAILURE"
    SUBMISSION_FAILURE = "SUBMISSION_FAILURE"
    CONFLICT = "CONFLICT"
    SPONSOR_UNAVAILABLE = "SPONSOR_UNAVAILABLE"
    INTERNAL = "INTERNAL"


class FacilitatorError(Exception):
    """Base error; reason is the human-readable text returned to the caller"""

    kind = ErrorKind.INTERNAL

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MalformedRequestError(FacilitatorError):
    kind = ErrorKind.MALFORMED_REQUEST


class DecodeError(FacilitatorError):
    kind = ErrorKind.DECODE_ERROR


class ProtocolMismatchError(FacilitatorError):
    kind = ErrorKind.SCHEME_OR_NETWORK_MISMATCH


class FieldMismatchError(FacilitatorError):
    kind = ErrorKind.FIELD_MISMATCH


class SimulationError(FacilitatorError):
    kind = ErrorKind.SIMULATION_FAILURE


class SubmissionError(FacilitatorError):
    kind = ErrorKind.SUBMISSION_FAILURE


class ConflictError(FacilitatorError):
    kind = ErrorKind.CONFLICT


class SponsorUnavailableError(FacilitatorError):
    kind = ErrorKind.SPONSOR_UNAVAILABLE
