from typing import Optional


class MentorError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(MentorError):
    status_code = 400


class NotFound(MentorError):
    status_code = 404


class UpstreamError(MentorError):
    """The reasoning service answered with a non-success status or not at all."""

    def __init__(self, status: Optional[int], reason: str):
        if status is None:
            message = f"Reasoning service error: {reason}"
        else:
            message = f"Reasoning service error: {status} {reason}"
        super().__init__(message)
        self.status = status
        self.reason = reason


class UpstreamContractViolation(MentorError):
    """The reasoning service answered 200 but the body is not what we asked for."""


class StorageError(MentorError):
    pass


class MissingCredential(Exception):
    def __init__(self, name: str):
        super().__init__(f"{name} environment variable is required")
        self.name = name
