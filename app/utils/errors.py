"""
Domain exceptions raised by services and translated to HTTP responses by the routers.
"""


class LabRecordsError(Exception):
    """Base class for all domain errors."""


class DuplicateUserError(LabRecordsError):
    """A user with the given email is already registered."""


class InvalidCredentialsError(LabRecordsError):
    """Email/password pair did not authenticate.

    Raised with the same message whether the email is unknown or the
    password is wrong.
    """

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class InvalidTokenError(LabRecordsError):
    """Bearer token failed signature, expiry or claim checks."""


class StaleSectionError(LabRecordsError):
    """A section update carried a version older than the stored one."""

    def __init__(self, section_id: str, expected: int, current: int) -> None:
        self.section_id = section_id
        self.expected = expected
        self.current = current
        super().__init__(
            f"Section {section_id} was modified (expected version {expected}, current {current})"
        )


class SectionContentError(LabRecordsError):
    """Section content does not decode for its section type."""


class UploadRejectedError(LabRecordsError):
    """An uploaded file failed the type or size checks."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        self.status_code = status_code
        super().__init__(message)
