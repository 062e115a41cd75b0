from __future__ import annotations


class NFeParseError(ValueError):
    """The XML could not be read as an NF-e (malformed, or a mandatory tag is missing)."""


class RateServiceError(RuntimeError):
    """The rate service answered with an HTTP error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
