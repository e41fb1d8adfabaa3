"""Error taxonomy for the attempt engine.

Services raise these directly; FastAPI renders them like any other
``HTTPException`` (``{"detail": ...}`` with the matching status code).
Expiry is deliberately absent: an expired deadline finalizes the attempt
instead of failing the request.
"""
from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Unknown question/option id or malformed payload."""

    def __init__(self, detail: str = "Invalid request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    """Attempt or exam does not exist."""

    def __init__(self, detail: str = "Not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AccessDenied(HTTPException):
    """Ownership mismatch or failed entitlement check."""

    def __init__(self, detail: str = "Access denied") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class Conflict(HTTPException):
    """Mutation attempted on a terminal attempt."""

    def __init__(self, detail: str = "Attempt is already submitted") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
