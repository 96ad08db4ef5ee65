"""
Typed errors raised by the ledger and auth code.

They subclass HTTPException so FastAPI turns them into responses without a
custom handler. "Not yours" and "does not exist" both surface as NotFound.
"""
from fastapi import HTTPException, status


class NotFound(HTTPException):
    def __init__(self, resource: str, resource_id: object | None = None):
        detail = f"{resource} with id '{resource_id}' not found" if resource_id is not None else f"{resource} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, resource: str, field: str | None = None, value: object | None = None):
        if field and value is not None:
            detail = f"{resource} with {field} '{value}' already exists"
        else:
            detail = f"{resource} already exists"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidCredentials(HTTPException):
    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class AttemptsExhausted(HTTPException):
    def __init__(self, detail: str = "Too many attempts. Please request a new code."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
