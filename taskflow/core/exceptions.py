"""
Custom exceptions for Taskflow API.
Provides consistent error handling across the application.
"""
from fastapi import HTTPException, status


class TaskflowException(Exception):
    """Base exception for Taskflow"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(TaskflowException):
    """Resource not found"""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)


class ConflictError(TaskflowException):
    """Resource already exists or a unique value collided"""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, resource: str = "Resource", field: str = None, value: str = None):
        if field and value:
            message = f"{resource} with {field} '{value}' already exists"
        elif field:
            message = f"{resource} {field} already exists"
        else:
            message = f"{resource} already exists"
        super().__init__(message)


class UnauthorizedError(TaskflowException):
    """Authentication failed"""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class ValidationError(TaskflowException):
    """Validation failed"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Validation failed", field: str = None):
        if field:
            message = f"Validation failed for field '{field}': {message}"
        super().__init__(message)


class TokenExpiredError(UnauthorizedError):
    """Token has expired"""
    def __init__(self, token_type: str = "Token"):
        super().__init__(f"{token_type} has expired")


class TokenInvalidError(UnauthorizedError):
    """Token is invalid"""
    def __init__(self, token_type: str = "Token"):
        super().__init__(f"{token_type} is invalid")


class TokenMalformedError(UnauthorizedError):
    """Token could not be decoded"""
    def __init__(self, token_type: str = "Token"):
        super().__init__(f"{token_type} is malformed")


class TokenIssueError(RuntimeError):
    """A unique token could not be stored. A server fault, never a client error."""
    pass


# HTTP Exception helpers
def raise_not_found(resource: str = "Resource", resource_id: str = None):
    """Raise 404 HTTPException"""
    err = NotFoundError(resource, resource_id)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=err.message)


def raise_already_exists(resource: str = "Resource", field: str = None, value: str = None):
    """Raise 409 HTTPException for duplicate"""
    err = ConflictError(resource, field, value)
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=err.message)


def raise_unauthorized(message: str = "Could not validate credentials"):
    """Raise 401 HTTPException"""
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def raise_bad_request(message: str = "Validation failed", field: str = None):
    """Raise 400 HTTPException"""
    err = ValidationError(message, field)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err.message)
