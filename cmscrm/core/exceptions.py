"""Custom exception classes for the admin backend."""

from typing import Optional

from fastapi import HTTPException, status


class CMSCRMError(Exception):
    """Base exception for the admin backend."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(CMSCRMError):
    """Raised when there is no valid, active principal."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(CMSCRMError):
    """Raised when an authenticated principal lacks a permission."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "Insufficient permissions",
        required_permission: Optional[str] = None,
    ):
        self.required_permission = required_permission
        super().__init__(message)


class ResourceNotFoundError(CMSCRMError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(CMSCRMError):
    """Raised when a unique key already exists or a delete is blocked by references."""
    status_code = status.HTTP_409_CONFLICT


class ValidationError(CMSCRMError):
    """Raised when input validation fails."""
    pass


class StoreUnavailableError(CMSCRMError):
    """Raised when the database collaborator fails. Never retried here."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# HTTP exception shortcuts
def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
