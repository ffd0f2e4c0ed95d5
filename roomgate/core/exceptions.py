# roomgate/core/exceptions.py

from fastapi import HTTPException, status


# Base Exception
class BaseAPIException(HTTPException):
    """Base class for all custom API exceptions."""
    kind = "InternalError"
    retryable = False

    def __init__(self, status_code: int, detail: str, headers: dict = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


# Error kinds
class NotFoundException(BaseAPIException):
    """A room, membership or user is absent or soft-deleted."""
    kind = "NotFound"

    def __init__(self, detail="Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class ForbiddenException(BaseAPIException):
    """Authenticated, but lacking the required capability."""
    kind = "Forbidden"

    def __init__(self, detail="Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class ValidationException(BaseAPIException):
    """Missing or malformed input fields."""
    kind = "ValidationError"

    def __init__(self, detail="Input data validation failed"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class ConflictException(BaseAPIException):
    """Uniqueness violation."""
    kind = "Conflict"

    def __init__(self, detail="Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class InvalidStateException(BaseAPIException):
    """Action not valid for the current lifecycle state."""
    kind = "InvalidState"

    def __init__(self, detail="Action not allowed in the current state"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


# Authentication
class InvalidTokenException(BaseAPIException):
    """Exception raised when a token is invalid."""
    kind = "Unauthorized"

    def __init__(self, detail="Invalid token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


# Users & Rooms
class UserNotFoundException(NotFoundException):
    def __init__(self, detail="User not found"):
        super().__init__(detail=detail)

class RoomNotFoundException(NotFoundException):
    def __init__(self, detail="Room not found"):
        super().__init__(detail=detail)

class InvalidJoinCodeException(NotFoundException):
    def __init__(self, detail="Invalid join code"):
        super().__init__(detail=detail)

class ArchivedRoomException(ForbiddenException):
    def __init__(self, detail="Room is archived"):
        super().__init__(detail=detail)

class JoinCodeConflictException(ConflictException):
    """Every join code tried for a new room was taken by a concurrent insert."""
    retryable = True

    def __init__(self, detail="Could not assign a unique join code, please retry"):
        super().__init__(detail=detail)


# Memberships
class MembershipNotFoundException(NotFoundException):
    def __init__(self, detail="Membership not found"):
        super().__init__(detail=detail)

class AlreadyMemberException(ConflictException):
    def __init__(self, detail="Already a member of this room"):
        super().__init__(detail=detail)


# Content
class PostNotFoundException(NotFoundException):
    def __init__(self, detail="Post not found"):
        super().__init__(detail=detail)


# External collaborators
class AssetUploadFailedException(BaseAPIException):
    """The asset storage did not accept the uploaded file."""
    kind = "UpstreamError"

    def __init__(self, detail="Failed to upload cover image"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
