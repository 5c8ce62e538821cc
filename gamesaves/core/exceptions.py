"""Custom exceptions for the application.

Provides standardized error handling across the storage layer and the
route handlers.
"""
from typing import Optional

from fastapi import HTTPException, status


class AppException(Exception):
    """Base exception for application errors."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class StoreException(AppException):
    """Save store related exceptions."""
    pass


class GameNotFoundError(StoreException):
    """Raised when a game or one of its saves is not found."""

    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, game_id: str, save_id: Optional[str] = None):
        details = {"game_id": game_id}
        message = f"Game not found: {game_id}"
        if save_id is not None:
            details["save_id"] = save_id
            message = f"Game {game_id} has no save {save_id}"
        super().__init__(
            message=message,
            code="GAME_NOT_FOUND",
            details=details
        )


class SaveConflictError(StoreException):
    """Raised when a write collides with an existing primary key.

    Covers a duplicate save id in a game's chain and a second result
    record for the same game.
    """

    http_status = status.HTTP_409_CONFLICT

    def __init__(self, operation: str, message: str, game_id: Optional[str] = None):
        super().__init__(
            message=message,
            code="SAVE_CONFLICT",
            details={"operation": operation, "game_id": game_id} if game_id else {"operation": operation}
        )


class UnsupportedOperationError(StoreException):
    """Raised when a backend variant does not implement an operation."""

    http_status = status.HTTP_501_NOT_IMPLEMENTED

    def __init__(self, operation: str, backend: str):
        super().__init__(
            message=f"{operation} is not supported by the {backend} backend",
            code="UNSUPPORTED_OPERATION",
            details={"operation": operation, "backend": backend}
        )


class StorageError(StoreException):
    """Raised when the storage medium fails (I/O or connection errors)."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            message=f"{operation} failed: {message}",
            code="STORAGE_ERROR",
            details={"operation": operation}
        )


# HTTP Exception helpers
def raise_not_found(message: str = "Resource not found"):
    """Raise a 404 Not Found exception."""
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
