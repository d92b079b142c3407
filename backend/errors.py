from __future__ import annotations


class AppError(Exception):
    """Base class for failures surfaced to API clients.

    Subclasses pin the HTTP status; ``code`` defaults to the class name so
    clients can tell e.g. ``InvalidAmount`` from ``InvalidDate`` without
    parsing the message.
    """

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request."


class InvalidAmount(ValidationError):
    default_message = "A valid positive amount is required."


class InvalidType(ValidationError):
    default_message = "Valid type (expense/income) is required."


class MissingCategory(ValidationError):
    default_message = "Category is required."


class InvalidDate(ValidationError):
    default_message = "Invalid date format."


class NoOp(ValidationError):
    default_message = "No valid updates provided."


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required."


class Unauthenticated(AuthenticationError):
    default_message = "No token provided, authorization denied."


class InvalidToken(AuthenticationError):
    default_message = "Invalid token."


class UserNotFound(AuthenticationError):
    default_message = "User not found."


class InvalidCredentials(AuthenticationError):
    default_message = "Invalid email or password."


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied."


class AdminRequired(AuthorizationError):
    default_message = "Access denied. Admin privileges required."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found."


class CategoryMismatch(NotFoundError):
    default_message = "Category not found or type mismatch."


class ConflictError(AppError):
    status_code = 400
    default_message = "Resource already exists."


class DuplicateCategory(ConflictError):
    default_message = "Category already exists."


class DuplicateEmail(ConflictError):
    default_message = "Email already registered."


class CategoryInUse(ConflictError):
    default_message = "Category type cannot change while transactions of the other type use it."


class InternalError(AppError):
    status_code = 500
    default_message = "Server error"
