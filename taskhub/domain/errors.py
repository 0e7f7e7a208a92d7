from __future__ import annotations


class TaskHubError(Exception):
    """Base class for errors surfaced to callers of the task core."""

    user_message = "Something went wrong, please try again."


class ConfigError(TaskHubError):
    pass


class Unauthorized(TaskHubError):
    user_message = "Please log in to continue."

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ValidationError(TaskHubError):
    """Input failed one or more field constraints.

    ``errors`` maps a field name to its message; the messages are meant to be
    shown to the user as-is.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("Validation error: " + ", ".join(self.errors.values()))

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return ", ".join(self.errors.values())


class DuplicateEmail(ValidationError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__({"email": "Email is already registered"})


class StorageError(TaskHubError):
    """The backing store failed. The cause is chained, never shown."""
