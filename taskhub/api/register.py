from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from taskhub.auth.service import AuthService
from taskhub.domain.errors import DuplicateEmail, TaskHubError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    status: int
    body: dict[str, Any] = field(default_factory=dict)


def handle_register(auth: AuthService, payload: Any) -> ApiResponse:
    """Signup endpoint: ``{name, email, password}`` in, public user fields out."""
    if not isinstance(payload, Mapping):
        return ApiResponse(400, {"message": "Missing required fields"})

    name = payload.get("name")
    email = payload.get("email")
    password = payload.get("password")
    if not name or not email or not password:
        return ApiResponse(400, {"message": "Missing required fields"})
    if not all(isinstance(value, str) for value in (name, email, password)):
        return ApiResponse(400, {"message": "Name, email and password must be text"})

    try:
        user = auth.register(name=name, email=email, password=password)
    except DuplicateEmail as exc:
        return ApiResponse(409, {"message": exc.user_message})
    except ValidationError as exc:
        return ApiResponse(400, {"message": exc.user_message, "errors": exc.errors})
    except TaskHubError as exc:
        return ApiResponse(500, {"message": exc.user_message})
    except Exception:  # noqa: BLE001
        logger.exception("Registration failed")
        return ApiResponse(500, {"message": TaskHubError.user_message})

    return ApiResponse(201, {"user": {"id": user.id, "name": user.name, "email": user.email}})
