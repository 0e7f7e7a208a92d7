from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlencode

from taskhub.domain.entities import UserIdentity

DASHBOARD_PATH = "/dashboard"
LOGIN_PATH = "/login"
SIGNUP_PATH = "/signup"


@dataclass(frozen=True)
class Redirect:
    location: str


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def guard_route(path: str, user: Optional[UserIdentity], request_url: str | None = None) -> Redirect | None:
    """Decide whether a view request must be redirected.

    Protected dashboard views need an identity; the login and signup views
    are only for anonymous visitors. ``None`` means serve the request.
    """
    if _under(path, DASHBOARD_PATH) and user is None:
        callback = request_url or path
        query = urlencode({"callbackUrl": callback}, quote_via=quote)
        return Redirect(f"{LOGIN_PATH}?{query}")

    if (_under(path, LOGIN_PATH) or _under(path, SIGNUP_PATH)) and user is not None:
        return Redirect(DASHBOARD_PATH)

    return None
