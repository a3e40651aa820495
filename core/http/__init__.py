"""HTTP client utilities and session management."""

from core.http.blocklist import DEFAULT_FORBIDDEN_HOSTS, is_forbidden_host
from core.http.request import request_json
from core.http.retry import linear_retrying
from core.http.session import cleanup_session, get_session

__all__ = [
    "DEFAULT_FORBIDDEN_HOSTS",
    "cleanup_session",
    "get_session",
    "is_forbidden_host",
    "linear_retrying",
    "request_json",
]
