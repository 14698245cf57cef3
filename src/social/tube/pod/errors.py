"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and, where the wire format defines one,
the ``error`` code placed in the response body. Messages follow the
``error-<area>-<number> <description>`` convention so log lines can be searched by code.
"""

from typing import Optional


class PodAccessError(Exception):
    """Base class for expected failures raised by the access core."""

    status: int = 500
    error: Optional[str] = None

    def __init__(self, message: str, error: Optional[str] = None) -> None:
        super().__init__(message)
        if error is not None:
            self.error = error


class ClientAuthError(PodAccessError):
    """The calling application could not be authenticated."""

    status = 400
    error = "invalid_client"

    @staticmethod
    def client_missing() -> "ClientAuthError":
        return ClientAuthError("error-client-1000 Client credentials missing")

    @staticmethod
    def unknown_client() -> "ClientAuthError":
        return ClientAuthError("error-client-1001 Unknown client")

    @staticmethod
    def secret_mismatch() -> "ClientAuthError":
        return ClientAuthError("error-client-1002 Client secret mismatch")


class GrantError(PodAccessError):
    """The presented grant could not be honoured.

    Unknown usernames and wrong passwords deliberately produce the same error so that
    callers cannot tell which accounts exist.
    """

    status = 400
    error = "invalid_grant"

    @staticmethod
    def bad_credentials() -> "GrantError":
        return GrantError("error-grant-1000 Invalid username or password")

    @staticmethod
    def refresh_token_invalid() -> "GrantError":
        return GrantError("error-grant-1001 Refresh token unknown, revoked or expired")

    @staticmethod
    def unsupported_grant_type(grant_type: Optional[str]) -> "GrantError":
        return GrantError(f"error-grant-1002 Unsupported grant type: {grant_type}")

    @staticmethod
    def grant_type_not_allowed(grant_type: str) -> "GrantError":
        return GrantError(
            f"error-grant-1003 Client may not use grant type: {grant_type}"
        )

    @staticmethod
    def missing_parameter(name: str) -> "GrantError":
        return GrantError(f"error-grant-1004 Missing parameter: {name}")


class Unauthenticated(PodAccessError):
    """No valid bearer token was presented."""

    status = 401

    @staticmethod
    def token_missing() -> "Unauthenticated":
        return Unauthenticated("error-auth-1000 Bearer token missing or malformed")

    @staticmethod
    def token_invalid() -> "Unauthenticated":
        return Unauthenticated("error-auth-1001 Token unknown, revoked or expired")


class Forbidden(PodAccessError):
    """The token is valid but does not grant access to the targeted resource."""

    status = 403

    @staticmethod
    def capability_denied(capability: str) -> "Forbidden":
        return Forbidden(f"error-auth-1100 Capability denied: {capability}")

    @staticmethod
    def admin_required() -> "Forbidden":
        return Forbidden("error-auth-1101 Administrator role required")


class ValidationError(PodAccessError):
    """The request payload is malformed or would break an invariant."""

    status = 400
    error = "invalid_request"

    @staticmethod
    def invalid_payload(detail: str = "") -> "ValidationError":
        return ValidationError(f"error-validation-1000 Invalid payload {detail}".strip())

    @staticmethod
    def username_taken(username: str) -> "ValidationError":
        return ValidationError(
            f"error-validation-1001 Username already exists: {username}",
            error="username_taken",
        )

    @staticmethod
    def invalid_sort(sort: str) -> "ValidationError":
        return ValidationError(
            f"error-validation-1002 Unsupported sort: {sort}", error="invalid_sort"
        )

    @staticmethod
    def unknown_author(user_id: int) -> "ValidationError":
        return ValidationError(f"error-validation-1003 Unknown author: {user_id}")

    @staticmethod
    def invalid_peer(address: str) -> "ValidationError":
        return ValidationError(
            f"error-validation-1004 Invalid pod address: {address}", error="invalid_pod"
        )

    @staticmethod
    def client_exists(client_id: str) -> "ValidationError":
        return ValidationError(
            f"error-validation-1005 Client already exists: {client_id}",
            error="client_exists",
        )

    @staticmethod
    def unsupported_media(filename: str) -> "ValidationError":
        return ValidationError(
            f"error-validation-1006 Unsupported video file: {filename}",
            error="invalid_video_file",
        )


class NotFound(PodAccessError):
    """The addressed resource does not exist."""

    status = 404

    @staticmethod
    def user(user_id: int) -> "NotFound":
        return NotFound(f"error-notfound-1000 User not found: {user_id}")

    @staticmethod
    def video(guid: str) -> "NotFound":
        return NotFound(f"error-notfound-1001 Video not found: {guid}")

    @staticmethod
    def client(client_id: str) -> "NotFound":
        return NotFound(f"error-notfound-1002 Client not found: {client_id}")

    @staticmethod
    def pod(host: str) -> "NotFound":
        return NotFound(f"error-notfound-1003 Pod relationship not found: {host}")
