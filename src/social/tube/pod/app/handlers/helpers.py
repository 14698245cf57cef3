"""
Authorization Guard

Every protected handler calls ``guard`` before touching any state. The guard enforces the
following policies:

* The request must carry an ``Authorization: Bearer <access token>`` header, and the
  token must be known, unrevoked and unexpired. Otherwise the request fails with
  Unauthenticated (401) before any business logic runs.
* When the targeted resource has an owner, the owner's user id is loaded and handed to
  the capability predicate together with the request context.
* The capability predicate decides. A False answer fails with Forbidden (403), even for
  an otherwise valid token.

Capabilities are plain predicates ``(RequestContext, owner_id) -> bool`` and compose with
``any_of``, so each handler states its rule in one place instead of re-implementing it.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession

from social.tube.pod.app.config import MetricsClientAppKey
from social.tube.pod.errors import Forbidden, Unauthenticated
from social.tube.pod.model.users import ROLE_ADMIN
from social.tube.pod.oauth import tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """
    Identity established for one request.

    Attributes:
        user_id: Id of the user owning the presented token
        username: That user's username
        role: That user's role at validation time
        client_id: Client the token was issued to
        access_token: The presented access token
    """

    user_id: int
    username: str
    role: str
    client_id: str
    access_token: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


Capability = Callable[[RequestContext, Optional[int]], bool]
OwnerLoader = Callable[[AsyncSession], Awaitable[int]]


def is_authenticated(context: RequestContext, owner_id: Optional[int] = None) -> bool:
    return True


def is_owner(context: RequestContext, owner_id: Optional[int] = None) -> bool:
    return owner_id is not None and owner_id == context.user_id


def is_admin(context: RequestContext, owner_id: Optional[int] = None) -> bool:
    return context.is_admin


def any_of(*capabilities: Capability) -> Capability:
    def check(context: RequestContext, owner_id: Optional[int] = None) -> bool:
        return any(capability(context, owner_id) for capability in capabilities)

    check.__name__ = "any_of(" + ", ".join(c.__name__ for c in capabilities) + ")"
    return check


def bearer_token(request: web.Request) -> Optional[str]:
    authorization: Optional[str] = request.headers.get("Authorization")
    if authorization is None or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


async def guard(
    database_session: AsyncSession,
    request: web.Request,
    capability: Capability = is_authenticated,
    owner_of: Optional[OwnerLoader] = None,
) -> RequestContext:
    """
    Authenticate the request and check the capability.

    Args:
        database_session: Session used for the token and owner lookups
        request: The incoming request
        capability: Predicate deciding whether the authenticated user may proceed
        owner_of: Loads the owning user id of the targeted resource (raises NotFound)

    Raises:
        Unauthenticated: Missing, malformed, unknown, revoked or expired token
        NotFound: ``owner_of`` could not find the resource
        Forbidden: The capability predicate refused
    """
    metrics_client = request.app[MetricsClientAppKey]

    access_token = bearer_token(request)
    if access_token is None:
        metrics_client.increment("auth.rejected", 1, tag_dict={"reason": "missing"})
        raise Unauthenticated.token_missing()

    try:
        token, user = await tokens.authenticate(database_session, access_token)
    except Unauthenticated:
        metrics_client.increment("auth.rejected", 1, tag_dict={"reason": "invalid"})
        raise

    context = RequestContext(
        user_id=user.id,
        username=user.username,
        role=user.role,
        client_id=token.client_id,
        access_token=access_token,
    )

    owner_id: Optional[int] = None
    if owner_of is not None:
        owner_id = await owner_of(database_session)

    if not capability(context, owner_id):
        name = getattr(capability, "__name__", "capability")
        logger.info("User %s denied %s on %s", context.user_id, name, request.path)
        metrics_client.increment("auth.rejected", 1, tag_dict={"reason": "forbidden"})
        raise Forbidden.capability_denied(name)

    return context
