"""OAuth client registry.

Clients identify calling applications. They are provisioned once (by the CLI or an
administrator) and are immutable afterwards; the only mutation besides registration is
removal, which also deletes every token the client issued.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from social.tube.pod.errors import ClientAuthError, GrantError, NotFound, ValidationError
from social.tube.pod.model.base import utcnow
from social.tube.pod.model.clients import DEFAULT_GRANT_TYPES, Client
from social.tube.pod.model.tokens import Token
from social.tube.pod.oauth.passwords import (
    check_client_secret,
    generate_secret,
    hash_client_secret,
)

logger = logging.getLogger(__name__)


def generate_client_id() -> str:
    return str(ULID()).lower()


def generate_client_secret() -> str:
    return generate_secret(32)


async def register(
    database_session: AsyncSession,
    client_id: str,
    secret: str,
    name: str = "",
    grant_types: str = DEFAULT_GRANT_TYPES,
    now: Optional[datetime] = None,
) -> Client:
    """Register a client. The secret is stored as a digest only."""
    now = now or utcnow()
    client = Client(
        client_id=client_id,
        secret_hash=hash_client_secret(secret),
        name=name,
        grant_types=grant_types,
        created_at=now,
    )
    try:
        async with database_session.begin():
            existing = await database_session.get(Client, client_id)
            if existing is not None:
                raise ValidationError.client_exists(client_id)
            database_session.add(client)
    except IntegrityError as e:
        raise ValidationError.client_exists(client_id) from e

    logger.info("Registered OAuth client %s", client_id)
    return client


async def check_client(
    database_session: AsyncSession,
    client_id: Optional[str],
    secret: Optional[str],
    grant_type: Optional[str] = None,
) -> Client:
    """
    Authenticate a client inside the caller's transaction.

    Raises:
        ClientAuthError: Missing credentials, unknown client or wrong secret
        GrantError: The client is not allowed to use ``grant_type``
    """
    if not client_id or not secret:
        raise ClientAuthError.client_missing()

    client = await database_session.get(Client, client_id)
    if client is None:
        raise ClientAuthError.unknown_client()

    if not check_client_secret(secret, client.secret_hash):
        raise ClientAuthError.secret_mismatch()

    if grant_type is not None and not client.allows_grant_type(grant_type):
        raise GrantError.grant_type_not_allowed(grant_type)

    return client


async def validate(database_session: AsyncSession, client_id: str, secret: str) -> bool:
    async with database_session.begin():
        await check_client(database_session, client_id, secret)
    return True


async def get_client(database_session: AsyncSession, client_id: str) -> Client:
    async with database_session.begin():
        client = await database_session.get(Client, client_id)
    if client is None:
        raise NotFound.client(client_id)
    return client


async def list_clients(database_session: AsyncSession) -> List[Client]:
    async with database_session.begin():
        stmt = select(Client).order_by(Client.created_at.asc(), Client.client_id.asc())
        return list((await database_session.scalars(stmt)).all())


async def remove(database_session: AsyncSession, client_id: str) -> None:
    """Remove a client and every token it issued, atomically."""
    async with database_session.begin():
        client = await database_session.get(Client, client_id)
        if client is None:
            raise NotFound.client(client_id)
        await database_session.execute(delete(Token).where(Token.client_id == client_id))
        await database_session.delete(client)

    logger.info("Removed OAuth client %s", client_id)
