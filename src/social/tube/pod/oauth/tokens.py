"""
Token Service

Issues, refreshes, revokes and validates bearer tokens following the OAuth 2.0 resource
owner password credentials flow (RFC 6749 section 4.3) and the refresh token flow
(section 6), for a pod that has no third-party redirect flow.

Token lifecycle:
1. ``issue_by_password`` authenticates the client, then the user, and inserts a new
   access/refresh pair. The access token is short lived; the refresh token lives longer.
2. ``issue_by_refresh`` exchanges an unrevoked, unexpired refresh token issued to the
   same client for a new pair and revokes the old one (refresh tokens are single use).
3. ``revoke`` stamps the pair as revoked (logout). Revoking twice is harmless.
4. ``validate`` resolves an access token to its user, rejecting unknown, revoked and
   expired tokens.

Deleting a user deletes its tokens in the same transaction (see library.users), so a
token that validates always belongs to a live user.

Expiry comparisons happen in SQL so they behave identically on every dialect.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from social.tube.pod.errors import GrantError, Unauthenticated
from social.tube.pod.library.users import check_credentials
from social.tube.pod.model.base import utcnow
from social.tube.pod.model.tokens import Token
from social.tube.pod.model.users import User
from social.tube.pod.oauth.clients import check_client

logger = logging.getLogger(__name__)

GRANT_PASSWORD = "password"
GRANT_REFRESH_TOKEN = "refresh_token"
GRANT_TYPES = (GRANT_PASSWORD, GRANT_REFRESH_TOKEN)

TOKEN_BYTES = 32


def generate_token_value() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def _new_token(
    user_id: int,
    client_id: str,
    access_token_expiry: int,
    refresh_token_expiry: int,
    now: datetime,
) -> Token:
    return Token(
        guid=str(ULID()),
        access_token=generate_token_value(),
        refresh_token=generate_token_value(),
        user_id=user_id,
        client_id=client_id,
        created_at=now,
        access_token_expires_at=now + timedelta(seconds=access_token_expiry),
        refresh_token_expires_at=now + timedelta(seconds=refresh_token_expiry),
        revoked_at=None,
    )


async def issue_by_password(
    database_session: AsyncSession,
    client_id: Optional[str],
    client_secret: Optional[str],
    username: Optional[str],
    password: Optional[str],
    access_token_expiry: int = 3600,
    refresh_token_expiry: int = 1209600,
    now: Optional[datetime] = None,
) -> Token:
    """
    Issue a token pair for a username/password.

    Raises:
        ClientAuthError: The client is unknown or the secret is wrong (checked first)
        GrantError: The username is unknown or the password is wrong
    """
    now = now or utcnow()

    try:
        async with database_session.begin():
            client = await check_client(
                database_session, client_id, client_secret, GRANT_PASSWORD
            )

            user = await check_credentials(database_session, username, password)
            if user is None:
                raise GrantError.bad_credentials()

            token = _new_token(
                user.id, client.client_id, access_token_expiry, refresh_token_expiry, now
            )
            database_session.add(token)
    except IntegrityError as e:
        # The user was deleted between the credential check and the insert.
        raise GrantError.bad_credentials() from e

    logger.info("Issued token %s to user %s via client %s", token.guid, user.id, client.client_id)
    return token


async def issue_by_refresh(
    database_session: AsyncSession,
    client_id: Optional[str],
    client_secret: Optional[str],
    refresh_token: Optional[str],
    access_token_expiry: int = 3600,
    refresh_token_expiry: int = 1209600,
    now: Optional[datetime] = None,
) -> Token:
    """
    Exchange a refresh token for a new pair and revoke the old pair.

    Raises:
        ClientAuthError: The client is unknown or the secret is wrong
        GrantError: The refresh token is unknown, revoked, expired or was issued to
            another client
    """
    now = now or utcnow()

    try:
        async with database_session.begin():
            client = await check_client(
                database_session, client_id, client_secret, GRANT_REFRESH_TOKEN
            )

            if not refresh_token:
                raise GrantError.refresh_token_invalid()

            previous_stmt = select(Token).where(
                Token.refresh_token == refresh_token,
                Token.client_id == client.client_id,
                Token.revoked_at.is_(None),
                Token.refresh_token_expires_at > now,
            )
            previous: Optional[Token] = (
                await database_session.scalars(previous_stmt)
            ).first()
            if previous is None:
                raise GrantError.refresh_token_invalid()

            # Only the request whose update flips revoked_at may issue the new pair.
            result = await database_session.execute(
                update(Token)
                .where(Token.guid == previous.guid, Token.revoked_at.is_(None))
                .values(revoked_at=now)
            )
            if result.rowcount != 1:
                raise GrantError.refresh_token_invalid()

            token = _new_token(
                previous.user_id,
                client.client_id,
                access_token_expiry,
                refresh_token_expiry,
                now,
            )
            database_session.add(token)
    except IntegrityError as e:
        raise GrantError.refresh_token_invalid() from e

    logger.info("Refreshed token %s into %s", previous.guid, token.guid)
    return token


async def revoke(
    database_session: AsyncSession, access_token: str, now: Optional[datetime] = None
) -> None:
    """Revoke the pair holding ``access_token``. Already revoked or unknown is a no-op."""
    now = now or utcnow()
    async with database_session.begin():
        await database_session.execute(
            update(Token)
            .where(Token.access_token == access_token, Token.revoked_at.is_(None))
            .values(revoked_at=now)
        )


async def authenticate(
    database_session: AsyncSession, access_token: Optional[str], now: Optional[datetime] = None
) -> Tuple[Token, User]:
    """
    Resolve an access token to its token row and owning user.

    Raises:
        Unauthenticated: The token is missing, unknown, revoked or expired
    """
    if not access_token:
        raise Unauthenticated.token_missing()

    now = now or utcnow()
    stmt = (
        select(Token, User)
        .join(User, Token.user_id == User.id)
        .where(
            Token.access_token == access_token,
            Token.revoked_at.is_(None),
            Token.access_token_expires_at > now,
        )
    )
    async with database_session.begin():
        row = (await database_session.execute(stmt)).first()

    if row is None:
        raise Unauthenticated.token_invalid()
    return row[0], row[1]


async def validate(
    database_session: AsyncSession, access_token: Optional[str], now: Optional[datetime] = None
) -> User:
    _, user = await authenticate(database_session, access_token, now)
    return user


async def purge_expired(
    database_session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """Delete pairs that were revoked or whose refresh window has closed."""
    now = now or utcnow()
    async with database_session.begin():
        result = await database_session.execute(
            delete(Token).where(
                or_(Token.revoked_at.is_not(None), Token.refresh_token_expires_at <= now)
            )
        )
    return result.rowcount or 0
