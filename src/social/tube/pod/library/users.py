"""User directory.

Creates, reads, lists, updates and deletes local accounts. Deleting an account is a single
transaction that also deletes the account's videos and tokens, so no token or video ever
refers to a user that no longer exists.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social.tube.pod.errors import NotFound, ValidationError
from social.tube.pod.library.listing import Page, apply_sort
from social.tube.pod.model.base import utcnow
from social.tube.pod.model.tokens import Token
from social.tube.pod.model.users import ROLE_USER, ROLES, User
from social.tube.pod.model.videos import Video
from social.tube.pod.oauth.passwords import (
    DEFAULT_ITERATIONS,
    check_password,
    hash_password,
)

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 64
PASSWORD_MAX_LENGTH = 255

DEFAULT_SORT = "-createdDate"
SORT_FIELDS = {
    "username": User.username,
    "createdDate": User.created_at,
}


def check_username(username: str) -> str:
    if (
        not isinstance(username, str)
        or not username.strip()
        or len(username) > USERNAME_MAX_LENGTH
    ):
        raise ValidationError.invalid_payload("username")
    return username


def check_new_password(password: str) -> str:
    if (
        not isinstance(password, str)
        or not 0 < len(password) <= PASSWORD_MAX_LENGTH
    ):
        raise ValidationError.invalid_payload("password")
    return password


async def create(
    database_session: AsyncSession,
    username: str,
    password: str,
    role: str = ROLE_USER,
    iterations: int = DEFAULT_ITERATIONS,
    now: Optional[datetime] = None,
) -> User:
    """
    Create a user account.

    Raises:
        ValidationError: Malformed username, password or role, or the username is taken
    """
    check_username(username)
    check_new_password(password)
    if role not in ROLES:
        raise ValidationError.invalid_payload("role")

    user = User(
        username=username,
        password_hash=hash_password(password, iterations),
        role=role,
        created_at=now or utcnow(),
    )

    try:
        async with database_session.begin():
            stmt = select(User.id).where(User.username == username)
            if (await database_session.scalars(stmt)).first() is not None:
                raise ValidationError.username_taken(username)
            database_session.add(user)
    except IntegrityError as e:
        # A concurrent create won the race for the unique index.
        raise ValidationError.username_taken(username) from e

    logger.info("Created user %s (%s) with role %s", user.id, username, role)
    return user


async def get(database_session: AsyncSession, user_id: int) -> User:
    async with database_session.begin():
        user = await database_session.get(User, user_id)
    if user is None:
        raise NotFound.user(user_id)
    return user


async def get_by_username(
    database_session: AsyncSession, username: str
) -> Optional[User]:
    async with database_session.begin():
        stmt = select(User).where(User.username == username)
        return (await database_session.scalars(stmt)).first()


async def check_credentials(
    database_session: AsyncSession, username: Optional[str], password: Optional[str]
) -> Optional[User]:
    """
    Return the user matching a username/password pair, or None.

    Runs inside the caller's transaction and locks the user row until it ends, so an
    account deletion cannot interleave with whatever the caller writes for this user.
    Unknown usernames and wrong passwords are indistinguishable to the caller.
    """
    if not username or not password:
        return None
    stmt = select(User).where(User.username == username).with_for_update()
    user: Optional[User] = (await database_session.scalars(stmt)).first()
    if user is None or not check_password(password, user.password_hash):
        return None
    return user


async def list_users(
    database_session: AsyncSession,
    start: int = 0,
    count: int = 15,
    sort: Optional[str] = None,
) -> Page[User]:
    """
    List users ordered by ``sort`` (``username`` or ``createdDate``, ``-`` for descending).

    The total and the page are read in one transaction.
    """
    stmt = apply_sort(select(User), sort or DEFAULT_SORT, SORT_FIELDS, User.id)
    stmt = stmt.offset(start).limit(count)

    async with database_session.begin():
        total = await database_session.scalar(select(func.count()).select_from(User))
        users = list((await database_session.scalars(stmt)).all())

    return Page(total=total or 0, items=users)


async def update_password(
    database_session: AsyncSession,
    user_id: int,
    new_password: str,
    iterations: int = DEFAULT_ITERATIONS,
) -> User:
    """
    Replace the stored password hash.

    Tokens issued before the change stay valid until they expire or are revoked.
    """
    check_new_password(new_password)
    async with database_session.begin():
        user = await database_session.get(User, user_id)
        if user is None:
            raise NotFound.user(user_id)
        user.password_hash = hash_password(new_password, iterations)

    logger.info("Updated password for user %s", user_id)
    return user


async def delete_user(database_session: AsyncSession, user_id: int) -> List[str]:
    """
    Delete a user together with its videos and tokens.

    The cascade runs in one transaction; if any step fails nothing is deleted.

    Returns:
        The file references of the deleted videos, so stored media can be discarded
        once the transaction has committed.
    """
    async with database_session.begin():
        stmt = select(User).where(User.id == user_id).with_for_update()
        user = (await database_session.scalars(stmt)).first()
        if user is None:
            raise NotFound.user(user_id)

        file_refs_stmt = select(Video.file_ref).where(Video.author_id == user_id)
        file_refs = list((await database_session.scalars(file_refs_stmt)).all())

        await database_session.execute(delete(Video).where(Video.author_id == user_id))
        await database_session.execute(delete(Token).where(Token.user_id == user_id))
        await database_session.delete(user)

    logger.info(
        "Deleted user %s with %d video(s) and all of its tokens", user_id, len(file_refs)
    )
    return file_refs
