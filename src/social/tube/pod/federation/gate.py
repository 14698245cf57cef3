"""
Federation Gate

Opens and closes relationships with peer pods. Callers reach this module only through the
authorization guard, so every transition here happens on behalf of an authenticated user.

State transitions for a peer:
- absent or terminated -> pending -> active      (peer accepted the handshake)
- absent or terminated -> pending -> terminated  (peer refused, was unreachable or errored)
- pending or active    -> terminated             (quit)

The handshake is network I/O and never runs while a database transaction is open; the
pending state is committed before the peer is contacted.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import sentry_sdk
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from social.tube.pod.errors import NotFound, ValidationError
from social.tube.pod.federation.handshake import PeerHandshake
from social.tube.pod.model.base import utcnow
from social.tube.pod.model.pods import (
    LIVE_STATES,
    STATE_ACTIVE,
    STATE_PENDING,
    STATE_TERMINATED,
    PodRelationship,
)

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    """
    Reduce a peer address to ``scheme://host[:port]``.

    Raises:
        ValidationError: Not an http(s) URL with a hostname
    """
    parsed = urlparse((address or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError.invalid_peer(address)
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        raise ValidationError.invalid_peer(address)
    host = parsed.hostname.lower()
    if parsed.port is not None:
        host = f"{host}:{parsed.port}"
    return f"{parsed.scheme}://{host}"


async def _set_state(
    database_session: AsyncSession, host: str, state: str, now: datetime
) -> PodRelationship:
    async with database_session.begin():
        relationship = await database_session.get(PodRelationship, host)
        if relationship is None:
            relationship = PodRelationship(
                host=host, state=state, created_at=now, updated_at=now
            )
            database_session.add(relationship)
        else:
            relationship.state = state
            relationship.updated_at = now
    return relationship


async def add_friend(
    database_session: AsyncSession,
    handshake: PeerHandshake,
    peer_address: str,
    now: Optional[datetime] = None,
) -> PodRelationship:
    """
    Ask a peer for a friendship.

    An already pending or active relationship is returned unchanged.
    """
    host = normalize_address(peer_address)

    async with database_session.begin():
        relationship = await database_session.get(PodRelationship, host)
        if relationship is not None and relationship.state in LIVE_STATES:
            return relationship

    await _set_state(database_session, host, STATE_PENDING, now or utcnow())

    try:
        accepted = await handshake.request_friendship(host)
    except Exception as e:
        # A failed handshake must not leave the link pending forever.
        sentry_sdk.capture_exception(e)
        logger.warning("Friendship request to %s failed: %s", host, e)
        accepted = False
    state = STATE_ACTIVE if accepted else STATE_TERMINATED
    relationship = await _set_state(database_session, host, state, utcnow())

    logger.info("Friendship with %s is %s", host, state)
    return relationship


async def quit_friend(
    database_session: AsyncSession,
    handshake: PeerHandshake,
    peer_address: str,
    now: Optional[datetime] = None,
) -> PodRelationship:
    """
    Terminate the relationship with a peer and notify it.

    Raises:
        NotFound: No relationship with this peer was ever opened
    """
    host = normalize_address(peer_address)

    async with database_session.begin():
        relationship = await database_session.get(PodRelationship, host)
        if relationship is None:
            raise NotFound.pod(host)
        if relationship.state == STATE_TERMINATED:
            return relationship
        relationship.state = STATE_TERMINATED
        relationship.updated_at = now or utcnow()

    try:
        await handshake.announce_departure(host)
    except Exception as e:
        sentry_sdk.capture_exception(e)
        logger.warning("Could not notify %s of our departure: %s", host, e)

    logger.info("Quit friendship with %s", host)
    return relationship


async def make_friends(
    database_session: AsyncSession,
    handshake: PeerHandshake,
    peer_addresses: Sequence[str],
) -> List[PodRelationship]:
    hosts = [normalize_address(address) for address in peer_addresses]
    return [await add_friend(database_session, handshake, host) for host in hosts]


async def quit_friends(
    database_session: AsyncSession,
    handshake: PeerHandshake,
    peer_addresses: Optional[Sequence[str]] = None,
) -> List[PodRelationship]:
    """Quit the given peers, or every pending and active peer when none are given."""
    if peer_addresses is None:
        async with database_session.begin():
            stmt = select(PodRelationship.host).where(
                PodRelationship.state.in_(LIVE_STATES)
            )
            hosts = list((await database_session.scalars(stmt)).all())
    else:
        hosts = [normalize_address(address) for address in peer_addresses]

    return [await quit_friend(database_session, handshake, host) for host in hosts]


async def list_relationships(database_session: AsyncSession) -> List[PodRelationship]:
    async with database_session.begin():
        stmt = select(PodRelationship).order_by(
            PodRelationship.created_at.asc(), PodRelationship.host.asc()
        )
        return list((await database_session.scalars(stmt)).all())
