"""Transport used to ask peer pods for, or withdraw from, a friendship.

The exchange itself belongs to the peers; the gate only needs a yes/no answer when asking
and a best-effort notification when leaving.
"""

import logging
from abc import ABC, abstractmethod

import aiohttp
from aiohttp import ClientSession

logger = logging.getLogger(__name__)


class PeerHandshake(ABC):
    @abstractmethod
    async def request_friendship(self, peer_address: str) -> bool:
        """Ask the peer to accept a friendship. True when the peer accepted."""

    @abstractmethod
    async def announce_departure(self, peer_address: str) -> None:
        """Tell the peer this pod is leaving. May raise on transport failure."""


class HttpPeerHandshake(PeerHandshake):
    """
    Handshake over HTTP using the application's shared aiohttp ClientSession.

    Posts ``{"host": <this pod>}`` to ``<peer>/api/v1/pods/`` to ask and to
    ``<peer>/api/v1/pods/remove`` to leave.
    """

    def __init__(
        self, http_session: ClientSession, local_host: str, timeout: float = 10.0
    ) -> None:
        self.http_session = http_session
        self.local_host = local_host
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def request_friendship(self, peer_address: str) -> bool:
        url = f"{peer_address}/api/v1/pods/"
        try:
            async with self.http_session.post(
                url, json={"host": self.local_host}, timeout=self.timeout
            ) as response:
                if response.status not in (200, 201, 204):
                    logger.warning(
                        "Peer %s refused friendship: HTTP %s", peer_address, response.status
                    )
                    return False
                return True
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning("Peer %s unreachable: %s", peer_address, e)
            return False

    async def announce_departure(self, peer_address: str) -> None:
        url = f"{peer_address}/api/v1/pods/remove"
        async with self.http_session.post(
            url, json={"host": self.local_host}, timeout=self.timeout
        ) as response:
            response.raise_for_status()
