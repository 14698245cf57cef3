"""
Tests for the federation gate, using a fake peer transport.
"""

import pytest

from social.tube.pod.errors import NotFound, ValidationError
from social.tube.pod.federation import gate
from social.tube.pod.model.pods import STATE_ACTIVE, STATE_TERMINATED
from tests.test_helpers import FakeHandshake


class TestNormalizeAddress:
    @pytest.mark.parametrize(
        "address,expected",
        [
            ("http://Peer.Example", "http://peer.example"),
            ("https://peer.example:9443/", "https://peer.example:9443"),
            (" http://peer.example ", "http://peer.example"),
        ],
    )
    def test_normalize_address(self, address, expected):
        assert gate.normalize_address(address) == expected

    @pytest.mark.parametrize(
        "address",
        ["", "peer.example", "ftp://peer.example", "http://", "http://peer.example/api"],
    )
    def test_normalize_address_rejects(self, address):
        with pytest.raises(ValidationError) as excinfo:
            gate.normalize_address(address)
        assert excinfo.value.error == "invalid_pod"


class TestMakeFriends:
    async def test_make_friends(self, session, handshake):
        relationships = await gate.make_friends(
            session, handshake, ["http://friend.example", "http://refusing.example"]
        )

        assert [(r.host, r.state) for r in relationships] == [
            ("http://friend.example", STATE_ACTIVE),
            ("http://refusing.example", STATE_TERMINATED),
        ]
        assert handshake.requested == ["http://friend.example", "http://refusing.example"]

    async def test_make_friends_is_idempotent_for_live_peers(self, session, handshake):
        await gate.add_friend(session, handshake, "http://friend.example")
        again = await gate.add_friend(session, handshake, "http://FRIEND.example/")

        assert again.state == STATE_ACTIVE
        assert handshake.requested == ["http://friend.example"]

    async def test_make_friends_validates_every_address_first(self, session, handshake):
        with pytest.raises(ValidationError):
            await gate.make_friends(session, handshake, ["http://friend.example", "nonsense"])

        assert handshake.requested == []
        assert await gate.list_relationships(session) == []

    async def test_failed_handshake_terminates_and_can_be_retried(self, session):
        handshake = FakeHandshake(failing_once={"http://flaky.example"})

        relationship = await gate.add_friend(session, handshake, "http://flaky.example")
        assert relationship.state == STATE_TERMINATED

        relationship = await gate.add_friend(session, handshake, "http://flaky.example")
        assert relationship.state == STATE_ACTIVE
        assert handshake.requested == ["http://flaky.example", "http://flaky.example"]

    async def test_befriend_again_after_quitting(self, session, handshake):
        await gate.add_friend(session, handshake, "http://friend.example")
        await gate.quit_friend(session, handshake, "http://friend.example")

        relationship = await gate.add_friend(session, handshake, "http://friend.example")

        assert relationship.state == STATE_ACTIVE
        assert handshake.requested == ["http://friend.example", "http://friend.example"]


class TestQuitFriends:
    async def test_quit_friends(self, session, handshake):
        await gate.make_friends(
            session, handshake, ["http://friend.example", "http://other.example"]
        )

        relationships = await gate.quit_friends(session, handshake)

        assert {r.host for r in relationships} == {"http://friend.example", "http://other.example"}
        assert all(r.state == STATE_TERMINATED for r in relationships)
        assert sorted(handshake.departed) == ["http://friend.example", "http://other.example"]

        # Nothing live remains.
        assert await gate.quit_friends(session, handshake) == []

    async def test_quit_unknown_peer(self, session, handshake):
        with pytest.raises(NotFound):
            await gate.quit_friend(session, handshake, "http://stranger.example")

    async def test_quit_survives_unreachable_peer(self, session):
        handshake = FakeHandshake(unreachable_on_departure={"http://friend.example"})
        await gate.add_friend(session, handshake, "http://friend.example")

        relationship = await gate.quit_friend(session, handshake, "http://friend.example")

        assert relationship.state == STATE_TERMINATED
        listed = await gate.list_relationships(session)
        assert [(r.host, r.state) for r in listed] == [("http://friend.example", STATE_TERMINATED)]
