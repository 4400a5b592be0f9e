"""Tests for joining, presence status and the ordered disconnect cleanup."""
import pytest

from piper.chat.schemas import MessageType, PresenceStatus, Role


class TestJoin:
    """Tests for SessionRegistry.join via the dispatcher."""

    @pytest.mark.asyncio
    async def test_first_joiner_becomes_admin(self, state, join):
        """The first user on a fresh deployment is bootstrapped to admin."""
        alice, _ = await join("alice")
        bob, _ = await join("bob")
        assert alice.role == Role.ADMIN
        assert bob.role == Role.MEMBER
        assert state.store.load("roles", {}) == {"alice": "admin"}

    @pytest.mark.asyncio
    async def test_joiner_receives_snapshots_in_order(self, join):
        """Joiner gets history, channels, forum topics and voice roster, then roster and join notice."""
        _, socket = await join("alice")
        assert socket.types() == [
            "history", "channels", "forum-topics", "voice-users", "users", "message",
        ]
        assert socket.events("channels")[0] == ["general", "forum"]
        notice = socket.events("message")[0]
        assert notice["type"] == MessageType.SYSTEM.value
        assert notice["content"] == "alice joined the chat"

    @pytest.mark.asyncio
    async def test_others_only_get_roster_and_notice(self, join):
        """Existing sessions see the new roster and the join notice, not the snapshots."""
        _, alice_socket = await join("alice")
        alice_socket.clear()
        await join("bob")

        assert alice_socket.types() == ["users", "message"]
        roster = alice_socket.events("users")[0]
        assert [u["username"] for u in roster] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_join_subscribes_to_default_channel(self, state, join):
        alice, _ = await join("alice")
        assert state.channels.channel_of(alice.id) == "general"

    @pytest.mark.asyncio
    async def test_joiner_sees_active_screen_share(self, state, join):
        """A late joiner learns about a screen share already in progress."""
        alice, _ = await join("alice")
        await state.dispatcher.dispatch(alice.id, {"type": "screen-share-start", "data": "stream-1"})
        _, bob_socket = await join("bob")
        assert bob_socket.events("screen-share-started") == [
            {"id": alice.id, "username": "alice", "streamId": "stream-1"}
        ]

    @pytest.mark.asyncio
    async def test_duplicate_usernames_allowed(self, state, join):
        """Two connections may share a username."""
        first, _ = await join("alice")
        second, _ = await join("alice")
        assert first.id != second.id
        assert len(state.sessions.by_username("alice")) == 2

    @pytest.mark.asyncio
    async def test_blank_username_ignored(self, state, connect):
        conn_id, socket = connect()
        await state.dispatcher.dispatch(conn_id, {"type": "join", "data": "   "})
        assert state.sessions.get(conn_id) is None
        assert socket.sent == []

    @pytest.mark.asyncio
    async def test_events_before_join_ignored(self, state, connect):
        """Anything but join from a connection without a session is dropped."""
        conn_id, socket = connect()
        await state.dispatcher.dispatch(conn_id, {"type": "message", "data": "hello"})
        assert state.messages.history() == []
        assert socket.sent == []


class TestSetStatus:
    @pytest.mark.asyncio
    async def test_status_broadcast_to_everyone(self, state, join):
        alice, _ = await join("alice")
        _, bob_socket = await join("bob")
        bob_socket.clear()

        await state.dispatcher.dispatch(
            alice.id,
            {"type": "set-status", "data": {"status": "busy", "customStatus": " In a meeting "}},
        )
        assert alice.status == PresenceStatus.BUSY
        assert alice.customStatus == "In a meeting"
        roster = bob_socket.events("users")[-1]
        assert roster[0]["status"] == "busy"

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, state, join):
        alice, _ = await join("alice")
        await state.dispatcher.dispatch(
            alice.id, {"type": "set-status", "data": {"status": "sleeping"}}
        )
        assert alice.status == PresenceStatus.AVAILABLE


class TestDisconnect:
    """Tests for ChatState.disconnect ordering and idempotence."""

    @pytest.mark.asyncio
    async def test_cleanup_order(self, state, join):
        """Screen share released, voice left, roster updated, then the leave notice."""
        alice, _ = await join("alice")
        bob, bob_socket = await join("bob")
        await state.dispatcher.dispatch(alice.id, {"type": "voice-join"})
        await state.dispatcher.dispatch(bob.id, {"type": "voice-join"})
        await state.dispatcher.dispatch(alice.id, {"type": "screen-share-start", "data": "s"})
        bob_socket.clear()

        await state.disconnect(alice.id)

        assert bob_socket.types() == [
            "screen-share-stopped", "voice-user-left", "voice-users", "users", "message",
        ]
        assert bob_socket.events("voice-user-left") == [alice.id]
        assert bob_socket.events("users")[0] == [bob.model_dump(mode="json")]
        assert bob_socket.events("message")[0]["content"] == "alice left the chat"
        assert state.voice.screen_share is None
        assert not state.voice.is_member(alice.id)

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, state, join):
        alice, _ = await join("alice")
        _, bob_socket = await join("bob")
        await state.disconnect(alice.id)
        bob_socket.clear()

        await state.disconnect(alice.id)
        assert bob_socket.sent == []

    @pytest.mark.asyncio
    async def test_disconnect_before_join_is_silent(self, state, connect, join):
        _, alice_socket = await join("alice")
        alice_socket.clear()
        conn_id, _ = connect()
        await state.disconnect(conn_id)
        assert alice_socket.sent == []
