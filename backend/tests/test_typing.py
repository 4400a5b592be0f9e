"""Tests for channel-scoped typing indicators."""
import pytest


class TestTyping:
    @pytest.mark.asyncio
    async def test_relayed_to_same_channel_only(self, state, join):
        a, a_socket = await join("A")
        _, b_socket = await join("B")
        c, c_socket = await join("C")
        await state.dispatcher.dispatch(c.id, {"type": "join-channel", "data": "forum"})
        for socket in (a_socket, b_socket, c_socket):
            socket.clear()

        await state.dispatcher.dispatch(a.id, {"type": "typing", "data": {"isTyping": True}})

        assert b_socket.events("typing") == [{"user": "A", "isTyping": True, "channelId": "general"}]
        assert a_socket.events("typing") == []
        assert c_socket.events("typing") == []
        assert state.typing.typing_in("general") == ["A"]

    @pytest.mark.asyncio
    async def test_bare_boolean_payload(self, state, join):
        a, _ = await join("A")
        await state.dispatcher.dispatch(a.id, {"type": "typing", "data": True})
        await state.dispatcher.dispatch(a.id, {"type": "typing", "data": False})
        assert state.typing.typing_in("general") == []

    @pytest.mark.asyncio
    async def test_explicit_channel(self, state, join):
        a, _ = await join("A")
        b, b_socket = await join("B")
        await state.dispatcher.dispatch(b.id, {"type": "join-channel", "data": "forum"})
        b_socket.clear()
        await state.dispatcher.dispatch(
            a.id, {"type": "typing", "data": {"isTyping": True, "channelId": "forum"}}
        )
        assert b_socket.events("typing") == [{"user": "A", "isTyping": True, "channelId": "forum"}]

    @pytest.mark.asyncio
    async def test_forgotten_on_disconnect(self, state, join):
        a, _ = await join("A")
        await state.dispatcher.dispatch(a.id, {"type": "typing", "data": True})
        await state.disconnect(a.id)
        assert state.typing.typing_in("general") == []

    @pytest.mark.asyncio
    async def test_outsider_cannot_type_into_dm(self, state, join):
        await join("alice")
        bob, bob_socket = await join("bob")
        carol, _ = await join("carol")
        await state.dispatcher.dispatch(bob.id, {"type": "join-channel", "data": "dm:alice:bob"})
        bob_socket.clear()

        await state.dispatcher.dispatch(
            carol.id, {"type": "typing", "data": {"isTyping": True, "channelId": "dm:alice:bob"}}
        )

        assert bob_socket.events("typing") == []
        assert state.typing.typing_in("dm:alice:bob") == []

    @pytest.mark.asyncio
    async def test_unknown_channel_ignored(self, state, join):
        a, _ = await join("A")
        await state.dispatcher.dispatch(
            a.id, {"type": "typing", "data": {"isTyping": True, "channelId": "nowhere"}}
        )
        assert state.typing.typing_in("nowhere") == []
