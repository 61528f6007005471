import asyncio

import pytest

from blade_core.core.confirmation import (
    CallbackResponder,
    ChannelResponder,
    ConfirmationResponder,
    TimeoutResponder,
)
from blade_core.tools.common import (
    ConfirmationDetails,
    ConfirmationResponse,
    ConfirmationScope,
)


def details(title: str = "Run it?") -> ConfirmationDetails:
    return ConfirmationDetails(title=title, tool_name="Bash")


class TestCallbackResponder:
    @pytest.mark.asyncio
    async def test_sync_callback_returning_bool(self):
        seen = []
        responder = CallbackResponder(lambda d: seen.append(d.title) or True)

        response = await responder.request_confirmation(details())

        assert response.approved
        assert response.scope == ConfirmationScope.ONCE
        assert seen == ["Run it?"]

    @pytest.mark.asyncio
    async def test_async_callback_returning_response(self):
        async def callback(d):
            return ConfirmationResponse(approved=False, reason="later")

        response = await CallbackResponder(callback).request_confirmation(details())

        assert not response.approved
        assert response.reason == "later"

    def test_satisfies_protocol(self):
        assert isinstance(CallbackResponder(lambda d: True), ConfirmationResponder)


class TestChannelResponder:
    @pytest.mark.asyncio
    async def test_request_is_answered_through_the_channel(self):
        channel = ChannelResponder()
        task = asyncio.create_task(channel.request_confirmation(details()))

        request = await asyncio.wait_for(channel.next_request(), timeout=5)
        assert request.details.title == "Run it?"
        assert [r.id for r in channel.get_pending()] == [request.id]

        assert channel.respond(
            request.id,
            ConfirmationResponse(approved=True, scope=ConfirmationScope.ALWAYS),
        )
        response = await asyncio.wait_for(task, timeout=5)

        assert response.approved
        assert response.scope == ConfirmationScope.ALWAYS
        assert channel.get_pending() == []

    @pytest.mark.asyncio
    async def test_unknown_request_id(self):
        assert not ChannelResponder().respond("nope", True)

    @pytest.mark.asyncio
    async def test_on_request_hook(self):
        published = []
        channel = ChannelResponder(on_request=published.append)
        task = asyncio.create_task(channel.request_confirmation(details("A")))

        request = await asyncio.wait_for(channel.next_request(), timeout=5)
        channel.respond(request.id, False)

        assert not (await task).approved
        assert [r.details.title for r in published] == ["A"]

    @pytest.mark.asyncio
    async def test_cancelled_request_is_skipped(self):
        channel = ChannelResponder()
        first = asyncio.create_task(channel.request_confirmation(details("first")))
        await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        second = asyncio.create_task(channel.request_confirmation(details("second")))
        request = await asyncio.wait_for(channel.next_request(), timeout=5)
        assert request.details.title == "second"

        channel.respond(request.id, True)
        assert (await second).approved


class TestTimeoutResponder:
    @pytest.mark.asyncio
    async def test_unanswered_request_is_rejected(self):
        responder = TimeoutResponder(ChannelResponder(), timeout=0.05)

        response = await responder.request_confirmation(details())

        assert not response.approved
        assert "0.05" in response.reason

    @pytest.mark.asyncio
    async def test_answer_within_timeout_passes_through(self):
        responder = TimeoutResponder(CallbackResponder(lambda d: True), timeout=5)
        assert (await responder.request_confirmation(details())).approved
