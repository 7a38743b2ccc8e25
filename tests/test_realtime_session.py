"""
Unit tests for the OpenAI Realtime session adapter.

The websocket is replaced by ``FakeRealtimeWebSocket`` so the tests exercise the
real event decoding, transcoding and tool-call handling without a network.
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest
from websockets.exceptions import InvalidURI

import handyman_voice.bot.realtime_session as session_module
from handyman_voice.bot.realtime_session import RealtimeSession
from handyman_voice.bot.tool_calls import ToolCallReassembler
from handyman_voice.exceptions import SessionSetupError
from handyman_voice.models.booking import BookingRecord
from handyman_voice.services.booking_submission import BookingSubmitter

from conftest import ulaw_frame


@pytest.fixture
def submitter():
    mock = MagicMock(spec=BookingSubmitter)
    mock.submit_in_background = MagicMock()
    return mock


@pytest.fixture
def session(call_context, submitter, realtime_ws):
    s = RealtimeSession(call_context, submitter, api_key="test-key", audio_format="pcm16")
    s.ws = realtime_ws
    return s


def event(**fields):
    return json.dumps(fields)


@pytest.mark.asyncio
class TestConnect:

    async def test_missing_api_key(self, call_context, submitter):
        s = RealtimeSession(call_context, submitter, api_key="")
        with pytest.raises(SessionSetupError):
            await s.connect()

    async def test_connect_sends_session_update(self, call_context, submitter, realtime_ws):
        s = RealtimeSession(call_context, submitter, api_key="test-key", model="test-model")
        with patch.object(session_module.websockets, "connect", AsyncMock(return_value=realtime_ws)) as mock_connect:
            await s.connect()

        url = mock_connect.call_args.args[0]
        headers = mock_connect.call_args.kwargs["additional_headers"]
        assert url.endswith("?model=test-model")
        assert headers["Authorization"] == "Bearer test-key"
        assert s.is_open

        update = realtime_ws.sent_events("session.update")[0]["session"]
        assert update["modalities"] == ["audio", "text"]
        assert update["turn_detection"]["type"] == "server_vad"
        assert update["input_audio_transcription"]["model"]
        assert update["tools"][0]["name"] == "submit_booking"
        assert "handyman" in update["instructions"]

    async def test_connect_refused(self, call_context, submitter):
        s = RealtimeSession(call_context, submitter, api_key="test-key")
        with patch.object(session_module.websockets, "connect", AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(SessionSetupError):
                await s.connect()

    async def test_connect_rejected(self, call_context, submitter):
        s = RealtimeSession(call_context, submitter, api_key="test-key")
        with patch.object(
            session_module.websockets, "connect", AsyncMock(side_effect=InvalidURI("bad", "no scheme"))
        ):
            with pytest.raises(SessionSetupError):
                await s.connect()

    async def test_connect_timeout(self, call_context, submitter):
        async def never_connects(*args, **kwargs):
            await asyncio.sleep(10)

        s = RealtimeSession(call_context, submitter, api_key="test-key")
        with patch.object(session_module.websockets, "connect", never_connects), \
                patch.object(session_module.settings, "REALTIME_CONNECT_TIMEOUT", 0.01):
            with pytest.raises(SessionSetupError):
                await s.connect()


@pytest.mark.asyncio
class TestAudio:

    async def test_send_audio_transcodes_to_pcm16(self, session, realtime_ws):
        assert await session.send_audio(ulaw_frame())

        append = realtime_ws.sent_events("input_audio_buffer.append")[0]
        assert len(base64.b64decode(append["audio"])) == 960

    async def test_send_audio_dropped_when_closed(self, session, realtime_ws):
        await session.close()

        assert not await session.send_audio(ulaw_frame())
        assert realtime_ws.sent_events("input_audio_buffer.append") == []

    async def test_malformed_audio_frame_dropped(self, session, realtime_ws):
        assert not await session.send_audio("***")
        assert realtime_ws.sent == []

    async def test_audio_deltas_played_in_order(self, session):
        played = []

        async def sink(payload):
            played.append(payload)

        session.attach_output(sink)
        for value in (0, 32767):
            pcm = np.full(480, value, dtype="<i2").tobytes()
            await session.handle_event(event(type="response.audio.delta", delta=base64.b64encode(pcm).decode()))

        assert len(played) == 2
        first, second = (base64.b64decode(p) for p in played)
        assert first == b"\xff" * 160
        assert len(second) == 160
        assert first != second

    async def test_speech_started_clears_and_cancels_active_response(self, session, realtime_ws):
        clear = AsyncMock()
        session.attach_output(AsyncMock(), clear)
        await session.handle_event(event(type="response.created", response={"id": "resp_1"}))

        await session.handle_event(event(type="input_audio_buffer.speech_started"))

        clear.assert_awaited_once()
        assert len(realtime_ws.sent_events("response.cancel")) == 1

    async def test_speech_started_without_response_does_not_cancel(self, session, realtime_ws):
        session.attach_output(AsyncMock(), AsyncMock())
        await session.handle_event(event(type="response.created", response={"id": "resp_1"}))
        await session.handle_event(event(type="response.done", response={"id": "resp_1"}))

        await session.handle_event(event(type="input_audio_buffer.speech_started"))

        assert realtime_ws.sent_events("response.cancel") == []


@pytest.mark.asyncio
class TestToolCalls:

    async def test_three_fragment_booking(self, session, submitter, realtime_ws):
        fragments = [
            '{"name":"Sam",',
            '"job":"leaky tap","suburb":"Sunbury",',
            '"time":"tomorrow 3pm","phone":"+61412345678"}',
        ]
        for fragment in fragments:
            await session.handle_event(
                event(type="response.function_call_arguments.delta", id="fc1", delta=fragment)
            )
        await session.handle_event(
            event(type="response.function_call_arguments.done", id="fc1", name="submit_booking")
        )

        submitter.submit_in_background.assert_called_once()
        record, caller = submitter.submit_in_background.call_args.args
        assert record == BookingRecord(
            name="Sam", job="leaky tap", suburb="Sunbury", time="tomorrow 3pm", phone="+61412345678"
        )
        assert caller == "+61400000000"
        assert session.context.booking_submitted

        output = realtime_ws.sent_events("conversation.item.create")[0]["item"]
        assert output["call_id"] == "fc1"
        assert json.loads(output["output"]) == {"status": "submitted"}
        assert len(realtime_ws.sent_events("response.create")) == 1

    async def test_call_id_keyed_stream_with_output_item(self, session, submitter):
        await session.handle_event(
            event(
                type="response.output_item.added",
                item={"id": "item_1", "type": "function_call", "call_id": "call_1", "name": "submit_booking"},
            )
        )
        await session.handle_event(
            event(type="response.function_call_arguments.delta", call_id="call_1", item_id="item_1", delta='{"job":"tap"}')
        )
        await session.handle_event(
            event(type="response.function_call_arguments.done", call_id="call_1", item_id="item_1")
        )

        record, _ = submitter.submit_in_background.call_args.args
        assert record.job == "tap"
        assert record.phone == "+61400000000"

    async def test_done_without_deltas_uses_final_arguments(self, session, submitter):
        await session.handle_event(
            event(
                type="response.function_call_arguments.done",
                call_id="call_2",
                name="submit_booking",
                arguments='{"name":"Alex"}',
            )
        )

        record, _ = submitter.submit_in_background.call_args.args
        assert record.name == "Alex"

    async def test_duplicate_booking_ignored(self, session, submitter, realtime_ws):
        for call_id in ("fc1", "fc2"):
            await session.handle_event(
                event(type="response.function_call_arguments.delta", id=call_id, delta='{"name":"Sam"}')
            )
            await session.handle_event(
                event(type="response.function_call_arguments.done", id=call_id, name="submit_booking")
            )

        submitter.submit_in_background.assert_called_once()
        outputs = [json.loads(e["item"]["output"]) for e in realtime_ws.sent_events("conversation.item.create")]
        assert outputs == [{"status": "submitted"}, {"status": "already_submitted"}]

    async def test_malformed_arguments_do_not_submit(self, session, submitter, realtime_ws):
        await session.handle_event(
            event(type="response.function_call_arguments.delta", id="fc1", delta='{"name": "Sam"')
        )
        await session.handle_event(
            event(type="response.function_call_arguments.done", id="fc1", name="submit_booking")
        )

        submitter.submit_in_background.assert_not_called()
        assert not session.context.booking_submitted
        output = json.loads(realtime_ws.sent_events("conversation.item.create")[0]["item"]["output"])
        assert output["status"] == "error"
        assert len(session.reassembler) == 0

    async def test_unknown_tool_not_submitted(self, session, submitter, realtime_ws):
        await session.handle_event(
            event(type="response.function_call_arguments.done", id="x1", name="transfer_call", arguments="{}")
        )

        submitter.submit_in_background.assert_not_called()
        output = json.loads(realtime_ws.sent_events("conversation.item.create")[0]["item"]["output"])
        assert output["status"] == "error"

    async def test_oversized_arguments_dropped(self, call_context, submitter, realtime_ws):
        s = RealtimeSession(
            call_context,
            submitter,
            api_key="test-key",
            reassembler=ToolCallReassembler(max_call_chars=10, max_session_chars=100),
        )
        s.ws = realtime_ws
        arguments = json.dumps({"name": "Sam", "job": "x" * 40})
        await s.handle_event(event(type="response.function_call_arguments.delta", call_id="fc1", delta=arguments))
        assert len(s.reassembler) == 0

        # The final event repeats the full arguments; the invocation stays refused
        await s.handle_event(
            event(
                type="response.function_call_arguments.done",
                call_id="fc1",
                name="submit_booking",
                arguments=arguments,
            )
        )

        submitter.submit_in_background.assert_not_called()
        assert not s.context.booking_submitted
        output = json.loads(realtime_ws.sent_events("conversation.item.create")[0]["item"]["output"])
        assert output == {"status": "error", "message": "arguments too large"}

    async def test_oversized_final_arguments_refused(self, call_context, submitter, realtime_ws):
        s = RealtimeSession(
            call_context,
            submitter,
            api_key="test-key",
            reassembler=ToolCallReassembler(max_call_chars=10, max_session_chars=100),
        )
        s.ws = realtime_ws
        await s.handle_event(
            event(
                type="response.function_call_arguments.done",
                call_id="fc2",
                name="submit_booking",
                arguments=json.dumps({"job": "x" * 40}),
            )
        )

        submitter.submit_in_background.assert_not_called()

    async def test_output_item_then_done_with_arguments_only(self, session, submitter):
        await session.handle_event(
            event(
                type="response.output_item.added",
                item={"id": "item_1", "type": "function_call", "call_id": "call_1", "name": "submit_booking"},
            )
        )
        await session.handle_event(
            event(
                type="response.function_call_arguments.done",
                call_id="call_1",
                arguments='{"name":"Sam","job":"leaky tap"}',
            )
        )

        submitter.submit_in_background.assert_called_once()
        record, _ = submitter.submit_in_background.call_args.args
        assert record.name == "Sam"
        assert record.job == "leaky tap"

    async def test_close_discards_pending_tool_calls(self, session, realtime_ws):
        await session.handle_event(event(type="response.function_call_arguments.delta", id="fc1", delta="{"))

        await session.close()
        await session.close()

        assert len(session.reassembler) == 0
        assert realtime_ws.close_code == 1000
        assert not session.is_open


@pytest.mark.asyncio
class TestReceiveLoop:

    async def test_malformed_event_does_not_stop_loop(self, session, submitter, realtime_ws):
        realtime_ws.feed(
            "not json at all",
            event(type="response.function_call_arguments.delta", id="fc1", delta='{"name":"Sam"}'),
            event(type="some.future.event"),
            event(type="response.function_call_arguments.done", id="fc1", name="submit_booking"),
        )
        loop = asyncio.create_task(session.receive_loop())
        await asyncio.sleep(0)
        for _ in range(20):
            if submitter.submit_in_background.called:
                break
            await asyncio.sleep(0.01)
        await session.close()
        await asyncio.wait_for(loop, timeout=1)

        submitter.submit_in_background.assert_called_once()

    async def test_handler_error_is_logged_and_loop_continues(self, session):
        session.event_handlers["response.created"] = AsyncMock(side_effect=KeyError("boom"))

        await session.handle_event(event(type="response.created", response={"id": "r1"}))

    async def test_non_string_event_type_dropped(self, session, submitter, realtime_ws):
        realtime_ws.feed(
            json.dumps({"type": {"a": 1}}),
            event(type="response.function_call_arguments.done", call_id="c1", name="submit_booking", arguments="{}"),
        )
        loop = asyncio.create_task(session.receive_loop())
        for _ in range(20):
            if submitter.submit_in_background.called:
                break
            await asyncio.sleep(0.01)
        await session.close()
        await asyncio.wait_for(loop, timeout=1)

        assert loop.exception() is None
        submitter.submit_in_background.assert_called_once()
