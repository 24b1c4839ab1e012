"""Tests for the session and conversation controller."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
import unittest

from fakes import FakeResearchApi

from deep_probe.controller import ERROR_REPLY_TEXT, SessionController
from deep_probe.exceptions import ConversationBusyError, ProbeConnectionError
from deep_probe.mentions import ToolMode
from deep_probe.models import ChatReply, Message, Session, StreamChunk
from deep_probe.state import AppPhase, ConnectionState, ConversationState


def _sessions() -> list[Session]:
    return [
        Session("s1", "gemini-2.5-flash", 0.2, "2026-01-02T00:00:00+00:00", 4),
        Session("s2", "gemini-2.5-flash", 0.2, "2026-01-01T00:00:00+00:00", 0),
    ]


def _histories() -> dict[str, list[Message]]:
    return {
        "s1": [
            Message("user", "hi @google_search", "2026-01-02T00:00:00+00:00"),
            Message("assistant", "hello", "2026-01-02T00:00:01+00:00", ("google_search",)),
        ]
    }


async def _collect(stream) -> list[StreamChunk]:
    return [chunk async for chunk in stream]


class ControllerStartupTests(unittest.IsolatedAsyncioTestCase):
    """Validate the start-up sequence and its degraded paths."""

    async def test_startup_selects_first_session_and_loads_history(self) -> None:
        api = FakeResearchApi(_sessions(), _histories())
        controller = SessionController(api)
        self.assertTrue(controller.is_initializing)

        await controller.initialize()

        self.assertEqual(controller.phase, AppPhase.READY)
        self.assertFalse(controller.is_initializing)
        self.assertEqual(controller.active_session_id, "s1")
        self.assertEqual(len(controller.messages), 2)
        self.assertEqual(controller.connection_state, ConnectionState.ONLINE)
        self.assertEqual(api.call_names(), ["health_check", "list_sessions", "get_history"])
        self.assertEqual(controller.conversation_state, ConversationState.IDLE)

    async def test_startup_creates_a_session_when_none_exist(self) -> None:
        api = FakeResearchApi()
        controller = SessionController(api, model_name="custom-model", temperature=0.5)

        await controller.initialize()

        self.assertEqual(controller.active_session_id, "new-1")
        self.assertEqual(len(controller.sessions), 1)
        self.assertEqual(controller.messages, ())
        self.assertEqual(api.calls[-1][1][:2], ("custom-model", 0.5))

    async def test_health_failure_stops_startup(self) -> None:
        api = FakeResearchApi(_sessions(), fail={"health_check"})
        controller = SessionController(api)

        await controller.initialize()

        self.assertEqual(controller.phase, AppPhase.READY)
        self.assertEqual(controller.sessions, ())
        self.assertIsNone(controller.active_session_id)
        self.assertEqual(controller.connection_state, ConnectionState.OFFLINE)
        self.assertEqual(api.call_names(), ["health_check"])

    async def test_list_failure_leaves_no_active_session(self) -> None:
        api = FakeResearchApi(_sessions(), fail={"list_sessions"})
        controller = SessionController(api)

        await controller.initialize()

        self.assertEqual(controller.phase, AppPhase.READY)
        self.assertIsNone(controller.active_session_id)
        self.assertEqual(controller.connection_state, ConnectionState.OFFLINE)

    async def test_history_failure_yields_empty_conversation(self) -> None:
        api = FakeResearchApi(_sessions(), _histories(), fail={"get_history"})
        controller = SessionController(api)

        await controller.initialize()

        self.assertEqual(controller.active_session_id, "s1")
        self.assertEqual(controller.messages, ())


class ControllerSendTests(unittest.IsolatedAsyncioTestCase):
    """Validate optimistic sends, failures and busy rejection."""

    async def asyncSetUp(self) -> None:
        self.api = FakeResearchApi(_sessions(), _histories())
        self.controller = SessionController(self.api)
        await self.controller.initialize()

    async def test_successful_send_appends_user_and_reply(self) -> None:
        self.api.replies = [
            ChatReply("Found it.", "2026-01-02T00:01:00+00:00", ("google_search",))
        ]

        reply = await self.controller.send_message("  search @google_search now ")

        assert reply is not None
        self.assertEqual(reply.content, "Found it.")
        messages = self.controller.messages
        self.assertEqual(len(messages), 4)
        self.assertEqual(messages[2].role, "user")
        self.assertEqual(messages[2].content, "search @google_search now")
        self.assertEqual(messages[3], reply)
        self.assertEqual(reply.tools_used, ("google_search",))
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 6)
        self.assertFalse(self.controller.is_loading)
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)

    async def test_failed_send_appends_apology_and_keeps_count(self) -> None:
        self.api.fail.add("send_chat")

        reply = await self.controller.send_message("hello")

        assert reply is not None
        self.assertEqual(reply.role, "assistant")
        self.assertEqual(reply.content, ERROR_REPLY_TEXT)
        self.assertEqual(
            [message.content for message in self.controller.messages[-2:]],
            ["hello", ERROR_REPLY_TEXT],
        )
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 4)
        self.assertEqual(self.controller.connection_state, ConnectionState.OFFLINE)
        self.assertFalse(self.controller.is_loading)

    async def test_send_without_text_or_session_is_a_no_op(self) -> None:
        self.assertIsNone(await self.controller.send_message("   "))

        offline = SessionController(FakeResearchApi(fail={"health_check"}))
        await offline.initialize()
        self.assertIsNone(await offline.send_message("hello"))
        self.assertEqual(offline.messages, ())
        self.assertNotIn("send_chat", self.api.call_names())

    async def test_operations_are_rejected_while_sending(self) -> None:
        self.api.send_gate = asyncio.Event()
        task = asyncio.create_task(self.controller.send_message("first"))
        while not self.controller.is_loading:
            await asyncio.sleep(0)

        self.assertEqual(self.controller.conversation_state, ConversationState.SENDING)
        with self.assertRaises(ConversationBusyError):
            await self.controller.send_message("second")
        with self.assertRaises(ConversationBusyError):
            await self.controller.create_session()
        with self.assertRaises(ConversationBusyError):
            await self.controller.delete_session("s2")

        self.api.send_gate.set()
        await task

        self.assertEqual(
            [message.content for message in self.controller.messages[-2:]],
            ["first", "echo: first"],
        )
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)

    async def test_stream_collects_text_and_ordered_tools(self) -> None:
        self.api.stream_chunks = [
            StreamChunk("tool_start", tool_name="google_search"),
            StreamChunk("text", "Hel"),
            StreamChunk("tool_start", tool_name="news_search"),
            StreamChunk("tool_end", tool_name="news_search"),
            StreamChunk("tool_start", tool_name="google_search"),
            StreamChunk("text", "lo"),
            StreamChunk("done", timestamp="2026-01-02T00:02:00+00:00"),
        ]

        chunks = await _collect(self.controller.stream_message("hi"))

        self.assertEqual(len(chunks), 7)
        final = self.controller.messages[-1]
        self.assertEqual(final.content, "Hello")
        self.assertEqual(final.tools_used, ("google_search", "news_search"))
        self.assertEqual(final.timestamp, "2026-01-02T00:02:00+00:00")
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 6)

    async def test_stream_error_chunk_appends_apology(self) -> None:
        self.api.stream_chunks = [
            StreamChunk("text", "partial"),
            StreamChunk("error", "boom"),
            StreamChunk("text", "ignored"),
        ]

        chunks = await _collect(self.controller.stream_message("hi"))

        self.assertEqual([chunk.type for chunk in chunks], ["text", "error"])
        self.assertEqual(self.controller.messages[-1].content, ERROR_REPLY_TEXT)
        self.assertEqual(self.controller.messages[-2].content, "hi")
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 4)
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)

    async def test_stream_transport_failure_appends_apology(self) -> None:
        self.api.fail.add("stream_chat")

        chunks = await _collect(self.controller.stream_message("hi"))

        self.assertEqual(chunks, [])
        self.assertEqual(self.controller.messages[-1].content, ERROR_REPLY_TEXT)
        self.assertFalse(self.controller.is_loading)

    async def test_abandoned_stream_closes_turn_with_apology(self) -> None:
        self.api.stream_chunks = [
            StreamChunk("text", "Hel"),
            StreamChunk("text", "lo"),
            StreamChunk("done"),
        ]

        with self.assertLogs("deep_probe.controller", level="WARNING") as logs:
            async with aclosing(self.controller.stream_message("hi")) as stream:
                async for _chunk in stream:
                    break

        self.assertEqual(
            [message.content for message in self.controller.messages[-2:]],
            ["hi", ERROR_REPLY_TEXT],
        )
        self.assertTrue(any("controller.send.abandoned" in line for line in logs.output))
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 4)
        self.assertFalse(self.controller.is_loading)
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)

    async def test_cancelled_send_closes_turn_with_apology(self) -> None:
        self.api.send_gate = asyncio.Event()
        task = asyncio.create_task(self.controller.send_message("hello"))
        while not self.controller.is_loading:
            await asyncio.sleep(0)

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(
            [message.content for message in self.controller.messages[-2:]],
            ["hello", ERROR_REPLY_TEXT],
        )
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)


class ControllerSessionTests(unittest.IsolatedAsyncioTestCase):
    """Validate create, select, delete, clear and refresh."""

    async def asyncSetUp(self) -> None:
        self.api = FakeResearchApi(_sessions(), _histories())
        self.controller = SessionController(self.api)
        await self.controller.initialize()

    async def test_create_session_prepends_and_activates(self) -> None:
        session = await self.controller.create_session()

        self.assertEqual(self.controller.sessions[0], session)
        self.assertEqual(self.controller.active_session_id, session.session_id)
        self.assertEqual(self.controller.messages, ())

    async def test_create_session_failure_propagates(self) -> None:
        self.api.fail.add("create_session")

        with self.assertRaises(ProbeConnectionError):
            await self.controller.create_session()

        self.assertEqual(len(self.controller.sessions), 2)
        self.assertEqual(self.controller.active_session_id, "s1")
        self.assertEqual(self.controller.conversation_state, ConversationState.IDLE)

    async def test_select_session_loads_its_history(self) -> None:
        await self.controller.select_session("s2")

        self.assertEqual(self.controller.active_session_id, "s2")
        self.assertEqual(self.controller.messages, ())
        self.assertEqual(self.api.calls[-1], ("get_history", ("s2", 50)))

    async def test_deleting_active_session_falls_back_to_first_remaining(self) -> None:
        await self.controller.delete_session("s1")

        self.assertEqual([s.session_id for s in self.controller.sessions], ["s2"])
        self.assertEqual(self.controller.active_session_id, "s2")
        self.assertEqual(self.controller.messages, ())

    async def test_deleting_sole_session_creates_a_new_one(self) -> None:
        await self.controller.delete_session("s2")
        await self.controller.delete_session("s1")

        self.assertEqual(len(self.controller.sessions), 1)
        self.assertEqual(self.controller.active_session_id, "new-1")
        self.assertEqual(self.controller.messages, ())

    async def test_deleting_inactive_session_keeps_conversation(self) -> None:
        await self.controller.delete_session("s2")

        self.assertEqual(self.controller.active_session_id, "s1")
        self.assertEqual(len(self.controller.messages), 2)

    async def test_delete_failure_leaves_sessions_untouched(self) -> None:
        self.api.fail.add("delete_session")

        with self.assertRaises(ProbeConnectionError):
            await self.controller.delete_session("s1")

        self.assertEqual(len(self.controller.sessions), 2)
        self.assertEqual(self.controller.active_session_id, "s1")

    async def test_clear_history_empties_conversation_and_count(self) -> None:
        await self.controller.clear_history()

        self.assertEqual(self.controller.messages, ())
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 0)
        self.assertIn(("clear_history", ("s1",)), self.api.calls)

    async def test_refresh_resyncs_counts(self) -> None:
        await self.controller.send_message("hello")
        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 6)

        self.api.sessions[0] = self.api.sessions[0].with_message_count(8)
        await self.controller.refresh_sessions()

        active = self.controller.active_session
        assert active is not None
        self.assertEqual(active.message_count, 8)

    async def test_refresh_falls_back_when_active_session_vanished(self) -> None:
        self.api.sessions = [s for s in self.api.sessions if s.session_id != "s1"]

        await self.controller.refresh_sessions()

        self.assertEqual(self.controller.active_session_id, "s2")

    async def test_refresh_failure_keeps_session_list(self) -> None:
        self.api.fail.add("list_sessions")

        await self.controller.refresh_sessions()

        self.assertEqual(len(self.controller.sessions), 2)
        self.assertEqual(self.controller.connection_state, ConnectionState.OFFLINE)


class ControllerComposerTests(unittest.IsolatedAsyncioTestCase):
    """Validate submission of the composer draft."""

    async def asyncSetUp(self) -> None:
        self.api = FakeResearchApi(_sessions(), _histories())
        self.controller = SessionController(self.api)
        await self.controller.initialize()

    async def test_manual_submission_sends_backend_mentions(self) -> None:
        self.controller.set_mode(ToolMode.MANUAL)
        self.controller.set_draft("@News today")

        await self.controller.submit()

        self.assertIn(("send_chat", ("s1", "@news_search today")), self.api.calls)
        self.assertEqual(self.controller.composer.text, "")
        self.assertEqual(self.controller.composer.mode, ToolMode.MANUAL)
        user_message = self.controller.messages[-2]
        self.assertEqual(self.controller.display_content(user_message), "@News today")

    async def test_none_mode_submission_is_prefixed(self) -> None:
        self.controller.set_mode("none")
        self.controller.set_draft("hello")

        await self.controller.submit()

        self.assertIn(("send_chat", ("s1", "[NO_TOOLS] hello")), self.api.calls)

    async def test_select_tool_and_group_update_draft(self) -> None:
        self.controller.set_draft("compare")
        self.controller.select_tool("stock_price")
        self.controller.select_group("Video Analysis")
        self.controller.toggle_tool("stock_price")

        self.assertEqual(self.controller.composer.text, "compare @YouTube @Transcript ")
        self.assertEqual(
            self.controller.composer.active_tools,
            ("youtube_search", "youtube_transcribe"),
        )
        self.controller.remove_tool("youtube_search")
        self.assertEqual(self.controller.composer.active_tools, ("youtube_transcribe",))

    async def test_blank_draft_is_not_submitted(self) -> None:
        self.assertIsNone(await self.controller.submit())
        self.assertNotIn("send_chat", self.api.call_names())

    async def test_busy_submission_keeps_draft(self) -> None:
        self.api.send_gate = asyncio.Event()
        task = asyncio.create_task(self.controller.send_message("first"))
        while not self.controller.is_loading:
            await asyncio.sleep(0)

        self.controller.set_draft("next question")
        with self.assertRaises(ConversationBusyError):
            await self.controller.submit()
        self.assertEqual(self.controller.composer.text, "next question")

        self.api.send_gate.set()
        await task

    async def test_submit_stream_resets_composer(self) -> None:
        self.api.stream_chunks = [StreamChunk("text", "ok"), StreamChunk("done")]
        self.controller.set_draft("stream please")

        chunks = await _collect(self.controller.submit_stream())

        self.assertEqual(len(chunks), 2)
        self.assertEqual(self.controller.composer.text, "")
        self.assertEqual(self.controller.messages[-1].content, "ok")

    async def test_display_content_leaves_assistant_text_alone(self) -> None:
        message = Message("assistant", "see @google_search")
        self.assertEqual(self.controller.display_content(message), "see @google_search")


if __name__ == "__main__":
    unittest.main()
