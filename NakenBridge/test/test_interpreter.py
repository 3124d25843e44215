"""
End-to-end tests of the interpreter: relay frames in, thread and roster
state out.
"""

import pytest

from NakenBridge.config import config
from NakenBridge.core.interpreter import (
    MAIN_THREAD,
    ClassifierState,
    PrivateMessage,
    ProtocolInterpreter,
    RelayNotice,
    TransportError,
    WelcomeBanner,
)
from NakenBridge.core.message.protocol import ErrorEnvelope


@pytest.fixture
def interpreter(clock):
    interpreter = ProtocolInterpreter(own_name="alice", clock=clock)
    interpreter.classifier.skip_banner()
    return interpreter


def main_text(interpreter):
    return [entry.content for entry in interpreter.threads.main.entries]


class TestPrivateRouting:

    def test_incoming_private_message_gets_own_thread(self, interpreter):
        interpreter.feed_frame("<2>bob (private): hi there\n")

        thread = interpreter.threads.get("pm_2")
        assert thread is not None
        assert len(thread.entries) == 1
        assert thread.entries[0].author == "bob"
        assert thread.entries[0].content == "bob: hi there"
        assert not any("hi there" in text for text in main_text(interpreter))

    def test_terse_confirmation_uses_pending_send(self, interpreter):
        interpreter.arm_private_send("3", "yo", name="carol")
        interpreter.feed_frame(">> Message sent to [3]carol.\n")

        thread = interpreter.threads.get("pm_3")
        assert [entry.content for entry in thread.entries] == ["You (you): yo"]
        assert thread.peer_name == "carol"
        assert interpreter.pending.peek() is None

    def test_confirmation_for_other_slot_is_left_alone(self, interpreter, clock):
        interpreter.arm_private_send("3", "yo", name="carol")
        interpreter.feed_frame(">> Message sent to [4]carol.\n")

        assert interpreter.threads.keys() == [MAIN_THREAD]
        assert interpreter.pending.matches("3")
        assert main_text(interpreter) == [">> Message sent to [4]carol."]

        clock.advance(config.PENDING_SEND_TIMEOUT)
        assert interpreter.sweep()
        assert interpreter.pending.peek() is None

    def test_confirmation_after_expiry_is_plain_chat(self, interpreter, clock):
        interpreter.arm_private_send("3", "yo", name="carol")
        clock.advance(config.PENDING_SEND_TIMEOUT + 1)
        interpreter.feed_frame(">> Message sent to [3]carol.\n")

        assert "pm_3" not in interpreter.threads
        assert main_text(interpreter) == [">> Message sent to [3]carol."]

    def test_pending_name_from_thread_then_roster(self, interpreter):
        interpreter.feed_frame("<2>bob (private): hi\n")
        interpreter.arm_private_send("2", "back")
        assert interpreter.pending.peek().name == "bob"

        interpreter.feed_frame("Name   Channel   Idle Location\n[7]gina ----- Main 1m host\nTotal: 1\n")
        interpreter.arm_private_send("7", "hey")
        assert interpreter.pending.peek().name == "gina"

        interpreter.arm_private_send("9", "anyone")
        assert interpreter.pending.peek().name == ""


class TestFrames:

    def test_line_split_across_frames(self, interpreter):
        first = interpreter.feed_frame("<2>bob (pri")
        assert first.events == []
        second = interpreter.feed_frame("vate): hi\r\n")
        assert [type(e) for e in second.events] == [PrivateMessage]

    def test_several_lines_in_one_frame(self, interpreter):
        batch = interpreter.feed_frame("[0]alice: one\n\0[1]bob: two\n")
        assert batch.lines == ["[0]alice: one", "[1]bob: two"]
        assert main_text(interpreter) == ["#0 *alice: one", "#1 bob: two"]

    def test_error_envelope_is_never_classified(self, interpreter):
        interpreter.feed_frame("[0]alice: part")
        batch = interpreter.feed_frame(ErrorEnvelope("Connection to chat server lost: reset").serialize())

        assert batch.error == TransportError("Connection to chat server lost: reset")
        assert batch.events == [batch.error]
        assert interpreter.lines.pending == "[0]alice: part"
        entry = interpreter.threads.main.entries[-1]
        assert (entry.kind, entry.content) == ("error", "Connection to chat server lost: reset")

    def test_relay_notices_do_not_enter_banner(self, clock):
        interpreter = ProtocolInterpreter(clock=clock)
        greeting = interpreter.feed_frame(config.GREETING)
        connected = interpreter.feed_frame(config.CONNECTED_NOTICE)
        banner = interpreter.feed_frame("Naken Chat\n>> You just logged on line 1 from: host\n")

        assert greeting.events == [RelayNotice("Welcome to Naken Chat Client!")]
        assert connected.events == [RelayNotice("Connected to server")]
        assert banner.events == [WelcomeBanner("Naken Chat\n>> You just logged on line 1 from: host")]
        assert interpreter.banner_shown
        assert main_text(interpreter) == ["Welcome to Naken Chat Client!", "Connected to server"]

    def test_closed_notice_after_unterminated_line(self, interpreter):
        interpreter.feed_frame("[0]bob: bye")
        batch = interpreter.feed_frame(config.UPSTREAM_CLOSED_NOTICE)

        assert batch.events[-1] == RelayNotice("Chat server connection closed")
        assert batch.lines == ["[0]bob: bye"]
        assert interpreter.lines.pending == ""
        assert main_text(interpreter) == ["#0 bob: bye", "Chat server connection closed"]

    def test_help_block_shown_and_server_help_suppressed(self, interpreter):
        interpreter.feed_frame("List of commands:\n.n <name> - set name\n\n[0]alice: hello\n")

        texts = main_text(interpreter)
        assert len(texts) == 2
        assert texts[0].startswith("Available Commands:")
        assert texts[1] == "#0 *alice: hello"
        assert not any(".n <name> - set name" in text for text in texts)

    def test_chat_entries_rendered_once(self, interpreter):
        interpreter.feed_frame("[1]bob: hi :)\n")
        entry = interpreter.threads.main.entries[0]
        assert entry.rendered
        assert interpreter.renderer.render(entry) is entry


class TestConnectionReset:

    def test_reset_clears_private_state(self, interpreter):
        interpreter.feed_frame("<2>bob (private): hi\n[0]alice: public\n")
        interpreter.arm_private_send("2", "bye")

        interpreter.reset_connection()

        assert interpreter.threads.keys() == [MAIN_THREAD]
        assert interpreter.pending.peek() is None
        assert len(interpreter.roster) == 0
        assert interpreter.classifier.state is ClassifierState.AWAITING_BANNER
        assert main_text(interpreter) == ["#0 *alice: public"]

    def test_own_name_change_reaches_renderer(self, interpreter):
        interpreter.own_name = "bob"
        interpreter.feed_frame("[1]bob: me now\n")
        assert main_text(interpreter) == ["#1 *bob: me now"]

    def test_flush_classifies_trailing_partial_line(self, interpreter):
        interpreter.feed_frame("[0]alice: no newline")
        events = interpreter.flush()
        assert len(events) == 1
        assert main_text(interpreter) == ["#0 *alice: no newline"]
