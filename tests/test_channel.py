"""
Tests for line framing, dot-stuffing and request/response alternation
"""
import pytest

from mailwire.core.email.channel import LineChannel, dot_stuff, dot_unstuff
from mailwire.core.email.dialect import POP3_DIALECT, SMTP_DIALECT
from mailwire.core.email.events import EventBus
from mailwire.core.models.session import EventKind
from mailwire.utils.errors import ProtocolError, ReadError, TransportError, WriteError

from test_helpers import SILENT, ScriptedServer, pop3_body


def make_channel(server, dialect=SMTP_DIALECT, timeout=1.0, events=None):
    bus = EventBus()
    if events is not None:
        bus.subscribe(events.append)
    return LineChannel(server.stream(), dialect, timeout=timeout, events=bus)


class TestDotStuffing:
    """Test the transparency procedure for message bodies"""

    def test_leading_dots_are_doubled(self):
        stuffed, at_line_start = dot_stuff(b".first\r\nplain\r\n.second", True)
        assert stuffed == b"..first\r\nplain\r\n..second"
        assert at_line_start is False

    def test_chunk_continuing_a_line_is_not_stuffed(self):
        """A dot in the middle of a line split across chunks stays single"""
        stuffed, at_line_start = dot_stuff(b".5 percent\r\n", False)
        assert stuffed == b".5 percent\r\n"
        assert at_line_start is True

    def test_lone_dot_line_is_escaped(self):
        stuffed, _ = dot_stuff(b"before\r\n.\r\nafter\r\n")
        assert stuffed == b"before\r\n..\r\nafter\r\n"

    def test_unstuff(self):
        assert dot_unstuff("..hidden") == ".hidden"
        assert dot_unstuff("..") == "."
        assert dot_unstuff(".single") == ".single"
        assert dot_unstuff("plain") == "plain"


class TestSendAndRead:
    """Test command/reply exchange"""

    @pytest.mark.asyncio
    async def test_single_line_reply(self):
        server = ScriptedServer(replies=["250 OK"])
        channel = make_channel(server)

        response = await channel.send_and_read("NOOP")

        assert server.commands == ["NOOP"]
        assert server.raw == b"NOOP\r\n"
        assert response.ok
        assert response.code == 250
        assert response.extra_lines == ()
        assert not channel.pending

    @pytest.mark.asyncio
    async def test_continuation_lines_form_one_reply(self):
        server = ScriptedServer(replies=["250-first\r\n250-second\r\n250 last", "250 next"])
        channel = make_channel(server)

        response = await channel.send_and_read("EHLO client")

        assert response.status_line == "250-first"
        assert response.extra_lines == ("250-second", "250 last")
        assert response.lines == ["250-first", "250-second", "250 last"]

        # The following reply starts cleanly after the continuation block.
        response = await channel.send_and_read("NOOP")
        assert response.status_line == "250 next"

    @pytest.mark.asyncio
    async def test_negative_reply_is_returned_not_raised(self):
        server = ScriptedServer(replies=["550 No such user"])
        channel = make_channel(server)

        response = await channel.send_and_read("RCPT TO:<nobody@example.com>")

        assert not response.ok
        assert response.code == 550

    @pytest.mark.asyncio
    async def test_multiline_body_is_unstuffed(self):
        body = pop3_body("+OK 3 lines", ["Subject: hi", "", ".dotted", "."])
        server = ScriptedServer(replies=[body])
        channel = make_channel(server, dialect=POP3_DIALECT)

        response = await channel.send_and_read("RETR 1", multiline=True)

        assert response.ok
        assert response.status_line == "+OK 3 lines"
        assert response.extra_lines == ("Subject: hi", "", ".dotted", ".")

    @pytest.mark.asyncio
    async def test_only_the_line_terminator_is_stripped(self):
        server = ScriptedServer(replies=["+OK\r\nline with cr\r\r\n.\r\r\nafter\r\n.", "+OK done"])
        channel = make_channel(server, dialect=POP3_DIALECT)

        response = await channel.send_and_read("RETR 1", multiline=True)

        assert response.extra_lines == ("line with cr\r", ".\r", "after")
        assert (await channel.send_and_read("NOOP")).status_line == "+OK done"

    @pytest.mark.asyncio
    async def test_bare_newline_terminator(self):
        server = ScriptedServer()
        server.reader.feed_data(b"+OK bare\n")
        channel = make_channel(server, dialect=POP3_DIALECT)

        assert await channel.read_line() == "+OK bare"

    @pytest.mark.asyncio
    async def test_multiline_negative_reply_has_no_body(self):
        server = ScriptedServer(replies=["-ERR no such message", "+OK"])
        channel = make_channel(server, dialect=POP3_DIALECT)

        response = await channel.send_and_read("RETR 9", multiline=True)
        assert not response.ok
        assert response.extra_lines == ()

        assert (await channel.send_and_read("NOOP")).ok

    @pytest.mark.asyncio
    async def test_read_line_and_read_multiline(self):
        server = ScriptedServer(replies=[pop3_body("+OK", ["a", "..b"])])
        channel = make_channel(server, dialect=POP3_DIALECT)

        await channel.send("LIST")
        assert channel.pending
        assert await channel.read_line() == "+OK"
        assert await channel.read_multiline() == ["a", "..b"]
        assert not channel.pending

    @pytest.mark.asyncio
    async def test_events_use_display_text(self):
        events = []
        server = ScriptedServer(replies=["+OK"])
        channel = make_channel(server, dialect=POP3_DIALECT, events=events)

        await channel.send_and_read("PASS hunter2", display="PASS ********")

        assert [event.kind for event in events] == [
            EventKind.COMMAND_SENT,
            EventKind.RESPONSE_RECEIVED,
        ]
        assert events[0].command == "PASS ********"
        assert events[0].protocol == "pop3"
        assert events[1].response == "+OK"


class TestFramingRules:
    """Test enforcement of line and alternation rules"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("line", ["RCPT TO:<a@b.c>\r\nDATA", "NOOP\n", "X\rY"])
    async def test_embedded_line_breaks_rejected(self, line):
        server = ScriptedServer(replies=["250 OK"])
        channel = make_channel(server)

        with pytest.raises(ProtocolError, match="CR or LF"):
            await channel.send(line)

        assert server.raw == b""
        assert not channel.pending

    @pytest.mark.asyncio
    async def test_second_command_before_reply_rejected(self):
        server = ScriptedServer(replies=["250 OK", "250 OK"])
        channel = make_channel(server)

        await channel.send("NOOP")
        with pytest.raises(ProtocolError, match="previous reply"):
            await channel.send("NOOP")

        assert server.commands == ["NOOP"]

    @pytest.mark.asyncio
    async def test_upgrade_while_pending_rejected(self):
        server = ScriptedServer(replies=["220 go"])
        channel = make_channel(server)

        await channel.send("STARTTLS")
        with pytest.raises(ProtocolError):
            await channel.upgrade()

        assert not server.tls_started


class TestReadFailures:
    """Test deadlines and end of stream"""

    @pytest.mark.asyncio
    async def test_silence_raises_read_error(self):
        server = ScriptedServer(replies=[SILENT])
        channel = make_channel(server, timeout=0.05)

        with pytest.raises(ReadError, match="No response"):
            await channel.send_and_read("NOOP")

        # The stream position is unknown; the channel refuses further use.
        with pytest.raises(TransportError):
            await channel.read_line()

    @pytest.mark.asyncio
    async def test_end_of_stream_raises_read_error(self):
        server = ScriptedServer(replies=[])
        channel = make_channel(server)

        with pytest.raises(ReadError, match="closed by server"):
            await channel.send_and_read("NOOP")

    @pytest.mark.asyncio
    async def test_end_of_stream_inside_body_raises_read_error(self):
        server = ScriptedServer(replies=["+OK\r\npartial line"])
        channel = make_channel(server, dialect=POP3_DIALECT)
        await channel.send("RETR 1")
        server.reader.feed_eof()

        assert await channel.read_line() == "+OK"
        with pytest.raises(ReadError):
            await channel.read_multiline()

    @pytest.mark.asyncio
    async def test_write_failure_raises_write_error(self):
        server = ScriptedServer(replies=["250 OK"])
        server.write_error = ConnectionResetError("reset by peer")
        channel = make_channel(server)

        with pytest.raises(WriteError, match="reset by peer"):
            await channel.send("NOOP")


class TestSendData:
    """Test message body transmission"""

    @pytest.mark.asyncio
    async def test_body_is_stuffed_and_terminated(self):
        events = []
        server = ScriptedServer(replies=["354 go ahead", "250 queued"])
        channel = make_channel(server, events=events)

        assert (await channel.send_and_read("DATA")).code == 354
        await channel.send_data([b"hello\r\n.world", b"\r\n", b"", b".\r\nend"])
        assert channel.pending

        response = await channel.read_response()

        assert response.code == 250
        assert server.data_lines == [b"hello", b"..world", b"..", b"end"]
        assert server.raw.endswith(b"end\r\n.\r\n")
        assert events[2].command == "<message data>"

    @pytest.mark.asyncio
    async def test_send_data_while_pending_rejected(self):
        server = ScriptedServer(replies=["354 go ahead"])
        channel = make_channel(server)
        await channel.send("DATA")

        with pytest.raises(ProtocolError):
            await channel.send_data([b"body\r\n"])

    @pytest.mark.asyncio
    async def test_failure_mid_body_breaks_channel(self):
        def chunks():
            yield b"first line\r\n"
            raise ReadError("attachment vanished")

        server = ScriptedServer(replies=["354 go ahead"])
        channel = make_channel(server)
        await channel.send_and_read("DATA")

        with pytest.raises(ReadError):
            await channel.send_data(chunks())

        with pytest.raises(TransportError):
            await channel.send("RSET")


class TestClose:
    """Test channel release"""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        server = ScriptedServer()
        channel = make_channel(server)

        await channel.close()
        await channel.close()

        assert channel.closed
        assert server.writer.closed
