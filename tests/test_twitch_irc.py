import socket
import threading

import pytest

from Livechat_Wizard.twitch_irc import (
    ConnectionState,
    TwitchChatClient,
    generate_guest_nickname,
    handshake_lines,
    normalize_channel,
)

WAIT_S = 5


class FakeTwitchServer:
    """The far end of a socketpair, standing in for irc.chat.twitch.tv."""
    def __init__(self):
        self.server_sock, self.client_sock = socket.socketpair()
        self.reader = self.server_sock.makefile("r", encoding="utf-8", newline="\r\n")
        self.addresses = []

    def factory(self, address, timeout=None):
        self.addresses.append((address, timeout))
        return self.client_sock

    def read_line(self):
        return self.reader.readline().rstrip("\r\n")

    def read_handshake(self):
        return [self.read_line() for _ in range(5)]

    def send(self, line):
        self.server_sock.sendall(f"{line}\r\n".encode("utf-8"))

    def close(self):
        try:
            self.server_sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.reader.close()
        self.server_sock.close()


class Collector:
    def __init__(self):
        self.events = []
        self.got_event = threading.Event()
        self.disconnected = threading.Event()

    def on_event(self, event):
        self.events.append(event)
        self.got_event.set()

    def on_disconnect(self):
        self.disconnected.set()


@pytest.fixture
def server():
    fake = FakeTwitchServer()
    yield fake
    fake.close()

@pytest.fixture
def client(server):
    chat_client = TwitchChatClient(server="irc.example", port=6667, socket_factory=server.factory)
    yield chat_client
    chat_client.disconnect()


def test_guest_nickname_follows_anonymous_convention():
    nick = generate_guest_nickname()
    assert nick.startswith("justinfan")
    assert 10000 <= int(nick[len("justinfan"):]) <= 99999

def test_normalize_channel():
    assert normalize_channel("  #SomeStreamer ") == "somestreamer"
    assert normalize_channel("") == ""

#connect sends the anonymous login, both capability requests and a lowercase join
def test_connect_sends_handshake(server, client):
    collector = Collector()
    assert client.connect("SomeStreamer", collector.on_event, collector.on_disconnect)
    assert client.state == ConnectionState.JOINED
    assert client.is_connected
    assert server.addresses == [(("irc.example", 6667), 10.0)]

    lines = server.read_handshake()
    assert lines == handshake_lines("somestreamer", client.nickname)
    assert lines[0] == "PASS oauth:anonymous"
    assert lines[1].startswith("NICK justinfan")
    assert lines[2] == "CAP REQ :twitch.tv/tags"
    assert lines[3] == "CAP REQ :twitch.tv/commands"
    assert lines[4] == "JOIN #somestreamer"

#PINGs are answered on the reader thread and never reach the handler
def test_ping_is_answered_with_pong(server, client):
    collector = Collector()
    assert client.connect("foo", collector.on_event, collector.on_disconnect)
    server.read_handshake()

    server.send("PING :tmi.twitch.tv")
    assert server.read_line() == "PONG :tmi.twitch.tv"
    assert collector.events == []

#chat messages are parsed and delivered; control frames are skipped
def test_chat_messages_are_delivered(server, client):
    collector = Collector()
    assert client.connect("foo", collector.on_event, collector.on_disconnect)
    server.read_handshake()

    server.send(":tmi.twitch.tv CAP * ACK :twitch.tv/tags")
    server.send(":justinfan1!justinfan1@justinfan1.tmi.twitch.tv JOIN #foo")
    server.send("@color=#FF0000 :alice!alice@host PRIVMSG #foo :hello world")
    assert collector.got_event.wait(WAIT_S)

    assert len(collector.events) == 1
    event = collector.events[0]
    assert (event.username, event.body, event.color) == ("alice", "hello world", "#FF0000")

#a handler that raises does not take the connection down
def test_failing_handler_does_not_stop_the_loop(server, client):
    received = []
    second = threading.Event()

    def on_event(event):
        received.append(event.body)
        if event.body == "first":
            raise RuntimeError("boom")
        second.set()

    assert client.connect("foo", on_event)
    server.read_handshake()
    server.send(":alice!alice@host PRIVMSG #foo :first")
    server.send(":alice!alice@host PRIVMSG #foo :second")
    assert second.wait(WAIT_S)
    assert received == ["first", "second"]
    assert client.is_connected

#end of stream from the server reports the loss and returns to DISCONNECTED
def test_server_close_reports_disconnect(server, client):
    collector = Collector()
    assert client.connect("foo", collector.on_event, collector.on_disconnect)
    server.read_handshake()

    server.close()
    assert collector.disconnected.wait(WAIT_S)
    assert client.state == ConnectionState.DISCONNECTED

#an explicit disconnect unblocks the reader and does not report a loss
def test_disconnect_unblocks_reader(server, client):
    collector = Collector()
    assert client.connect("foo", collector.on_event, collector.on_disconnect)
    server.read_handshake()
    reader_thread = client._reader_thread

    client.disconnect()
    reader_thread.join(WAIT_S)
    assert not reader_thread.is_alive()
    assert client.state == ConnectionState.DISCONNECTED
    assert not collector.disconnected.is_set()

def test_disconnect_is_idempotent(client):
    client.disconnect()
    client.disconnect()
    assert client.state == ConnectionState.DISCONNECTED

#transport failure while opening the connection returns False and leaves nothing open
def test_connect_failure_returns_false():
    def refuse(address, timeout=None):
        raise ConnectionRefusedError("refused")

    chat_client = TwitchChatClient(socket_factory=refuse)
    collector = Collector()
    assert chat_client.connect("foo", collector.on_event, collector.on_disconnect) is False
    assert chat_client.state == ConnectionState.DISCONNECTED
    assert not collector.disconnected.is_set()

#a write failure during the handshake also returns False
def test_handshake_write_failure_returns_false(server):
    server.close()
    chat_client = TwitchChatClient(socket_factory=server.factory)
    assert chat_client.connect("foo", lambda event: None) is False
    assert chat_client.state == ConnectionState.DISCONNECTED

def test_connect_rejects_empty_channel(client):
    assert client.connect("   ", lambda event: None) is False
    assert client.state == ConnectionState.DISCONNECTED

#connecting again tears the previous connection down first
def test_reconnect_replaces_previous_connection():
    first, second = FakeTwitchServer(), FakeTwitchServer()
    servers = iter([first, second])
    chat_client = TwitchChatClient(socket_factory=lambda address, timeout=None: next(servers).client_sock)
    collector = Collector()
    try:
        assert chat_client.connect("one", collector.on_event, collector.on_disconnect)
        first.read_handshake()
        old_reader = chat_client._reader_thread

        assert chat_client.connect("two", collector.on_event, collector.on_disconnect)
        assert second.read_handshake()[-1] == "JOIN #two"
        old_reader.join(WAIT_S)
        assert not old_reader.is_alive()
        # the old socket was closed from our side
        assert first.read_line() == ""
        assert chat_client.channel == "two"
        assert chat_client.is_connected
        assert not collector.disconnected.is_set()
    finally:
        chat_client.disconnect()
        first.close()
        second.close()

#disconnect() while the socket is still being opened cancels the attempt
def test_disconnect_during_socket_open_cancels_connect(server):
    entered, release = threading.Event(), threading.Event()

    def slow_factory(address, timeout=None):
        entered.set()
        release.wait(WAIT_S)
        return server.factory(address, timeout)

    chat_client = TwitchChatClient(socket_factory=slow_factory)
    results = []
    connecting = threading.Thread(target=lambda: results.append(chat_client.connect("foo", lambda event: None)))
    connecting.start()
    assert entered.wait(WAIT_S)

    chat_client.disconnect()
    release.set()
    connecting.join(WAIT_S)

    assert results == [False]
    assert chat_client.state == ConnectionState.DISCONNECTED
    assert chat_client._reader_thread is None
    # the freshly opened socket was closed without sending the handshake
    assert server.read_line() == ""
