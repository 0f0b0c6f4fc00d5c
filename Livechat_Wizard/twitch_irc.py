# twitch_irc.py
import logging
import random
import socket
import threading
from enum import Enum
from typing import Callable, List, Optional

from Livechat_Wizard.data_models import ChatEvent
from Livechat_Wizard.irc_parser import is_ping, parse_line, pong_reply

TWITCH_IRC_SERVER = "irc.chat.twitch.tv"
TWITCH_IRC_PORT = 6667
# Twitch accepts any password for the read-only "justinfan" guest accounts
ANONYMOUS_PASSWORD = "oauth:anonymous"
GUEST_NICK_PREFIX = "justinfan"

class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSING = "closing"

def generate_guest_nickname() -> str:
    """Random nickname following Twitch's anonymous login convention, e.g. 'justinfan48213'."""
    return f"{GUEST_NICK_PREFIX}{random.randint(10000, 99999)}"

def normalize_channel(room: str) -> str:
    return (room or "").strip().lstrip("#").lower()

def handshake_lines(channel: str, nickname: str) -> List[str]:
    """The anonymous login, capability requests and join, in the order they are sent."""
    return [
        f"PASS {ANONYMOUS_PASSWORD}",
        f"NICK {nickname}",
        "CAP REQ :twitch.tv/tags",
        "CAP REQ :twitch.tv/commands",
        f"JOIN #{channel}",
    ]


class TwitchChatClient:
    """
    A lightweight, read-only Twitch chat client speaking raw IRC over a TCP socket.

    `connect` performs the handshake on the calling thread and, once the join request
    is out, hands the socket to a daemon reader thread. Chat events and the
    end-of-connection notification are delivered on that reader thread; callers that
    own state on another thread must marshal them (see SessionCoordinator).

    There is no reconnection logic and no read timeout: a stalled connection keeps the
    reader blocked until `disconnect` closes the socket underneath it.
    """
    def __init__(self,
                 server: str = TWITCH_IRC_SERVER,
                 port: int = TWITCH_IRC_PORT,
                 connect_timeout: float = 10.0,
                 socket_factory: Optional[Callable[..., socket.socket]] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.server = server
        self.port = port
        self.connect_timeout = connect_timeout
        self.socket_factory = socket_factory or socket.create_connection

        self.state = ConnectionState.DISCONNECTED
        self.channel: Optional[str] = None
        self.nickname: Optional[str] = None

        self._lock = threading.RLock()
        # only one handshake at a time; disconnect() never takes it so it can interrupt one
        self._connect_lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._reader = None
        self._reader_thread: Optional[threading.Thread] = None
        # Bumped by every disconnect(); a connect attempt that sees it change gives up
        self._attempt = 0

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.JOINED

    def connect(self,
                room: str,
                on_event: Callable[[ChatEvent], None],
                on_disconnect: Optional[Callable[[], None]] = None) -> bool:
        """
        Connects anonymously and joins `room`.

        Returns:
            bool: True once the join request was sent and the reader thread started,
                  False if the transport could not be set up (nothing is left open).
        """
        channel = normalize_channel(room)
        if not channel:
            self.logger.error("Cannot connect: empty channel name.")
            return False

        with self._connect_lock:
            self.disconnect()
            nickname = generate_guest_nickname()
            with self._lock:
                self.state = ConnectionState.CONNECTING
                self.channel = channel
                self.nickname = nickname
                attempt = self._attempt
            self.logger.info(f"Connecting to {self.server}:{self.port} as {nickname} for #{channel}...")

            sock = None
            try:
                sock = self.socket_factory((self.server, self.port), self.connect_timeout)
                # The connect timeout must not turn into a read timeout
                sock.settimeout(None)
                reader = sock.makefile("r", encoding="utf-8", errors="replace")
            except OSError as e:
                self.logger.error(f"Error connecting to Twitch chat #{channel}: {e}")
                if sock is not None:
                    self._close_transport(sock, None)
                self.disconnect()
                return False

            with self._lock:
                cancelled = self._attempt != attempt
                if not cancelled:
                    self._sock = sock
                    self._reader = reader
            if cancelled:
                self.logger.info(f"Connection to #{channel} was cancelled while opening the socket.")
                self._close_transport(sock, reader)
                return False

            try:
                for line in handshake_lines(channel, nickname):
                    self._send(sock, line)
            except OSError as e:
                self.logger.error(f"Error joining Twitch chat #{channel}: {e}")
                self.disconnect()
                return False

            with self._lock:
                if self._sock is not sock:
                    # disconnect() won the race while the handshake was in flight
                    self.logger.info(f"Connection to #{channel} was closed during the handshake.")
                    return False
                self.state = ConnectionState.JOINED
                self._reader_thread = threading.Thread(
                    target=self._read_loop,
                    args=(sock, reader, on_event, on_disconnect),
                    name=f"TwitchChatReader-{channel}",
                    daemon=True,
                )
                self._reader_thread.start()

        self.logger.info(f"Joined #{channel}.")
        return True

    def disconnect(self) -> None:
        """Idempotent. Closes the socket (unblocking the reader) and returns to DISCONNECTED."""
        with self._lock:
            self._attempt += 1
            sock, reader, thread = self._sock, self._reader, self._reader_thread
            self._sock = None
            self._reader = None
            self._reader_thread = None
            if sock is None:
                self.state = ConnectionState.DISCONNECTED
                return
            self.state = ConnectionState.CLOSING

        self.logger.info(f"Disconnecting from #{self.channel}...")
        reader_alive = thread is not None and thread.is_alive()
        # The reader thread owns its file object while it is blocked in readline()
        self._close_transport(sock, None if reader_alive else reader)
        if reader_alive and thread is not threading.current_thread():
            thread.join(timeout=1.0)

        with self._lock:
            if self._sock is None:
                self.state = ConnectionState.DISCONNECTED
        self.logger.info("Disconnected.")

    def _send(self, sock: socket.socket, line: str) -> None:
        sock.sendall(f"{line}\r\n".encode("utf-8"))
        self.logger.debug(f"> {line if not line.startswith('PASS') else 'PASS ***'}")

    def _read_loop(self, sock, reader, on_event, on_disconnect) -> None:
        try:
            for raw_line in reader:
                if self._sock is not sock:
                    break
                line = raw_line.rstrip("\r\n")
                if is_ping(line):
                    self._send(sock, pong_reply(line))
                    continue

                event = parse_line(line)
                if event is None:
                    continue
                try:
                    on_event(event)
                except Exception as e:
                    self.logger.error(f"Chat event handler failed for message from {event.username}: {e}", exc_info=True)
            else:
                self.logger.info("End of stream from Twitch chat.")
        except (OSError, ValueError) as e:
            # ValueError: the file object was closed underneath us by disconnect()
            if self._sock is sock:
                self.logger.warning(f"Twitch chat read loop terminated: {e}")
        finally:
            with self._lock:
                was_current = self._sock is sock
                if was_current:
                    self._sock = None
                    self._reader = None
                    self._reader_thread = None
                    self.state = ConnectionState.CLOSING
            if was_current:
                self._close_transport(sock, reader)
                with self._lock:
                    if self._sock is None:
                        self.state = ConnectionState.DISCONNECTED
            else:
                self._close_reader(reader)

            # Only the live connection reports its own loss; an explicit disconnect() is not news
            if was_current and on_disconnect:
                try:
                    on_disconnect()
                except Exception as e:
                    self.logger.error(f"Disconnect handler failed: {e}", exc_info=True)

    def _close_transport(self, sock, reader) -> None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already closed by the peer
        self._close_reader(reader)
        try:
            sock.close()
        except OSError as e:
            self.logger.error(f"Error disconnecting: {e}")

    def _close_reader(self, reader) -> None:
        if reader is None:
            return
        try:
            reader.close()
        except (OSError, ValueError) as e:
            self.logger.debug(f"Error closing chat reader: {e}")
