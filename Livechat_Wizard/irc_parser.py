"""
IRC line parsing for Twitch chat.

A raw line looks like:

    @badge-info=;color=#FF0000;display-name=Alice :alice!alice@alice.tmi.twitch.tv PRIVMSG #foo :hello world

Only PRIVMSG lines become chat events. Everything else (PING, capability
acks, JOIN/NAMES replies, server notices) is ignored by returning None.
"""
import re
from typing import Dict, Optional

from Livechat_Wizard.data_models import ChatEvent, DEFAULT_CHAT_COLOR

CHAT_MESSAGE_COMMAND = "PRIVMSG"
PING_COMMAND = "PING"

# :nick!user@host
_PREFIX_PATTERN = re.compile(r"^:(?P<nick>[^!@\s]+)[!@]\S*$")
# PRIVMSG #channel :message text
_PRIVMSG_PATTERN = re.compile(r"^PRIVMSG\s+#(?P<channel>[^\s:]+)\s*:(?P<body>.*)$")


def parse_tags(tag_segment: str) -> Dict[str, str]:
    """Splits an IRCv3 tag segment ('@a=1;b=2', leading '@' optional) into a dict."""
    tags = {}
    for pair in tag_segment.lstrip("@").split(";"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        tags[key] = value
    return tags


def is_ping(line: str) -> bool:
    """True for the server keep-alive probe, e.g. 'PING :tmi.twitch.tv'."""
    return line.strip().startswith(PING_COMMAND)


def pong_reply(line: str) -> str:
    """Builds the keep-alive reply echoing the PING payload."""
    payload = line.strip()[len(PING_COMMAND):].strip()
    return f"PONG {payload}" if payload else "PONG"


def parse_line(raw_line: str) -> Optional[ChatEvent]:
    """
    Turns a raw protocol line into a ChatEvent, or None when the line is not a
    chat message or is missing the sender or the message body.

    This is a best-effort parser: it never raises for malformed input.
    """
    if not raw_line:
        return None
    line = raw_line.strip()
    if CHAT_MESSAGE_COMMAND not in line:
        return None

    tags = {}
    if line.startswith("@"):
        tag_segment, _, line = line.partition(" ")
        tags = parse_tags(tag_segment)
        line = line.lstrip()

    prefix, _, rest = line.partition(" ")
    prefix_match = _PREFIX_PATTERN.match(prefix)
    if not prefix_match:
        return None

    message_match = _PRIVMSG_PATTERN.match(rest.strip())
    if not message_match:
        return None

    # the line is already stripped; spacing inside the message is kept as sent
    body = message_match.group("body")
    if not body.strip():
        return None

    return ChatEvent(
        username=prefix_match.group("nick"),
        body=body,
        color=tags.get("color") or DEFAULT_CHAT_COLOR,
    )
