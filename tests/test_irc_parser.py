from Livechat_Wizard.irc_parser import is_ping, parse_line, parse_tags, pong_reply
from Livechat_Wizard.data_models import DEFAULT_CHAT_COLOR
import pytest


#the canonical tagged PRIVMSG yields sender, color and body
def test_parse_tagged_privmsg():
    event = parse_line("@color=#FF0000 :alice!alice@host PRIVMSG #foo :hello world")
    assert event is not None
    assert event.username == "alice"
    assert event.color == "#FF0000"
    assert event.body == "hello world"

#a full Twitch line with many tags, including ':' inside the emotes tag
def test_parse_real_twitch_line():
    raw = ("@badge-info=;badges=broadcaster/1;color=#1E90FF;display-name=Bob;"
           "emotes=25:0-4,12-16/1902:6-10;id=b34ccfc7;mod=0;room-id=1337;subscriber=0;"
           "tmi-sent-ts=1507246572675;turbo=0;user-id=1337;user-type= "
           ":bob!bob@bob.tmi.twitch.tv PRIVMSG #somechannel :Kappa Keepo Kappa\r\n")
    event = parse_line(raw)
    assert event.username == "bob"
    assert event.color == "#1E90FF"
    assert event.body == "Kappa Keepo Kappa"

#colons inside the message text belong to the body
def test_body_keeps_colons():
    event = parse_line(":carol!carol@host PRIVMSG #foo :time is 12:30: see you")
    assert event.body == "time is 12:30: see you"

@pytest.mark.parametrize(
    "raw",
    [
        ":dave!dave@host PRIVMSG #foo :hi",                 # no tags at all
        "@badges=;color= :dave!dave@host PRIVMSG #foo :hi",  # empty color
        "@badges=;color=;mod=0 :dave!dave@host PRIVMSG #foo :hi",
    ]
)
def test_missing_or_empty_color_uses_default(raw):
    event = parse_line(raw)
    assert event is not None
    assert event.color == DEFAULT_CHAT_COLOR

#control frames and other commands are skipped, not errors
@pytest.mark.parametrize(
    "raw",
    [
        "PING :tmi.twitch.tv",
        ":tmi.twitch.tv CAP * ACK :twitch.tv/tags",
        ":justinfan12345!justinfan12345@justinfan12345.tmi.twitch.tv JOIN #foo",
        ":justinfan12345.tmi.twitch.tv 353 justinfan12345 = #foo :justinfan12345",
        ":tmi.twitch.tv 001 justinfan12345 :Welcome, GLHF!",
        "@msg-id=subs_on :tmi.twitch.tv NOTICE #foo :This room is now in subscribers-only mode.",
        "@login=eve;target-msg-id=abc :tmi.twitch.tv CLEARMSG #foo :PRIVMSG removed",
        "",
        "   \r\n",
    ]
)
def test_non_chat_lines_yield_none(raw):
    assert parse_line(raw) is None

#malformed candidates are skipped rather than raising
@pytest.mark.parametrize(
    "raw",
    [
        "PRIVMSG #foo :no prefix",
        ":alice!alice@host PRIVMSG #foo :",
        ":alice!alice@host PRIVMSG #foo :   ",
        ":alice!alice@host PRIVMSG #foo",
        ":!@host PRIVMSG #foo :no nick",
        "@color=#FF0000",
    ]
)
def test_malformed_privmsg_yields_none(raw):
    assert parse_line(raw) is None

def test_surrounding_whitespace_is_tolerated():
    event = parse_line("  @color=#00FF00 :frank!frank@host PRIVMSG #foo :spaced out  \r\n")
    assert event.username == "frank"
    assert event.color == "#00FF00"
    assert event.body == "spaced out"

def test_each_parse_creates_a_new_event_id():
    raw = ":alice!alice@host PRIVMSG #foo :hi"
    assert parse_line(raw).id != parse_line(raw).id

def test_parse_tags():
    assert parse_tags("@a=1;b=;c=x=y") == {"a": "1", "b": "", "c": "x=y"}

def test_ping_pong():
    assert is_ping("PING :tmi.twitch.tv\r\n")
    assert not is_ping(":alice!alice@host PRIVMSG #foo :PING")
    assert pong_reply("PING :tmi.twitch.tv") == "PONG :tmi.twitch.tv"
    assert pong_reply("PING") == "PONG"

#leading spaces inside the message text are part of the body
def test_body_keeps_inner_leading_spaces():
    event = parse_line(":alice!alice@host PRIVMSG #foo :   indented text")
    assert event.body == "   indented text"
