"""
Curated command summary shown when the server prints its help text.
"""

from .events import HelpBlock

HELP_COMMANDS = (
    (".n <name>", "Set your username"),
    (".b, .hi, .e", "Private beeps/hilite/echo"),
    (".w, .f, .a", "List users/channels"),
    (".i <number>", "List user info"),
    (".d", "10 minute timestamping"),
    (".p <number> <message>", "Send private message"),
    (".t, .u, .v", "Chat server info"),
    (".g, .s <number>", "Gag/channel squelch users"),
    (".q", "Quit chat"),
    ("%, .e <char>", "Emote message/change emote char"),
    (".l", "Lock a channel"),
    (".k <number>", "Kick user"),
    (".o <number>", "Give channel ownership"),
    (".c <channel>", "Change channels"),
    (".y", "Cross channel yell"),
    (".hu, .m", "Hush yelling/messages"),
)


def help_block() -> HelpBlock:
    return HelpBlock(commands=HELP_COMMANDS)
