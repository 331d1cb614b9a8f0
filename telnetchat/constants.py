# TelnetChat protocol text (line-oriented, newline terminated)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8888

DEFAULT_NICK = "anonymous"

LINE_TERMINATOR = "\n"

# Command tokens. Matching is exact and case-sensitive.
CMD_NICK = "/nick"
CMD_JOIN = "/join"
CMD_SAY = "/say"
CMD_QUIT = "/quit"

WELCOME_BANNER = "Welcome to {server}!"

HELP_TEXT = (
    "/nick <name>: get a name, or stay anonymous\n"
    "/join <room>: join a room, if room doesn't exist the new room will be created\n"
    "/say <msg>:   send message to everyone in a room\n"
    "/quit:        disconnects from the chat server"
)

# Usage replies, sent to the sender only
USAGE_NICK = "usage: /nick <name>"
USAGE_JOIN = "usage: /join <room>"
USAGE_SAY = "usage: /say <msg>"

# Replies to the sender
REPLY_NICK = "all right, I will call you {name}"
REPLY_JOIN = "welcome to {room}"
REPLY_NO_ROOM = "join a room first to send a message"
REPLY_QUIT = "Sad to see you go =("

# Room announcements (never delivered to the originating session)
ANNOUNCE_JOINED = "> {name} joined the room"
ANNOUNCE_SAYS = "> {name} says: {message}"
