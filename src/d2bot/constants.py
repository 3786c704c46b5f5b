from __future__ import annotations

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_HARD_LIMIT = 4096
DEFAULT_CHUNK_LEN = 4000  # leave room for the "Failed to render" prefix

DEFAULT_POLLING_INTERVAL = 5
DEFAULT_RENDER_TIMEOUT_S = 60.0

# per-call timeouts (seconds)
ACTION_TIMEOUT_S = 3.0
REQUEST_TIMEOUT_S = 15.0
POLL_TIMEOUT_MARGIN_S = 10.0

INFISICAL_SITE_URL = "https://app.infisical.com"

D2_FILE_EXTENSION = ".d2"
MAX_DOCUMENT_BYTES = 20 * 1024 * 1024  # getFile download limit
RENDER_PADDING = 40
RENDER_SCALE = 1.0
RENDER_LAYOUT = "dagre"
RENDERED_FILENAME = "diagram.png"

REACTION_RENDERED = "\U0001f44c"  # 👌

COMMAND_START = "/start"
COMMAND_HELP = "/help"
COMMAND_PRIVACY = "/privacy"

MESSAGE_HELP = (
    "This is a [Telegram Bot](https://github.com/meinside/telegram-d2-bot) "
    "which replies to your messages with [D2](https://github.com/terrastruct/d2)"
    "-generated .svg files in .png format.\n\n"
    "Send the diagram source as a message, or upload it as a `.d2` file."
)
MESSAGE_PRIVACY = (
    "[Privacy Policy](https://github.com/meinside/telegram-d2-bot/raw/master/PRIVACY.md)"
)
MESSAGE_NOT_SUPPORTED = "This type of message is not supported (yet)."
MESSAGE_NO_MATCHING_COMMAND = "Not a supported command: {command}"
MESSAGE_NOT_D2_FILE = "'{file_name}' does not seem to be a .d2 file."
MESSAGE_FILE_TOO_LARGE = "'{file_name}' is too large to fetch ({file_size} bytes)."
MESSAGE_RENDER_FAILED = "Failed to render message: {reason}"
