"""Central configuration for endpoints, storage keys and constants."""

import os
from pathlib import Path

# Hosted gateway endpoint, override with POCKETCHAT_PUTER_API_BASE
PUTER_API_BASE = os.environ.get("POCKETCHAT_PUTER_API_BASE", "https://api.puter.com")

# Seconds allowed for each HTTP request made by a transport
REQUEST_TIMEOUT = float(os.environ.get("POCKETCHAT_REQUEST_TIMEOUT", "120"))

# Default directory for the File storage
DATA_DIR = Path(
    os.environ.get("POCKETCHAT_DATA_DIR", str(Path.home() / ".pocketchat"))
)

# Storage keys
PUTER_TOKEN_KEY = "puter_token"
OPEN_WEBUI_TOKEN_KEY = "open_webui_token"
SERVER_URL_KEY = "server_url"
CONVERSATIONS_KEY = "conversations"

# Conversation titles
TITLE_MAX_LENGTH = 50
TITLE_ELLIPSIS = "..."

# Shown in place of the assistant reply when a turn fails
FAILURE_MESSAGE = "Sorry, an error occurred. Please try again."
