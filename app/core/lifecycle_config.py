import os
from datetime import timedelta

# --------------------------------------------------
# CONNECTION REQUESTS
# --------------------------------------------------

# How long the receiver has to act on a pending request
CONNECTION_REQUEST_WINDOW = timedelta(
    hours=int(os.getenv("CONNECTION_REQUEST_WINDOW_HOURS", str(7 * 24)))
)

# --------------------------------------------------
# CHAT WINDOW
# --------------------------------------------------

# Opened once, at acceptance
CHAT_WINDOW = timedelta(hours=int(os.getenv("CHAT_WINDOW_HOURS", "24")))

# --------------------------------------------------
# ROOMS
# --------------------------------------------------

DEFAULT_ROOM_DURATION_MINUTES = int(os.getenv("DEFAULT_ROOM_DURATION_MINUTES", "60"))
DEFAULT_ROOM_MAX_PARTICIPANTS = 5

ROOM_MIN_PARTICIPANTS = 2
ROOM_MAX_PARTICIPANTS = 10

# Conditional-update attempts before giving up with Unavailable
ROOM_WRITE_RETRIES = int(os.getenv("ROOM_WRITE_RETRIES", "3"))

# --------------------------------------------------
# MESSAGES
# --------------------------------------------------

# Inserts retried when a concurrent post took the same timestamp
MESSAGE_WRITE_RETRIES = int(os.getenv("MESSAGE_WRITE_RETRIES", "3"))

# --------------------------------------------------
# NOTIFICATIONS
# --------------------------------------------------

NOTIFICATION_TTL = timedelta(days=int(os.getenv("NOTIFICATION_TTL_DAYS", "30")))
