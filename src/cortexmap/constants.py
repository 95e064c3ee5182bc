"""Shared constants."""

# --- Time ---
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000  # 30 days
SECONDS_PER_YEAR = 31536000  # 365 days

# --- History display ---
DEFAULT_LOG_LIMIT = 10
SHORT_ID_LENGTH = 10
