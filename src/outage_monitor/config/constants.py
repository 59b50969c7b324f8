"""
Constants for the outage monitoring system.

This module defines default values for all configurable parameters
of the monitoring system. These constants are used as fallback values
when neither command-line arguments nor environment variables are provided.
"""

# Instance configuration defaults
DEFAULT_INSTANCE_ID_PREFIX = "outage-monitor-"

# Targets and state defaults
DEFAULT_TARGETS_FILE = "targets.json"
DEFAULT_STATE_FILE = "monitor_state.json"

# Polling defaults (seconds)
DEFAULT_POLL_INTERVAL = 300
DEFAULT_MAX_TIMEOUT = 10
MIN_POLL_INTERVAL = 5
MIN_MAX_TIMEOUT = 1
MAX_MAX_TIMEOUT = 60
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

# User-Agent rotation defaults
DEFAULT_USER_AGENT_ROTATION = "true"
DEFAULT_USER_AGENT_POOL_SIZE = 6
MAX_USER_AGENT_POOL_SIZE = 100
DEFAULT_USER_AGENT_SOURCE_URL = (
    "https://raw.githubusercontent.com/microlinkhq/top-user-agents/master/src/index.json"
)

# Notification limits defaults
DEFAULT_COOLDOWN_MINUTES = 60
DEFAULT_HOURLY_CAP = 10
DEFAULT_PER_TARGET_DAILY_CAP = 5
DEFAULT_ERROR_DAILY_CAP = 3
DEFAULT_DEDUP_MAX_AGE_DAYS = 7
MAX_HOURLY_CAP = 300
MAX_DAILY_CAP = 10
MAX_DNS_TTL_MINUTES = 1440

# Buffers defaults
DEFAULT_EVENT_BUFFER_SIZE = 100
DEFAULT_LOG_LINES = 100

# Maintenance defaults (seconds unless stated)
DEFAULT_DNS_TTL_MINUTES = 5
DEFAULT_STATE_SAVE_INTERVAL = 300
DEFAULT_CACHE_CLEANUP_INTERVAL = 600
DEFAULT_SHUTDOWN_GRACE = 2

# Display defaults
DEFAULT_TIME_OFFSET_HOURS = 0
MIN_TIME_OFFSET_HOURS = -12
MAX_TIME_OFFSET_HOURS = 14

# E-mail defaults
DEFAULT_BREVO_API_KEY = ""
DEFAULT_SENDER_EMAIL = ""
DEFAULT_SENDER_NAME = "Outage Monitor"

# Logging configuration defaults
DEFAULT_LOGGING_TYPE = "prod"
DEFAULT_LOGGING_CONFIG_FILE = ""
