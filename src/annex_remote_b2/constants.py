"""Constants for git-annex-remote-b2."""

# Version
REMOTE_VERSION = "0.1.0"

# External special remote protocol version announced at startup
PROTOCOL_VERSION = "1"

# Emit a PROGRESS line once this many bytes moved since the last one
PROGRESS_THRESHOLD = 256 * 1024

# Existence cache time-to-live (seconds)
EXISTENCE_CACHE_TTL = 15.0

# Chunk size used when hashing and copying local files
CHUNK_SIZE = 64 * 1024

# Configuration names pulled with GETCONFIG
CONFIG_ACCOUNT_ID = "accountid"
CONFIG_APP_KEY = "appkey"
CONFIG_BUCKET = "bucket"
CONFIG_PREFIX = "prefix"

# Credential fallbacks, checked in order when GETCONFIG returns nothing
ACCOUNT_ID_ENV_VARS = ("B2_ACCOUNT_ID", "B2_APPLICATION_KEY_ID")
APP_KEY_ENV_VARS = ("B2_APP_KEY", "B2_APPLICATION_KEY")

# Process settings
SETTINGS_ENV_VAR = "ANNEX_B2_SETTINGS"
DEBUG_LOG_ENV_VAR = "ANNEX_B2_DEBUG_LOG"
LOG_LEVEL_ENV_VAR = "ANNEX_B2_LOG_LEVEL"
SETTINGS_FILE = "settings.yaml"
SETTINGS_DIR = ".config/git-annex-remote-b2"

# Visibility policy for buckets created by INITREMOTE
PRIVATE_BUCKET_TYPE = "allPrivate"
