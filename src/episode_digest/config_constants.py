"""Configuration constants for episode_digest.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LANGUAGE = "en"
DEFAULT_DATABASE_URL = "sqlite:///episode_digest.db"
DEFAULT_APP_URL = "http://localhost:3000"

# Provider call discipline
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 90
MIN_PROVIDER_TIMEOUT_SECONDS = 1
DEFAULT_PROVIDER_MAX_ATTEMPTS = 3
DEFAULT_RETRY_INITIAL_DELAY = 1.0
DEFAULT_RETRY_MAX_DELAY = 30.0

# Transcription providers
DEFAULT_VOXTRAL_MODEL = "voxtral-mini-latest"
DEFAULT_DEEPGRAM_MODEL = "nova-2"
DEFAULT_DEEPGRAM_API_BASE = "https://api.deepgram.com/v1"
DEFAULT_CAPTIONS_API_BASE = "https://www.youtube.com/api/timedtext"
VOXTRAL_DEFAULT_CONFIDENCE = 0.95
DEEPGRAM_WORDS_CONFIDENCE = 0.9
CAPTIONS_DEFAULT_CONFIDENCE = 1.0
REDIRECT_TIMEOUT_SECONDS = 3.0
MAX_REDIRECT_HOPS = 5
DIRECT_AUDIO_EXTENSIONS = (".mp3", ".m4a", ".wav", ".ogg", ".flac", ".aac", ".opus")
SPEAKER_MERGE_GAP_SECONDS = 5.0

# Language models
DEFAULT_AGENT_MODEL = "claude-sonnet-4-5"
DEFAULT_QUICK_MODEL = "claude-haiku-4-5"
DEFAULT_INSIGHTS_MODEL = "claude-haiku-4-5"
DEFAULT_AGENT_TEMPERATURE = 0.2
ANALYST_MAX_TOKENS = 4000
WRITER_MAX_TOKENS = 2000
EDITOR_MAX_TOKENS = 4000
QUICK_MAX_TOKENS = 1500
INSIGHTS_MAX_TOKENS = 4000
DEFAULT_TRANSCRIPT_CHAR_LIMIT = 100_000
DEFAULT_WRITER_CONCURRENCY = 4
MIN_TOPIC_BLOCKS = 3
MAX_TOPIC_BLOCKS = 10

# Notifications
DEFAULT_NOTIFICATION_WORKERS = 4
DEFAULT_EMAIL_FROM = "PodCatch <notifications@podcatch.com>"
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_TIMEOUT_SECONDS = 15
MAX_SHARE_HIGHLIGHTS = 3

# Cache TTLs (seconds)
CACHE_TTL_PROCESSING = 300
CACHE_TTL_READY = 86_400

# Quota
DEFAULT_QUOTA_MAX_REQUESTS = 30
DEFAULT_QUOTA_WINDOW_SECONDS = 60

# Stored error messages are truncated to this length
MAX_ERROR_MESSAGE_LENGTH = 500
