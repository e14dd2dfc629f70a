import os
from dotenv import load_dotenv
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load .env file if it exists (for local development)
env_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)
    logger.info("Loaded .env file for local development")
else:
    logger.info("No .env file found, using environment variables")

REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN", "")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
RUNWAY_API_KEY = os.getenv("RUNWAY_API_KEY", "")

KV_REST_API_URL = os.getenv("KV_REST_API_URL", "")
KV_REST_API_TOKEN = os.getenv("KV_REST_API_TOKEN", "")

# Candidates scoring below this are kept but flagged for regeneration.
PHOTO_CONFIDENCE_THRESHOLD = float(os.getenv("PHOTO_CONFIDENCE_THRESHOLD", "0.70"))

POLL_INTERVAL_S = float(os.getenv("POLL_INTERVAL_S", "3"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "60"))
BULK_ITEM_DELAY_S = float(os.getenv("BULK_ITEM_DELAY_S", "1"))
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "60"))
ELEVENLABS_MAX_RETRIES = int(os.getenv("ELEVENLABS_MAX_RETRIES", "3"))

# Comma-separated list of allowed origins for CORS (e.g., "https://app.vercel.app,https://www.example.com").
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "").strip()
if _allowed_origins_env:
    ALLOWED_ORIGINS = [o.strip() for o in _allowed_origins_env.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = ["*"]

_PROVIDER_KEYS = {
    "replicate": "REPLICATE_API_TOKEN",
    "huggingface": "HUGGINGFACE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "elevenlabs": "ELEVENLABS_API_KEY",
    "runway": "RUNWAY_API_KEY",
}


def configured_providers() -> dict:
    """Which vendor credentials are present, keyed by vendor."""
    status = {vendor: bool(os.getenv(env_name, "")) for vendor, env_name in _PROVIDER_KEYS.items()}
    missing = [_PROVIDER_KEYS[v] for v, ok in status.items() if not ok]
    if missing:
        logger.warning(f"Missing API keys: {', '.join(missing)}")
    return status
