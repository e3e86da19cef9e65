"""
Configuration module for the decision engine.
Reads configuration from environment variables and .env file.
"""
import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration class that reads from environment variables."""

    def __init__(self):
        self.MANIFEST_PATH: str = os.getenv("MANIFEST_PATH", os.path.join(os.getcwd(), "manifests"))
        self.MANIFEST_URL: Optional[str] = os.getenv("MANIFEST_URL")
        self.MANIFEST_CACHE_TTL_SECONDS: float = float(os.getenv("MANIFEST_CACHE_TTL_SECONDS", "60"))
        self.ENFORCE_PROVENANCE: bool = _env_bool("ENFORCE_PROVENANCE", True)
        self.ANALYTICS_ENDPOINT: Optional[str] = os.getenv("ANALYTICS_ENDPOINT")
        self.HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "10.0"))


# Global config instance
cfg = Config()
