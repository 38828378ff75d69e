"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Records requested per search page; also the "more results" threshold
PAGE_SIZE = 12


class Config:
    """Application configuration."""

    # Open Library
    OPENLIBRARY_BASE_URL = os.getenv("OPENLIBRARY_BASE_URL", "https://openlibrary.org")
    OPENLIBRARY_COVERS_URL = os.getenv("OPENLIBRARY_COVERS_URL", "https://covers.openlibrary.org")

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
