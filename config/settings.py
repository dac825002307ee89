"""
Employer Identity - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/employer_identity.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Duplicate detection (0-100 scale, edit-distance similarity)
    DUPLICATE_SIMILARITY_THRESHOLD: float = Field(default=70.0)

    # Promotion queue conflict warnings (0-1 scale, trigram similarity)
    CONFLICT_SIMILARITY_THRESHOLD: float = Field(default=0.8)
    CONFLICT_WARNING_LIMIT: int = Field(default=5)

    # Deferred aliases come back after this many days; 0 keeps them out for good
    DEFER_TTL_DAYS: int = Field(default=30)

    # Comma-separated roles allowed to run duplicate scans
    REVIEW_ROLES: str = Field(default="admin,lead_organiser")

    @property
    def review_roles(self) -> set[str]:
        """Return the review roles as a set."""
        return {r.strip() for r in self.REVIEW_ROLES.split(",") if r.strip()}

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
