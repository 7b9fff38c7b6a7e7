"""
Configuration management for the proposal cache.

Groups settings for the local SQLite store, the remote subgraph, the
embedding provider and the CLI. Values come from environment variables,
an optional ``.env`` file, then defaults.

Responsibility: Centralized configuration and environment management
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


GOLDSKY_SUBGRAPH_TEMPLATE = (
    "https://api.goldsky.com/api/public/{project_id}"
    "/subgraphs/nouns-builder-base-mainnet/latest/gn"
)


class EmbeddingProviderKind(str, Enum):
    """Supported embedding backends"""
    OPENAI = "openai"
    LOCAL = "local"


class DatabaseConfig(BaseSettings):
    """Local cache database configuration"""

    path: str = Field(default="./data/proposals.db")
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # SQLite tuning
    busy_timeout_ms: int = Field(default=5000, ge=0)
    wal: bool = Field(default=True)

    # Query settings
    echo: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    @property
    def is_memory(self) -> bool:
        """True when the store lives in memory (tests only)"""
        return self.path == ":memory:"

    @property
    def connection_string(self) -> str:
        """
        Build the SQLAlchemy async connection string.

        Returns:
            ``sqlite+aiosqlite`` URL for the configured file
        """
        if self.database_url:
            url = self.database_url
            if url.startswith("sqlite://"):
                url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
            if not url.startswith("sqlite+aiosqlite://"):
                raise ValueError(
                    "Only SQLite databases are supported for the proposal cache."
                )
            return url

        if self.is_memory:
            return "sqlite+aiosqlite:///:memory:"

        return f"sqlite+aiosqlite:///{self.path}"

    def ensure_parent_dir(self) -> None:
        """Create the directory holding the database file if needed."""
        if self.database_url or self.is_memory:
            return
        Path(self.path).expanduser().parent.mkdir(parents=True, exist_ok=True)


class SubgraphConfig(BaseSettings):
    """Remote subgraph configuration"""

    url: Optional[str] = Field(default=None)
    project_id: str = Field(default="project_cm33ek8kjx6pz010i2c3w8z25")
    dao_address: str = Field(default="0x3740fea2a46ca4414b4afde16264389642e6596a")

    # Pagination
    page_size: int = Field(default=200, ge=1, le=1000)
    vote_page_size: int = Field(default=500, ge=1, le=1000)
    sync_window_pages: int = Field(default=1, ge=1)

    # Transport
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1)

    # Staleness (0 = never stale)
    sync_interval_minutes: int = Field(default=5, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="SUBGRAPH_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("dao_address")
    @classmethod
    def lowercase_address(cls, v: str) -> str:
        """Subgraph entity ids are lower-case hex"""
        return v.strip().lower()

    @property
    def endpoint(self) -> str:
        """Resolved GraphQL endpoint"""
        if self.url:
            return self.url
        return GOLDSKY_SUBGRAPH_TEMPLATE.format(project_id=self.project_id)


class EmbeddingConfig(BaseSettings):
    """Embedding provider and chunking configuration"""

    provider: EmbeddingProviderKind = Field(default=EmbeddingProviderKind.OPENAI)
    model: str = Field(default="text-embedding-3-small")
    endpoint: str = Field(default="https://api.openai.com/v1/embeddings")
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("EMBEDDING_API_KEY", "OPENAI_API_KEY"),
    )
    timeout_seconds: float = Field(default=30.0, gt=0)

    # Expected vector size; None disables the check at index time
    dimension: Optional[int] = Field(default=None, ge=1)

    # Chunking
    chunk_size: int = Field(default=500, ge=50)
    chunk_overlap: int = Field(default=50, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    @field_validator("chunk_overlap")
    @classmethod
    def overlap_smaller_than_chunk(cls, v: int, info) -> int:
        """Overlap must leave room for forward progress"""
        chunk_size = info.data.get("chunk_size", 500)
        if v >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return v


class AppConfig(BaseSettings):
    """Application configuration"""

    app_name: str = Field(default="proposal-cache")
    app_version: str = Field(default="0.1.0")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        extra="ignore"
    )


class Settings(BaseSettings):
    """
    Global settings container.

    Loads configuration from:
    1. Environment variables
    2. .env file
    3. Default values

    Example:
        # Defaults (./data/proposals.db, Goldsky endpoint, OpenAI embeddings)
        settings = Settings()

        # Tests
        settings = Settings(
            db=DatabaseConfig(path=str(tmp_path / "cache.db")),
            embedding=EmbeddingConfig(dimension=64),
        )
    """

    app: AppConfig = Field(default_factory=AppConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    subgraph: SubgraphConfig = Field(default_factory=SubgraphConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
