
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Full SQLAlchemy URL wins over the DB_* parts when set
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "cerebro"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"

    # Embedding provider selection: "mock" or "openai"
    EMBEDDING_PROVIDER: str = "mock"
    OPENAI_API_KEY: str = ""
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_DIM: int = 384
    MOCK_EMBED_SEED: int | None = None

    # Batching, throttling and retry of provider calls
    EMBED_BATCH_SIZE: int = 5
    EMBED_BATCH_DELAY_MS: int = 100
    EMBED_MAX_RETRIES: int = 3
    EMBED_RETRY_MIN_WAIT: float = 0.5
    EMBED_RETRY_MAX_WAIT: float = 8.0

    # Chunking defaults (characters)
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # Retrieval
    SEARCH_TOP_K: int = 5
    SEARCH_CANDIDATE_MULTIPLIER: int = 10
    VECTOR_INDEX_NAME: str = "ix_chunks_vector"

    # Upload boundary
    MAX_FILE_SIZE: int = 5 * 1024 * 1024
    ALLOWED_MIME_TYPES: List[str] = [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]

    # Deadlines in seconds, unlimited when unset
    INGEST_TIMEOUT: float | None = None
    QUERY_TIMEOUT: float | None = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

settings = Settings()
