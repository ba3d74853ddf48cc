
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    ALLOWED_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # Full SQLAlchemy URL wins over the DB_* parts (e.g. sqlite+aiosqlite:///./docgraph.db)
    DATABASE_URL: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "docgraph"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    AUTO_CREATE_TABLES: bool = True

    # LLM provider selection: "perplexity" or "openai"
    LLM_PROVIDER: str = "perplexity"

    # Perplexity (chat) settings
    PERPLEXITY_API_KEY: str = ""
    PERPLEXITY_MODEL: str = "sonar"
    LLM_PREFER_CHEAPEST: bool = True

    # OpenAI (embeddings, and chat if selected)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_DIM: int = 1536

    EXTRACTION_MAX_TOKENS: int = 1024

    # Vector index: "memory" (process-local) or "http" (Pinecone-style REST)
    VECTOR_BACKEND: str = "memory"
    VECTOR_INDEX_URL: str = ""
    VECTOR_INDEX_API_KEY: str = ""
    VECTOR_NAMESPACE: str = ""

    # Object storage: "local" (filesystem) or "s3"
    STORAGE_BACKEND: str = "local"
    STORAGE_DIR: str = "./data/objects"
    S3_BUCKET: str = ""
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

settings = Settings()
