from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Claude API
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"

    # Strategy documents (master narrative, editorial rules, format guide...)
    strategy_path: str = ""

    # DB
    database_path: str = "studio.db"

    # Web
    base_url: str = "http://localhost:8000"

    # Section generation
    section_max_tokens: int = 2000
    section_temperature: float = 0.7

    # Reading analysis
    analysis_max_tokens: int = 500
    analysis_temperature: float = 0.3
    analysis_narrative_chars: int = 3000
    analysis_toc_chars: int = 2000
    analysis_pattern_chars: int = 1500


settings = Settings()
