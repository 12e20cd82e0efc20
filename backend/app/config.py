from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "PRD Forge API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    # MVP default is sqlite; the export core only ever sees in-memory project records.
    database_url: str = "sqlite:///./prdforge.db"
    projects_page_limit_default: int = 10
    projects_page_limit_max: int = 100

    pdf_page_size: str = "A4"  # A4|LETTER
    # TrueType fonts embedded for non-WinAnsi text; unset keeps the base-14 fonts.
    pdf_font_path: str | None = None
    pdf_font_bold_path: str | None = None
    pdf_font_mono_path: str | None = None
    export_chunk_bytes: int = 64 * 1024
    # Upper bound on archive chunks buffered between the renderer thread and the HTTP response.
    export_stream_queue_chunks: int = 8
    export_stream_poll_seconds: float = 0.5
    export_stream_join_seconds: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
