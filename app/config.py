from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    environment: str = "development"
    # Stored as comma-separated strings to avoid pydantic-settings
    # complex type parsing (json.loads) which fails on plain CSV values.
    cors_origins: str = "*"
    api_tokens: str = Field(
        "",
        validation_alias=AliasChoices(
            "social_extractor_api_token", "extractor_api_token", "api_tokens"
        ),
    )

    # Proxy: a full URL wins over the host/port/username/password quadruple.
    proxy_url: str = Field(
        "", validation_alias=AliasChoices("decodo_proxy_url", "proxy_url")
    )
    proxy_scheme: str = "http"
    proxy_host: str = Field(
        "", validation_alias=AliasChoices("decodo_proxy_host", "proxy_host")
    )
    proxy_port: str = Field(
        "", validation_alias=AliasChoices("decodo_proxy_port", "proxy_port")
    )
    proxy_username: str = Field(
        "", validation_alias=AliasChoices("decodo_proxy_username", "proxy_username")
    )
    proxy_password: str = Field(
        "", validation_alias=AliasChoices("decodo_proxy_password", "proxy_password")
    )
    proxy_use_session: bool = Field(
        False,
        validation_alias=AliasChoices("decodo_proxy_use_session", "proxy_use_session"),
    )

    instagram_cookies_content: str = ""
    instagram_sessionid: str = ""
    cookies_file_name: str = "instagram_cookies.txt"
    cookies_temp_path: str = "/tmp/instagram_cookies.txt"

    gallery_dl_path: str = "gallery-dl"
    yt_dlp_path: str = "yt-dlp"
    extractor_timeout_seconds: float = 120.0
    extractor_max_output_bytes: int = 10 * 1024 * 1024

    startup_diagnostics: bool = True

    def get_cors_origins(self) -> list[str]:
        return [s.strip() for s in self.cors_origins.split(",") if s.strip()]

    def get_api_tokens(self) -> list[str]:
        if not self.api_tokens:
            return []
        return [s.strip() for s in self.api_tokens.split(",") if s.strip()]

    def validate_production(self) -> None:
        if self.environment == "production":
            if not self.get_api_tokens():
                raise ValueError(
                    "SOCIAL_EXTRACTOR_API_TOKEN must be set in production. "
                    "Provide at least one token via SOCIAL_EXTRACTOR_API_TOKEN "
                    "or EXTRACTOR_API_TOKEN."
                )
            for origin in self.get_cors_origins():
                if origin == "*" or "localhost" in origin or "127.0.0.1" in origin:
                    raise ValueError(
                        f"CORS origin '{origin}' is not allowed in production. "
                        "Set CORS_ORIGINS to the public client origins."
                    )


settings = Settings()
