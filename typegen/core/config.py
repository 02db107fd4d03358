from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TYPEGEN_", env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "typegen"
    api_host: str = "127.0.0.1"
    api_port: int = 3141

    config_path: str = "typegen.config.yaml"
    log_level: str = "INFO"

    max_workers: int = 4
    fetch_timeout_seconds: float = 15.0
    fetch_retries: int = 2

settings = Settings()
