from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "orderdesk"
    JWT_EXP_MIN: int = 12*60
    BUSINESS_TZ: str = "Asia/Kolkata"  # business day for analytics and bill numbers
    LOG_LEVEL: str = "INFO"
    DEFAULT_ESTIMATED_TIME: str = "15-20 mins"
    STRICT_STATUS_FLOW: bool = False
    CORS_ORIGINS: list[str] = ["*"]
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
