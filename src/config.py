from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Настройки приложения, читаются из окружения и файла .env"""

    DATABASE_URL: str = "sqlite+aiosqlite:///./shortener.db"

    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    SHORT_CODE_MAX_ATTEMPTS: int = 256

    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    class Config:
        env_file = ".env"


settings = Settings()

DATABASE_URL: str = settings.DATABASE_URL
SECRET_KEY: str = settings.SECRET_KEY
ALGORITHM: str = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES: int = settings.ACCESS_TOKEN_EXPIRE_MINUTES
SHORT_CODE_MAX_ATTEMPTS: int = settings.SHORT_CODE_MAX_ATTEMPTS
