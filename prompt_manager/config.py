import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./prompt_manager.db")
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

    DEBUG = _flag("DEBUG")
    APP_VERSION = os.getenv("APP_VERSION", "0.1.0")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    LOG_FILE = os.getenv("LOG_FILE", "prompt_manager.log")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB = int(os.getenv("REDIS_DB", "0"))
    REDIS_USERNAME = os.getenv("REDIS_USERNAME")
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")

    # Fan item change events out to other worker processes through redis pub/sub
    CHANGE_FEED_REDIS = _flag("CHANGE_FEED_REDIS")
    CHANGE_FEED_CHANNEL = os.getenv("CHANGE_FEED_CHANNEL", "prompt_manager:changes")

    SEARCH_DEBOUNCE_SECONDS = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.3"))
    SEARCH_TEXT_LIMIT = int(os.getenv("SEARCH_TEXT_LIMIT", "50"))
    SEARCH_TAG_LIMIT = int(os.getenv("SEARCH_TAG_LIMIT", "20"))
    SEARCH_TAG_WINDOW = int(os.getenv("SEARCH_TAG_WINDOW", "50"))

    BOOKMARKS_FOLDER_NAME = os.getenv("BOOKMARKS_FOLDER_NAME", "Bookmarks")

    PAGE_INFO_PROVIDER = os.getenv("PAGE_INFO_PROVIDER", "microlink")  # or "direct"
    PAGE_INFO_TIMEOUT = float(os.getenv("PAGE_INFO_TIMEOUT", "15"))
    PAGE_INFO_CACHE_TTL = int(os.getenv("PAGE_INFO_CACHE_TTL", "86400"))
    MICROLINK_API_URL = os.getenv("MICROLINK_API_URL", "https://api.microlink.io")
    MICROLINK_API_KEY = os.getenv("MICROLINK_API_KEY", "")

    OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
    KEYWORD_MODEL = os.getenv("KEYWORD_MODEL", "qwen2.5-0.5b-instruct")
    KEYWORD_MIN_CONTENT_LENGTH = int(os.getenv("KEYWORD_MIN_CONTENT_LENGTH", "30"))


settings = Settings()
