"""
Skill Translation - Configuration Module
"""
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic_settings import BaseSettings

# Data directory: use SKILL_TRANSLATION_DATA_DIR env var, or default to ~/.skill-translation
# so several skill libraries on the same machine share one translation cache
_DATA_DIR = Path(os.environ.get("SKILL_TRANSLATION_DATA_DIR", Path.home() / ".skill-translation"))


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "SkillTranslation"

    # Paths
    DATA_DIR: Path = _DATA_DIR
    CACHE_FILE_NAME: str = "translation_cache.json"
    MANUAL_TRANSLATION_FILE_NAME: str = "manual_translations.json"
    GLOSSARY_FILE_NAME: str = "glossary.json"
    MODEL_DIR: Optional[Path] = None

    # Translation Engine
    # remote: LocalTranslation HTTP service, agent: local AI agent (Ollama/Qwen), google: free Google Translate
    TRANSLATION_ENGINE: str = "remote"
    REMOTE_TRANSLATION_URL: str = "http://localhost:5123"
    AGENT_TRANSLATION_URL: str = "http://127.0.0.1:8080"
    HTTP_TIMEOUT: float = 120.0

    # Proxy Settings (for Google access)
    PROXY_URL: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[Path] = None

    @property
    def cache_path(self) -> Path:
        return self.DATA_DIR / self.CACHE_FILE_NAME

    @property
    def manual_translation_path(self) -> Path:
        return self.DATA_DIR / self.MANUAL_TRANSLATION_FILE_NAME

    @property
    def glossary_path(self) -> Path:
        return self.DATA_DIR / self.GLOSSARY_FILE_NAME

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> None:
    """
    Replace loguru's default sink with the configured ones.

    Args:
        level: Minimum level for the stderr sink (defaults to LOG_LEVEL)
        log_file: Optional file sink, rotated at 10 MB (defaults to LOG_FILE)
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE

    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(log_file), level=level, rotation="10 MB", encoding="utf-8")
    logger.debug(f"Logging configured: level={level}, file={log_file}")
