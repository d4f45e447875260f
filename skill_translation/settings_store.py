"""
Translation Settings Store

Resolves the per-library translation settings consumed by the pipeline:
engine identity/version from the model directory, overrides from the
library's .translation_meta.json file.
"""
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from loguru import logger

META_FILE_NAME = ".translation_meta.json"
MODEL_CONFIG_FILE_NAME = "model.config.json"
ENGINE_VERSION_FILE_NAME = "engine.version"

DEFAULT_MAX_LENGTH = 96


# ==================== Data Classes ====================

@dataclass
class TranslationSettings:
    """Settings for one translation pipeline instance"""
    engine_id: str = "onnx-marian"
    engine_version: str = "unknown"
    source_lang: str = "en"
    target_lang: str = "zh-CN"
    max_concurrency: int = 1
    max_length: int = DEFAULT_MAX_LENGTH
    timeout: float = 20.0  # seconds per backend call, <= 0 disables the limit
    enable_translation: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationSettings":
        defaults = cls()
        return cls(
            engine_id=data.get("engine_id", defaults.engine_id),
            engine_version=data.get("engine_version", defaults.engine_version),
            source_lang=data.get("source_lang", defaults.source_lang),
            target_lang=data.get("target_lang", defaults.target_lang),
            max_concurrency=int(data.get("max_concurrency", defaults.max_concurrency)),
            max_length=int(data.get("max_length", defaults.max_length)),
            timeout=float(data.get("timeout", defaults.timeout)),
            enable_translation=bool(data.get("enable_translation", defaults.enable_translation)),
        )


@dataclass
class TranslationMeta:
    """Per-library overrides read from .translation_meta.json"""
    disable_translation: bool = False
    max_concurrency: Optional[int] = None
    max_length: Optional[int] = None
    engine_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationMeta":
        # Accept both snake_case and the camelCase keys older tools wrote
        def pick(snake: str, camel: str):
            if snake in data:
                return data[snake]
            return data.get(camel)

        max_concurrency = pick("max_concurrency", "maxConcurrency")
        max_length = pick("max_length", "maxLength")
        return cls(
            disable_translation=bool(pick("disable_translation", "disableTranslation") or False),
            max_concurrency=int(max_concurrency) if max_concurrency is not None else None,
            max_length=int(max_length) if max_length is not None else None,
            engine_version=pick("engine_version", "engineVersion"),
        )

    @classmethod
    def load(cls, library_path: Path) -> Optional["TranslationMeta"]:
        """Load meta file from a library directory, None if absent or unreadable"""
        meta_path = Path(library_path) / META_FILE_NAME
        if not meta_path.exists():
            return None
        try:
            with open(meta_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("meta file must contain a JSON object")
            return cls.from_dict(data)
        except Exception as e:
            logger.warning(f"Ignoring unreadable translation meta {meta_path}: {e}")
            return None


@dataclass
class ModelConfig:
    """Subset of model.config.json the pipeline cares about"""
    model_directory: str = ""
    max_length: int = DEFAULT_MAX_LENGTH
    engine_version: str = "unknown"

    @classmethod
    def load(cls, model_directory: Path) -> "ModelConfig":
        model_directory = Path(model_directory)
        data: Dict[str, Any] = {}
        config_path = model_directory / MODEL_CONFIG_FILE_NAME
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
            except Exception as e:
                logger.warning(f"Failed to read model config {config_path}: {e}")

        max_length = data.get("max_length", data.get("MaxLength"))
        try:
            max_length = int(max_length) if max_length is not None else 0
        except (TypeError, ValueError):
            max_length = 0

        return cls(
            model_directory=str(model_directory),
            max_length=max_length if max_length > 0 else DEFAULT_MAX_LENGTH,
            engine_version=resolve_engine_version(
                model_directory, data.get("engine_version", data.get("EngineVersion"))
            ),
        )


# ==================== Loaders ====================

def resolve_engine_version(model_directory: Path, configured: Optional[str] = None) -> str:
    """
    Resolve the engine version used in cache keys.

    Order: explicit config value, engine.version file, model directory
    modification time, "unknown".
    """
    if configured and str(configured).strip():
        return str(configured).strip()

    model_directory = Path(model_directory)
    version_path = model_directory / ENGINE_VERSION_FILE_NAME
    if version_path.exists():
        try:
            version = version_path.read_text(encoding="utf-8").strip()
            if version:
                return version
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable engine version file {version_path}: {e}")

    if model_directory.is_dir():
        mtime = datetime.fromtimestamp(model_directory.stat().st_mtime, tz=timezone.utc)
        return mtime.strftime("%Y%m%d%H%M%S")

    return "unknown"


def load_translation_settings(
    model_directory: Optional[Path],
    library_path: Optional[Path],
    engine_id: Optional[str] = None,
) -> TranslationSettings:
    """
    Build TranslationSettings for a library.

    Args:
        model_directory: Directory holding model.config.json / engine.version
        library_path: Skill library root holding .translation_meta.json
        engine_id: Override for the engine identity stored in cache keys

    Returns:
        Resolved settings
    """
    result = TranslationSettings()
    if engine_id:
        result.engine_id = engine_id

    if model_directory is not None:
        model_config = ModelConfig.load(model_directory)
        result.engine_version = model_config.engine_version
        result.max_length = model_config.max_length

    if library_path is not None:
        meta = TranslationMeta.load(library_path)
        if meta:
            result.enable_translation = not meta.disable_translation
            if meta.max_concurrency is not None:
                result.max_concurrency = meta.max_concurrency
            if meta.max_length is not None:
                result.max_length = meta.max_length
            if meta.engine_version and meta.engine_version.strip():
                result.engine_version = meta.engine_version.strip()

    logger.debug(
        f"Translation settings: engine={result.engine_id}@{result.engine_version}, "
        f"{result.source_lang}->{result.target_lang}, enabled={result.enable_translation}"
    )
    return result
