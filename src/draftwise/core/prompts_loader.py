"""Load and manage prompts from YAML files."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from draftwise.core.logging import get_logger

logger = get_logger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
DEFAULT_VERSION = "v1"
_REQUIRED = ("templates", "template_user", "training", "slides", "speaker_notes", "notes_fallback")


@lru_cache(maxsize=8)
def load_prompt(version_key: str = DEFAULT_VERSION, prompts_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load a specific prompt version from prompt_versions.yaml."""
    directory = Path(prompts_dir) if prompts_dir else PROMPTS_DIR
    candidates = ["prompt_versions.yaml", "prompt_versions.yml"]

    prompt_path = next(
        (directory / name for name in candidates if (directory / name).exists()), None
    )
    if prompt_path is None:
        existing = [f.name for f in directory.glob("*")] if directory.exists() else "directory not found"
        msg = f"Could not find prompt file in {directory}; found: {existing}"
        logger.error(msg)
        raise FileNotFoundError(msg)

    with open(prompt_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    version_data = data.get("versions", {}).get(version_key)
    if not version_data:
        valid_keys = list(data.get("versions", {}).keys())
        raise KeyError(
            f"Version '{version_key}' not found in {prompt_path.name}. Available: {valid_keys}"
        )

    missing = [k for k in _REQUIRED if k not in version_data]
    if missing:
        raise KeyError(f"Prompt version '{version_key}' is missing sections: {missing}")

    logger.info(f"Loaded prompt version: {version_key}")
    return version_data
