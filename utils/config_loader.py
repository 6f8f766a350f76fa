"""
Coach configuration (configs/coach.yaml).

Every component takes the plain config dict (or None) and looks its keys up
with get_nested_config, falling back to its own built-in constant, so an
empty or partial file is always valid.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "configs" / "coach.yaml"


def load_config(config_path=None) -> Dict[str, Any]:
    """
    Read the coach configuration.

    Args:
        config_path: YAML file (str or Path); configs/coach.yaml if None

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If the top level is not a mapping
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        logger.warning(f"{path} is empty, using built-in defaults")
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config root must be a mapping, got {type(config).__name__}")

    logger.info(f"Loaded configuration from {path} (sections: {list(config)})")
    return config


def get_nested_config(config: Optional[Dict[str, Any]], key_path: str, default: Any = None) -> Any:
    """Dotted lookup, e.g. get_nested_config(config, 'streaming.batch_size', 12)."""
    node: Any = config or {}
    for key in key_path.split('.'):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node
