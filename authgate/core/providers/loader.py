"""
Provider config file discovery.

Loads provider definitions from a directory. Recognised file names:

    providers.json | providers.yaml | providers.yml | providers.py
    providers.<infix>.<ext> | providers-<infix>.<ext>

where <infix> is the current environment or "local". Files are merged in this
order (later files win):

1. generic, then environment specific, then local
2. for the same infix: json, then yaml/yml, then py

Python files must expose a ``PROVIDERS`` mapping.
"""

import copy
import importlib.util
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from loguru import logger

from authgate.common.exceptions import ConfigurationError

LOG_PREFIX = "[ProviderLoader]"

CONFIG_FILE_RE = re.compile(r"^providers(?:[.-](.+))?\.(json|yaml|yml|py)$")

# Load order of file types with the same infix
FILE_EXTENSIONS = ["json", "yaml", "yml", "py"]


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _sort_key(match: "re.Match[str]", environment: Optional[str]) -> Tuple[int, int]:
    infix = match.group(1).lower() if match.group(1) else None
    if infix is None:
        rank = 0
    elif infix == "local":
        rank = 2
    else:
        rank = 1
    return rank, FILE_EXTENSIONS.index(match.group(2))


def discover_config_files(base_path: Union[str, Path], environment: Optional[str] = None) -> List[Path]:
    """
    List provider config files in load order.

    Raises:
        ConfigurationError: ``base_path`` is missing or not a directory
    """
    base = Path(base_path)
    if not base.exists():
        raise ConfigurationError(f"providers directory {base} does not exist")
    if not base.is_dir():
        raise ConfigurationError(f"{base} must be a directory")

    env = environment.lower() if environment else None
    matches = []
    for path in base.iterdir():
        if not path.is_file():
            continue
        match = CONFIG_FILE_RE.match(path.name)
        if not match:
            continue
        # infix must be the current environment or "local"
        if match.group(1) and match.group(1).lower() not in ("local", env):
            continue
        matches.append((path, match))

    matches.sort(key=lambda item: (_sort_key(item[1], env), item[0].name))
    return [path for path, _ in matches]


def _load_python(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location(f"authgate_providers_{path.stem.replace('.', '_').replace('-', '_')}", path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"can not load provider file {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return getattr(module, "PROVIDERS", None)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load a single provider file."""
    try:
        if path.suffix == ".json":
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        else:
            data = _load_python(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"failed to load provider file {path}: {e}") from e

    if data is None:
        logger.warning(f"{LOG_PREFIX} Provider file is empty: {path}")
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"provider file {path} must define a mapping of provider names to options")
    return data


def load_provider_configs(base_path: Union[str, Path], environment: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and merge all provider files of a directory.

    Args:
        base_path: Directory holding the provider files
        environment: Current environment (e.g. "production")

    Returns:
        Mapping of provider name to raw options
    """
    providers: Dict[str, Any] = {}
    for path in discover_config_files(base_path, environment):
        providers = deep_merge(providers, load_config_file(path))
        logger.debug(f"{LOG_PREFIX} Loaded provider file: {path.name}")

    logger.info(f"{LOG_PREFIX} Loaded {len(providers)} provider definitions from {base_path}")
    return providers
