# src/kubestrap/config/loader.py

import os
import yaml
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .models import BootstrapConfig


class ConfigError(ValueError):
    pass


def load_config(path: Optional[Union[str, Path]] = None) -> BootstrapConfig:
    """
    Load a BootstrapConfig from YAML. No path means all defaults.
    """
    if path is None:
        return BootstrapConfig()

    try:
        raw = Path(path).read_text()
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e

    # expand environment variables like ${HOME}
    expanded = os.path.expandvars(raw)

    try:
        data = yaml.safe_load(expanded) or {}
        return BootstrapConfig.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigError(f"invalid config {path}: {e}") from e
