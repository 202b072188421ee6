# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Managers for building the tool configuration from files and the environment.
"""
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..MODELS.tool_config import ToolConfig
from ..exceptions import ConfigError, MissingFileError

CONFIG_FILE = "dit.yml"
ENV_FILE = ".env"

# Environment variable -> ToolConfig field
ENV_KEYS = {
    "DOCKER_REPOSITORY": "repository",
    "DOCKER_NAMESPACE": "namespace",
    "DOCKER_NO_CACHE": "no_cache",
    "DOCKER_IMAGE_TAG": "tag",
    "DIT_PUSH_RETRIES": "push_retries",
}

TRUTHY = {"1", "true", "yes", "on"}


class ConfigManager:
    """
    Merges configuration sources into a single ToolConfig.

    Precedence, lowest first: built-in defaults, the YAML config file, the
    .env file, the process environment, explicit overrides. The .env file
    is read, never exported into os.environ.
    """
    def __init__(self, base_dir: str = ".", environ: Optional[Mapping[str, str]] = None):
        """
        Initializes the config manager.

        :param base_dir: Directory searched for dit.yml and .env.
        :param environ: Environment to read; defaults to os.environ.
        """
        self.base_dir = base_dir
        self.environ = os.environ if environ is None else environ

    def load(self,
             config_file: Optional[str] = None,
             env_file: Optional[str] = None,
             overrides: Optional[Mapping[str, Any]] = None) -> ToolConfig:
        """
        Builds the configuration.

        :param config_file: YAML file to use instead of base_dir/dit.yml. Must exist.
        :param env_file: .env file to use instead of base_dir/.env. Must exist.
        :param overrides: Values that win over everything else; None values are skipped.
        :return: The validated configuration.
        :raises ConfigError: If a value fails validation.
        """
        values: Dict[str, Any] = {}
        values.update(self._load_yaml(config_file))
        values.update(self._from_env(self._load_dotenv(env_file)))
        values.update(self._from_env(self.environ))
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})

        try:
            return ToolConfig(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def _resolve(self, explicit: Optional[str], default_name: str) -> Optional[str]:
        if explicit:
            if not os.path.isfile(explicit):
                raise MissingFileError(explicit)
            return explicit
        path = os.path.join(self.base_dir, default_name)
        return path if os.path.isfile(path) else None

    def _load_yaml(self, config_file: Optional[str]) -> Dict[str, Any]:
        path = self._resolve(config_file, CONFIG_FILE)
        if path is None:
            return {}
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Could not parse {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping of settings")
        # YAML keys may use hyphens, like the CLI flags
        return {str(key).replace("-", "_"): value for key, value in data.items()}

    def _load_dotenv(self, env_file: Optional[str]) -> Dict[str, str]:
        path = self._resolve(env_file, ENV_FILE)
        if path is None:
            return {}
        return {k: v for k, v in dotenv_values(path).items() if v is not None}

    @staticmethod
    def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for env_key, field in ENV_KEYS.items():
            raw = environ.get(env_key)
            if raw is None or raw == "":
                continue
            if field == "no_cache":
                values[field] = raw.strip().lower() in TRUTHY
            else:
                values[field] = raw
        return values
