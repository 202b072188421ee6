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
Unit tests for configuration loading.
"""
import pytest
from dit.MANAGERS.config_manager import ConfigManager
from dit.MODELS.tool_config import DEFAULT_HADOLINT_IGNORE
from dit.exceptions import ConfigError, MissingFileError


def test_defaults(tmp_path):
    config = ConfigManager(str(tmp_path), environ={}).load()
    assert config.repository == "puppet"
    assert config.namespace == "org.label-schema"
    assert config.tag == "latest"
    assert config.no_cache is False
    assert config.push_retries == 3
    assert config.hadolint_ignore == DEFAULT_HADOLINT_IGNORE
    assert config.directory == "."
    assert config.dockerfile == "Dockerfile"


def test_yaml_file(tmp_path):
    (tmp_path / "dit.yml").write_text("repository: acme\npush-retries: 5\nhadolint_ignore: [DL3007]\n")
    config = ConfigManager(str(tmp_path), environ={}).load()
    assert config.repository == "acme"
    assert config.push_retries == 5
    assert config.hadolint_ignore == ["DL3007"]


def test_precedence(tmp_path):
    (tmp_path / "dit.yml").write_text("repository: from-yaml\nnamespace: org.yaml\ntag: yaml\n")
    (tmp_path / ".env").write_text("DOCKER_NAMESPACE=org.dotenv\nDOCKER_IMAGE_TAG=dotenv\n")
    environ = {"DOCKER_IMAGE_TAG": "environ"}
    config = ConfigManager(str(tmp_path), environ=environ).load(overrides={"repository": "cli", "namespace": None})
    assert config.repository == "cli"
    assert config.namespace == "org.dotenv"
    assert config.tag == "environ"


@pytest.mark.parametrize("raw,expected", [
    ("true", True),
    ("1", True),
    ("YES", True),
    ("false", False),
    ("0", False),
])
def test_no_cache_from_environment(tmp_path, raw, expected):
    config = ConfigManager(str(tmp_path), environ={"DOCKER_NO_CACHE": raw}).load()
    assert config.no_cache is expected


def test_empty_environment_values_are_ignored(tmp_path):
    config = ConfigManager(str(tmp_path), environ={"DOCKER_REPOSITORY": ""}).load()
    assert config.repository == "puppet"


def test_explicit_files(tmp_path):
    config_file = tmp_path / "custom.yml"
    config_file.write_text("docker: podman\n")
    env_file = tmp_path / "custom.env"
    env_file.write_text("DOCKER_REPOSITORY=acme\n")
    config = ConfigManager(environ={}).load(config_file=str(config_file), env_file=str(env_file))
    assert config.docker == "podman"
    assert config.repository == "acme"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(MissingFileError):
        ConfigManager(str(tmp_path), environ={}).load(config_file=str(tmp_path / "nope.yml"))


def test_invalid_value(tmp_path):
    with pytest.raises(ConfigError, match="Invalid configuration"):
        ConfigManager(str(tmp_path), environ={"DIT_PUSH_RETRIES": "0"}).load()


def test_unknown_key(tmp_path):
    (tmp_path / "dit.yml").write_text("colour: blue\n")
    with pytest.raises(ConfigError):
        ConfigManager(str(tmp_path), environ={}).load()


def test_yaml_must_be_a_mapping(tmp_path):
    (tmp_path / "dit.yml").write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        ConfigManager(str(tmp_path), environ={}).load()


def test_yaml_parse_error(tmp_path):
    (tmp_path / "dit.yml").write_text("repository: [unclosed\n")
    with pytest.raises(ConfigError, match="Could not parse"):
        ConfigManager(str(tmp_path), environ={}).load()
