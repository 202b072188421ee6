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
Model for the tool-wide configuration, built once at startup.
"""
from typing import List
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HADOLINT_IGNORE = ["DL3008", "DL3018", "DL4000", "DL4001"]


class ToolConfig(BaseModel):
    """
    Settings shared by every command.

    Populated by ConfigManager from defaults, dit.yml, .env and the process
    environment, then handed to the runner explicitly.
    """
    model_config = ConfigDict(extra="forbid")

    # Image layout
    directory: str = "."
    dockerfile: str = "Dockerfile"

    # Naming
    repository: str = "puppet"
    namespace: str = "org.label-schema"
    tag: str = "latest"

    # Build / publish
    no_cache: bool = False
    docker: str = "docker"
    push_retries: int = Field(default=3, ge=1)

    # Linting
    hadolint_image: str = "hadolint/hadolint"
    hadolint_ignore: List[str] = Field(default_factory=lambda: list(DEFAULT_HADOLINT_IGNORE))
