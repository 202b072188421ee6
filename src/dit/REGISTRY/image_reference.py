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
Image reference parsing and handling.
Parses Docker image references like 'ubuntu:16.04' or 'docker.io/puppet/puppetserver:5.3.1'.
"""

from typing import Optional
from dataclasses import dataclass


@dataclass
class ImageReference:
    """
    Parsed Docker image reference.

    Examples:
        - ubuntu -> docker.io/library/ubuntu:latest
        - ubuntu:16.04 -> docker.io/library/ubuntu:16.04
        - puppet/puppetserver:5.3.1 -> docker.io/puppet/puppetserver:5.3.1
        - localhost:5000/puppet/agent@sha256:abc123... -> localhost:5000/puppet/agent@sha256:abc123...
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse a Docker image reference string.

        Args:
            reference: Image reference string (e.g., 'ubuntu:16.04', 'puppet/puppetserver:5.3.1')

        Returns:
            Parsed ImageReference object.
        """
        reference = reference.strip()
        if not reference:
            raise ValueError("Empty image reference")

        # Handle digest format (image@sha256:...)
        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        # Handle tag format (image:tag). A colon followed later by a slash
        # belongs to a registry port (localhost:5000/image), not a tag.
        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1 and "/" not in reference[last_colon + 1 :]:
            tag = reference[last_colon + 1 :]
            reference = reference[:last_colon]

        parts = reference.split("/")

        if len(parts) == 1:
            # Just image name: ubuntu -> docker.io/library/ubuntu
            registry = cls.DEFAULT_REGISTRY
            repository = f"library/{parts[0]}"
        else:
            first_part = parts[0]
            if "." in first_part or ":" in first_part or first_part == "localhost":
                registry = first_part
                repository = "/".join(parts[1:])
            else:
                # user/image format
                registry = cls.DEFAULT_REGISTRY
                repository = reference

        if not repository or repository.endswith("/"):
            raise ValueError(f"Invalid image reference: {reference}")

        # Use default tag if none specified and no digest
        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def name(self) -> str:
        """Last path segment of the repository, e.g. 'puppetserver' for puppet/puppetserver."""
        return self.repository.rsplit("/", 1)[-1]
