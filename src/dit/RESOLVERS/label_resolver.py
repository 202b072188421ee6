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
Resolution of namespaced label values (most importantly the image version)
from Dockerfiles, following variable references and base images.
"""
import logging
import os
from typing import List, Optional, Set

from ..PARSERS.dockerfile_parser import SIGIL, DockerfileParser, normalize_label
from ..REGISTRY.image_reference import ImageReference
from ..exceptions import (
    CycleDetectedError,
    MalformedBaseImageError,
    MissingFileError,
    UnresolvedLabelError,
)

logger = logging.getLogger(__name__)


def strip_quotes(value: str) -> str:
    """Remove one leading and one trailing double quote, if present."""
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


class LabelResolver:
    """
    Resolves the value of a label such as `org.label-schema.version`.

    Labels are usually declared once in a base image's Dockerfile and only
    overridden by derived images, so a label missing from one Dockerfile is
    looked up in the Dockerfile of its base image. Base images are expected
    to live in sibling directories named after the image:

        images/
            puppetserver-standalone/Dockerfile   FROM ubuntu:16.04
            puppetserver/Dockerfile              FROM puppet/puppetserver-standalone:5.3.1
    """
    def __init__(self, parser: Optional[DockerfileParser] = None):
        self.parser = parser or DockerfileParser()

    def resolve(self, label: str, namespace: str, directory: str = ".", dockerfile: str = "Dockerfile") -> str:
        """
        Returns the value of `namespace.label` for the image in `directory`.

        :param label: Label name, e.g. 'version' or 'vcs_ref'.
        :param namespace: Label namespace, e.g. 'org.label-schema'.
        :param directory: Directory holding the image's Dockerfile.
        :param dockerfile: Dockerfile name, kept when following base images.
        :return: The label value with surrounding quotes removed.
        :raises MissingFileError: If `directory` has no Dockerfile.
        :raises CycleDetectedError: If variables or base images refer to each other.
        :raises UnresolvedLabelError: If no Dockerfile in the chain declares the label.
        """
        return self._resolve(label, namespace, directory, dockerfile, searched=[])

    def resolve_base_image(self, label: str, namespace: str, directory: str = ".",
                           dockerfile: str = "Dockerfile", contents: str = "") -> str:
        """
        Returns the value of `namespace.label` from the base image of `directory`.

        :param contents: Text of the Dockerfile in `directory`, if already read.
        """
        text = self.parser.read(directory, dockerfile, contents)
        path = os.path.join(directory, dockerfile)
        return self._from_base_image(label, namespace, directory, dockerfile, text, searched=[path])

    def expand(self, value: Optional[str], contents: str) -> Optional[str]:
        """
        Follows a chain of variable references until it reaches a plain value.

        :param value: A raw label value, possibly a reference like '"$VERSION"'.
        :param contents: Dockerfile text the variables are assigned in.
        :return: The first value in the chain that is not a reference, or None
            when a variable in the chain is never assigned.
        :raises CycleDetectedError: If a reference comes up a second time.
        """
        visited: Set[str] = set()
        while value is not None and strip_quotes(value).startswith(SIGIL):
            reference = strip_quotes(value)
            if reference in visited:
                raise CycleDetectedError(reference)
            visited.add(reference)
            value = self.parser.get_variable(reference, contents)
        return value

    def _resolve(self, label: str, namespace: str, directory: str, dockerfile: str,
                 searched: List[str]) -> str:
        path = os.path.join(directory, dockerfile)
        if os.path.normpath(path) in (os.path.normpath(p) for p in searched):
            raise CycleDetectedError(path, kind="base image Dockerfile")
        searched.append(path)

        text = self.parser.read(directory, dockerfile)
        value = self.parser.get_labels(namespace, text).get(normalize_label(label))
        value = self.expand(value, text)

        if value is None:
            value = self._from_base_image(label, namespace, directory, dockerfile, text, searched)
        return strip_quotes(value)

    def _from_base_image(self, label: str, namespace: str, directory: str, dockerfile: str,
                         contents: str, searched: List[str]) -> str:
        base_image = self.base_image_name(contents)
        if base_image is None:
            raise MalformedBaseImageError(
                label, searched, detail="no usable FROM directive to follow"
            )

        base_directory = os.path.join(directory, "..", base_image)
        logger.debug(f"'{label}' not set in {searched[-1]}, checking base image in {base_directory}")
        try:
            return self._resolve(label, namespace, base_directory, dockerfile, searched)
        except MissingFileError as exc:
            if exc.path != os.path.join(base_directory, dockerfile):
                raise
            raise UnresolvedLabelError(
                label, searched, detail=f"base image '{base_image}' has no Dockerfile at {exc.path}"
            ) from exc

    def base_image_name(self, contents: str) -> Optional[str]:
        """
        Returns the short name of the image a Dockerfile builds FROM.

        'FROM --platform=linux/amd64 registry:5000/puppet/puppetserver:5.3.1 AS build'
        gives 'puppetserver'.
        """
        value = self.parser.get_directive("from", contents)
        if not value:
            return None

        tokens = [token for token in value.split() if not token.startswith("--")]
        if not tokens:
            return None
        try:
            return ImageReference.parse(tokens[0]).name
        except ValueError:
            return None
