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
Parsing and filtering of docker build args.
"""
import logging
import os
from typing import Dict, Iterable, Mapping

from .dockerfile_parser import DockerfileParser, read_text
from ..exceptions import InvalidBuildArgError, MissingFileError

logger = logging.getLogger(__name__)


def parse_build_args(entries: Iterable[str]) -> Dict[str, str]:
    """
    Converts a list of 'key=value' strings into a dict.

    Only the first '=' splits, so values may contain '=' themselves. A key
    given twice keeps its last value.

    :param entries: Strings such as 'version=1.2.3'.
    :return: The build args, in the order first seen.
    :raises InvalidBuildArgError: If an entry has no '=' or an empty key.
    """
    build_args: Dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise InvalidBuildArgError(f"Build arg '{entry}' is not in key=value form")
        build_args[key] = value
    return build_args


def filter_build_args(build_args: Mapping[str, str], dockerfile: str) -> Dict[str, str]:
    """
    Keeps only the build args the Dockerfile declares with ARG.

    Docker warns about (and older versions reject) build args the Dockerfile
    never consumes, so anything undeclared is dropped with a notice.

    :param build_args: Candidate build args.
    :param dockerfile: Path to the Dockerfile.
    :return: A new dict holding the declared args, in input order.
    :raises MissingFileError: If the Dockerfile does not exist.
    :raises UnreadableFileError: If the Dockerfile is not valid UTF-8.
    """
    if not os.path.exists(dockerfile):
        raise MissingFileError(dockerfile)

    # An empty Dockerfile declares nothing, so every arg is dropped
    declared = set(DockerfileParser().get_build_arg_names(read_text(dockerfile)))

    filtered: Dict[str, str] = {}
    for key, value in build_args.items():
        if key in declared:
            filtered[key] = value
        else:
            logger.info(f"Removing build arg '{key}', it is not declared in {dockerfile}")
    return filtered
