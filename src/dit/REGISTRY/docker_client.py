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
Thin wrapper around the docker and hadolint command line tools.

Every command runs through subprocess with an argument list, never a shell.
"""
import json
import logging
import subprocess
from typing import Dict, List, Mapping, Optional, Sequence

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..MODELS.tool_config import DEFAULT_HADOLINT_IGNORE, ToolConfig
from ..PARSERS.dockerfile_parser import normalize_label
from ..UTILS.helpers import format_timestamp
from ..exceptions import CommandError, LintError

logger = logging.getLogger(__name__)


def hadolint_command(dockerfile: str = "-", ignore: Optional[Sequence[str]] = None) -> List[str]:
    """
    Build the hadolint command line.

    :param dockerfile: Path to lint, or '-' to read the Dockerfile from stdin.
    :param ignore: Rule codes to suppress.
    """
    if ignore is None:
        ignore = DEFAULT_HADOLINT_IGNORE
    command = ["hadolint"]
    for rule in ignore:
        command.extend(["--ignore", rule])
    command.append(dockerfile)
    return command


def has_tag(image: str) -> bool:
    """True when `image` names a tag or digest, e.g. 'ubuntu:16.04'."""
    if "@" in image:
        return True
    last_colon = image.rfind(":")
    return last_colon != -1 and "/" not in image[last_colon + 1:]


class DockerClient:
    """
    Runs docker commands for building, pushing, pulling and inspecting images.
    """
    def __init__(self,
                 docker: str = "docker",
                 push_retries: int = 3,
                 retry_wait: float = 2.0,
                 hadolint_image: str = "hadolint/hadolint",
                 hadolint_ignore: Optional[Sequence[str]] = None):
        """
        Initializes the client.

        :param docker: docker executable to call.
        :param push_retries: Attempts per push before giving up.
        :param retry_wait: Base delay in seconds between push attempts.
        :param hadolint_image: Image used by `lint`.
        :param hadolint_ignore: hadolint rules to suppress.
        """
        self.docker = docker
        self.push_retries = push_retries
        self.retry_wait = retry_wait
        self.hadolint_image = hadolint_image
        self.hadolint_ignore = list(DEFAULT_HADOLINT_IGNORE if hadolint_ignore is None else hadolint_ignore)

    @classmethod
    def from_config(cls, config: ToolConfig) -> "DockerClient":
        return cls(
            docker=config.docker,
            push_retries=config.push_retries,
            hadolint_image=config.hadolint_image,
            hadolint_ignore=config.hadolint_ignore,
        )

    def execute(self, command: Sequence[str], input: Optional[str] = None, capture: bool = True) -> str:
        """
        Runs a command and returns its output.

        With `capture=False` the command writes straight to this process's
        stdout/stderr and an empty string is returned.

        :raises CommandError: If the command exits non-zero or cannot be started.
        """
        command = list(command)
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                input=input,
                capture_output=capture,
                text=True,
                shell=False,
            )
        except OSError as e:
            raise CommandError(command, 127, str(e)) from e

        if result.returncode != 0:
            output = "\n".join(
                part.strip() for part in (result.stdout, result.stderr) if part and part.strip()
            )
            raise CommandError(command, result.returncode, output)
        return result.stdout if capture else ""

    def run(self, args: Sequence[str], input: Optional[str] = None, capture: bool = True) -> str:
        """Runs `docker <args>`."""
        return self.execute([self.docker] + list(args), input=input, capture=capture)

    def build(self,
              directory: str,
              tags: Sequence[str],
              build_args: Optional[Mapping[str, str]] = None,
              dockerfile: Optional[str] = None,
              no_cache: bool = False):
        """
        Builds an image from `directory` and applies every tag in `tags`.

        :param dockerfile: Dockerfile path when it is not `directory/Dockerfile`.
        """
        args = ["build"]
        if no_cache:
            args.append("--no-cache")
        if dockerfile:
            args.extend(["-f", dockerfile])
        for key, value in (build_args or {}).items():
            args.extend(["--build-arg", f"{key}={value}"])
        for tag in tags:
            args.extend(["-t", tag])
        args.append(directory)
        self.run(args, capture=False)

    def push(self, tag: str):
        """
        Pushes `tag`, retrying with exponential backoff on failure.

        :raises CommandError: If the last attempt fails.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.push_retries),
            wait=wait_exponential(multiplier=self.retry_wait, max=60),
            retry=retry_if_exception_type(CommandError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self.run(["push", tag], capture=False)

    def pull(self, image: str) -> List[str]:
        """
        Pulls an image. Without a tag, every tag of the image is pulled.

        :return: The tags now present locally.
        """
        if has_tag(image):
            logger.info(f"Pulling {image}")
            self.run(["pull", image], capture=False)
            tags = [image]
        else:
            logger.info(f"Pulling all tags for {image}")
            self.run(["pull", "--all-tags", image], capture=False)
            listing = self.run(["image", "ls", "--format", "{{.Repository}}:{{.Tag}}", image])
            tags = [line.strip() for line in listing.splitlines() if line.strip()]

        for tag in tags:
            info = self.inspect(tag) or {}
            repo_tags = ", ".join(info.get("RepoTags") or [tag])
            logger.info(f"Pulled {repo_tags}, last updated {format_timestamp(info.get('Created', 'unknown'))}")
        return tags

    def inspect(self, image: str) -> Optional[Dict]:
        """Returns `docker image inspect` data for an image, or None if it is not available."""
        try:
            output = self.run(["image", "inspect", image])
        except CommandError as e:
            logger.debug(f"Could not inspect {image}: {e}")
            return None
        data = json.loads(output or "[]")
        return data[0] if data else None

    def get_labels(self, image: str) -> Dict[str, str]:
        """Returns the labels applied to a built image; empty when it has none or does not exist."""
        info = self.inspect(image)
        if not info:
            return {}
        return dict((info.get("Config") or {}).get("Labels") or {})

    def get_label(self, image: str, value: str, namespace: str) -> Optional[str]:
        """
        Returns one namespaced label from a built image.

        :param image: Image reference, e.g. 'puppet/puppetserver'.
        :param value: Label name; underscores match hyphens.
        :param namespace: Label namespace.
        """
        return self.get_labels(image).get(f"{namespace}.{normalize_label(value)}")

    def lint(self, contents: str) -> str:
        """
        Lints Dockerfile text with hadolint running in a container.

        :raises LintError: With hadolint's findings when linting fails.
        """
        self.pull(f"{self.hadolint_image}:latest")
        command = ["run", "--rm", "-i", self.hadolint_image] + hadolint_command(ignore=self.hadolint_ignore)
        try:
            return self.run(command, input=contents)
        except CommandError as e:
            raise LintError(e.command, e.returncode, e.output) from e

    def local_lint(self, dockerfile: str) -> str:
        """
        Lints a Dockerfile with a hadolint executable found on PATH.

        :raises LintError: With hadolint's findings when linting fails.
        """
        try:
            return self.execute(hadolint_command(dockerfile, ignore=self.hadolint_ignore))
        except CommandError as e:
            raise LintError(e.command, e.returncode, e.output) from e
