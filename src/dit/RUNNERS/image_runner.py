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
Per-image operations: build, lint, push, label updates, tests and version lookup.
"""
import glob
import logging
import os
import re
import subprocess
import sys
from typing import Dict, Iterable, List, Optional, Sequence

from ..MODELS.tool_config import ToolConfig
from ..PARSERS.build_args import filter_build_args, parse_build_args
from ..PARSERS.dockerfile_parser import read_text
from ..REGISTRY.docker_client import DockerClient
from ..RESOLVERS.label_resolver import LabelResolver
from ..UTILS.helpers import current_git_sha, utc_timestamp
from ..exceptions import (
    CommandError,
    DitError,
    MissingFileError,
    PushError,
    SpecRunError,
    UnresolvedLabelError,
)

logger = logging.getLogger(__name__)

# Values rev_labels is willing to overwrite: git shas and ISO 8601 timestamps.
REV_LABEL_VALUE = r'"[a-z0-9A-Z\-:]*"'


class ImageRunner:
    """
    Runs the tool's commands against one image directory.

    The image name is the directory's basename and images are tagged
    `<repository>/<image name>:<tag>`.
    """
    def __init__(self,
                 config: ToolConfig,
                 docker: Optional[DockerClient] = None,
                 resolver: Optional[LabelResolver] = None):
        """
        Initializes the runner.

        :param config: Tool configuration; directory, dockerfile, repository
            and namespace select the image.
        :param docker: Client used for docker and hadolint calls.
        :param resolver: Resolver used for Dockerfile labels.
        :raises MissingFileError: If the Dockerfile does not exist.
        """
        self.config = config
        self.directory = config.directory
        self.dockerfile = config.dockerfile
        self.repository = config.repository
        self.namespace = config.namespace
        self.docker = docker or DockerClient.from_config(config)
        self.resolver = resolver or LabelResolver()

        if not os.path.exists(self.dockerfile_path):
            raise MissingFileError(self.dockerfile_path)

    @property
    def dockerfile_path(self) -> str:
        return os.path.join(self.directory, self.dockerfile)

    @property
    def image_name(self) -> str:
        return os.path.basename(os.path.abspath(self.directory))

    @property
    def path(self) -> str:
        return f"{self.repository}/{self.image_name}"

    def build(self,
              no_cache: Optional[bool] = None,
              version: Optional[str] = None,
              build_args: Iterable[str] = (),
              latest: bool = True) -> List[str]:
        """
        Builds the image.

        :param no_cache: Ignore cached layers. Defaults to the configured value.
        :param version: Version to build, passed as the 'version' build arg.
        :param build_args: Extra 'key=value' build args. A 'version' given
            here wins over `version`.
        :param latest: Also tag the build as 'latest'.
        :return: The tags applied.
        """
        if no_cache is None:
            no_cache = self.config.no_cache

        args: Dict[str, str] = {
            "vcs_ref": current_git_sha(self.directory),
            "build_date": utc_timestamp(),
        }
        if version is not None:
            args["version"] = version
        args.update(parse_build_args(build_args))
        args = filter_build_args(args, self.dockerfile_path)

        # A Dockerfile either takes its version as an ARG or hardcodes it in
        # its labels; only look at the labels when no version was passed in.
        version = args.get("version") or self._label_version()

        tags = []
        if latest:
            tags.append(f"{self.path}:{self.config.tag}")
        if version:
            tags.append(f"{self.path}:{version}")
        if not tags:
            raise DitError(f"Nothing to build for {self.path}: no version found and latest disabled")

        if no_cache:
            logger.info(f"Ignoring cache for {self.path}")
        for tag in tags:
            logger.info(f"Building {tag}")

        self.docker.build(
            self.directory,
            tags,
            build_args=args,
            dockerfile=self.dockerfile_path if self.dockerfile != "Dockerfile" else None,
            no_cache=no_cache,
        )
        return tags

    def _label_version(self) -> Optional[str]:
        try:
            return self.version()
        except UnresolvedLabelError as e:
            logger.info(f"No version label for {self.path}, building without a version tag ({e})")
            return None

    def lint(self) -> str:
        """
        Lints the Dockerfile with hadolint in a container.

        :raises LintError: With hadolint's output when it finds problems.
        """
        return self.docker.lint(read_text(self.dockerfile_path))

    def local_lint(self) -> str:
        """
        Lints the Dockerfile with a locally installed hadolint.

        :raises LintError: With hadolint's output when it finds problems.
        """
        return self.docker.local_lint(self.dockerfile_path)

    def push(self, latest: bool = True) -> List[str]:
        """
        Pushes the versioned tag, and 'latest' unless told otherwise.

        The version is read from the labels of the image that was built, so
        it always matches what is being published.

        :return: The tags pushed.
        :raises PushError: If the image has no version label or a push fails.
        """
        version = self.docker.get_label(self.path, "version", self.namespace)
        if not version:
            raise PushError(f"No version specified in {self.dockerfile} for {self.path}")

        tags = [f"{self.path}:{version}"]
        if latest:
            tags.append(f"{self.path}:{self.config.tag}")

        for tag in tags:
            logger.info(f"Pushing {tag}")
            try:
                self.docker.push(tag)
            except CommandError as e:
                raise PushError(f"Pushing {tag} failed!\n{e.output}".rstrip()) from e
        return tags

    def rev_labels(self) -> List[str]:
        """
        Updates the vcs-ref and build-date labels in the Dockerfile.

        Only quoted values are replaced; the rest of the file is kept as is.

        :return: The label keys that changed.
        """
        values_to_update = {
            f"{self.namespace}.vcs-ref": current_git_sha(self.directory),
            f"{self.namespace}.build-date": utc_timestamp(),
        }

        text = read_text(self.dockerfile_path)

        updated = []
        for key, value in values_to_update.items():
            pattern = re.compile(re.escape(key) + "=" + REV_LABEL_VALUE)
            new_text = pattern.sub(lambda _: f'{key}="{value}"', text)
            if new_text != text:
                logger.info(f"Updating {key} in {self.dockerfile_path}")
                updated.append(key)
            text = new_text

        if not text.endswith("\n"):
            text += "\n"
        with open(self.dockerfile_path, "w", encoding="utf-8") as f:
            f.write(text)
        return updated

    def spec(self, pytest_args: Sequence[str] = ()):
        """
        Runs the image's tests, tests/test_*.py, one file at a time with pytest.

        Each run sees DIT_IMAGE (the image under test) and DIT_DIRECTORY in
        its environment. Output goes straight to the terminal.

        :raises SpecRunError: If any test file fails.
        """
        tests_dir = os.path.join(self.directory, "tests")
        tests = sorted(glob.glob(os.path.join(tests_dir, "test_*.py")))
        if not tests:
            logger.warning(f"No tests found in {os.path.abspath(tests_dir)}")
            return

        names = ",".join(os.path.splitext(os.path.basename(t))[0] for t in tests)
        logger.info(f"Running tests from {os.path.abspath(tests_dir)} ({names}), this may take some time")

        env = dict(os.environ)
        env["DIT_IMAGE"] = f"{self.path}:{self.config.tag}"
        env["DIT_DIRECTORY"] = os.path.abspath(self.directory)

        failed = []
        for test in tests:
            result = subprocess.run(
                [sys.executable, "-m", "pytest", test] + list(pytest_args),
                env=env,
                shell=False,
            )
            if result.returncode != 0:
                failed.append(os.path.basename(test))

        if failed:
            raise SpecRunError(f"Running tests for {self.directory} failed! ({', '.join(failed)})")

    def version(self) -> str:
        """
        Returns the version declared in the Dockerfile, following base images.

        :raises UnresolvedLabelError: If no Dockerfile in the chain declares one.
        """
        return self.resolver.resolve("version", self.namespace, self.directory, self.dockerfile)


def update_base_images(tags: Iterable[str], docker: DockerClient) -> List[str]:
    """
    Pulls each of `tags`, e.g. ['centos:7', 'ubuntu:16.04'].

    :return: Every tag pulled.
    """
    pulled = []
    for tag in tags:
        pulled.extend(docker.pull(tag))
    return pulled
