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
Exceptions raised by dit.

Everything derives from DitError so the CLI can report any known failure
with the message it was raised with.
"""
from typing import List, Optional


class DitError(Exception):
    """Base exception for all dit errors."""

    pass


class MissingFileError(DitError, FileNotFoundError):
    """Raised when a required Dockerfile does not exist or is empty."""

    def __init__(self, path: str, reason: str = "doesn't exist"):
        self.path = path
        super().__init__(f"File {path} {reason}!")

    def __str__(self) -> str:
        return self.args[0]


class UnreadableFileError(DitError):
    """Raised when a Dockerfile exists but cannot be decoded as UTF-8."""

    def __init__(self, path: str, detail: str = ""):
        self.path = path
        message = f"File {path} is not valid UTF-8"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class CycleDetectedError(DitError):
    """Raised when label resolution would loop forever."""

    def __init__(self, value: str, kind: str = "variable"):
        self.value = value
        super().__init__(
            f"Infinite loop detected while expanding {kind} '{value}'"
        )


class UnresolvedLabelError(DitError):
    """Raised when no value for a label exists anywhere in the base-image chain."""

    def __init__(self, label: str, searched: Optional[List[str]] = None, detail: str = ""):
        self.label = label
        self.searched = list(searched or [])
        message = f"No value found for label '{label}'"
        if self.searched:
            message += f" (searched {', '.join(self.searched)})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class MalformedBaseImageError(UnresolvedLabelError):
    """Raised when the FROM directive needed for base-image lookup is absent or unusable."""

    pass


class InvalidBuildArgError(DitError, ValueError):
    """Raised for build args that are not in 'key=value' form."""

    pass


class ConfigError(DitError):
    """Raised when configuration values fail validation."""

    pass


class CommandError(DitError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: List[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = f"Command failed ({returncode}): {' '.join(self.command)}"
        if output:
            message += f"\n{output}"
        super().__init__(message)


class LintError(CommandError):
    """Raised when hadolint reports problems with a Dockerfile."""

    def __str__(self) -> str:
        return self.output or super().__str__()


class PushError(DitError):
    """Raised when an image cannot be pushed."""

    pass


class SpecRunError(DitError):
    """Raised when the tests for an image fail."""

    pass
