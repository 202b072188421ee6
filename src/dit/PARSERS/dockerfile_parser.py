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
Parsers for Dockerfiles: reading them, splitting them into instructions, and
pulling directives, labels, variables and build args out of their text.
"""
import os
import re
import shlex
from typing import Dict, List, Optional

from ..MODELS.dockerfile_ast import DockerfileAST, Instruction
from ..exceptions import MissingFileError, UnreadableFileError

SIGIL = "$"

# A logical line: keyword, whitespace, arguments.
INSTRUCTION_RE = re.compile(r"^([A-Za-z]+)(?:\s+(.*))?$", re.DOTALL)
COMMENT_RE = re.compile(r"^\s*#.*$", re.MULTILINE)

# Characters a variable value may contain. Anything else ends the value.
VARIABLE_VALUE = r'["A-Za-z0-9._+${}\-]+'

# A name must not be glued to a preceding word, dot or hyphen, so that
# `version=` never matches inside `org.label-schema.version=`.
NAME_BOUNDARY = r"(?<![\w.\-])"


def normalize_label(label: str) -> str:
    """Labels are matched with hyphens; `vcs_ref` and `vcs-ref` are the same label."""
    return label.replace("_", "-")


def read_text(path: str) -> str:
    """
    Reads a Dockerfile as UTF-8.

    :raises UnreadableFileError: If the bytes are not valid UTF-8.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise UnreadableFileError(path, e.reason) from e


class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def read(self, directory: str = ".", dockerfile: str = "Dockerfile", contents: str = "") -> str:
        """
        Returns the text of a Dockerfile.

        Args:
            directory (str): Directory holding the Dockerfile.
            dockerfile (str): File name inside `directory`.
            contents (str): Text already in hand. When non-empty it is
                returned as is and the filesystem is not touched.

        Returns:
            str: The Dockerfile text.

        Raises:
            MissingFileError: If the file does not exist or is empty.
            UnreadableFileError: If the file is not valid UTF-8.
        """
        if contents:
            return contents

        path = os.path.join(directory, dockerfile)
        if not os.path.isfile(path):
            raise MissingFileError(path)
        text = read_text(path)
        if not text.strip():
            raise MissingFileError(path, "is empty")
        return text

    def parse_from_string(self, content: str) -> DockerfileAST:
        """
        Parses a Dockerfile from a string content.

        Comment lines are dropped and backslash continuations are joined, so
        every instruction comes back as a single logical line.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            DockerfileAST: The parsed instructions, in file order.
        """
        instructions: List[Instruction] = []
        buffer: List[str] = []
        start = 0

        for number, raw in enumerate(content.splitlines(), start=1):
            stripped = raw.strip()
            if stripped.startswith("#") or (not stripped and not buffer):
                continue
            if not buffer:
                start = number
            if stripped.endswith("\\"):
                buffer.append(stripped[:-1].strip())
                continue
            buffer.append(stripped)
            self._add_instruction(instructions, buffer, start)
            buffer = []

        # Trailing continuation at end of file
        if buffer:
            self._add_instruction(instructions, buffer, start)

        return DockerfileAST(instructions=instructions)

    @staticmethod
    def _add_instruction(instructions: List[Instruction], parts: List[str], line: int):
        logical = " ".join(part for part in parts if part)
        match = INSTRUCTION_RE.match(logical)
        if not match:
            return
        instructions.append(Instruction(
            instruction=match.group(1).upper(),
            value=(match.group(2) or "").strip(),
            line=line,
        ))

    def get_directive(self, key: str, contents: str) -> Optional[str]:
        """
        Returns the value of the first `key` directive, e.g. the image named by FROM.

        The keyword match is case-insensitive. Later directives with the same
        keyword are ignored.

        Args:
            key (str): Directive keyword, such as 'from'.
            contents (str): Dockerfile text.

        Returns:
            Optional[str]: Everything after the keyword, or None if absent.
        """
        instruction = self.parse_from_string(contents).first(key)
        if instruction is None:
            return None
        return instruction.value

    def get_variable(self, reference: str, contents: str) -> Optional[str]:
        """
        Looks up the value assigned to a variable reference such as `$VERSION`.

        The value is returned raw, quotes included. A value that is itself a
        reference is not expanded here.

        Args:
            reference (str): The reference, with or without its `$` sigil.
                `${NAME}` is accepted too.
            contents (str): Dockerfile text.

        Returns:
            Optional[str]: The assigned value, or None if `NAME=` never appears.
        """
        name = reference[len(SIGIL):] if reference.startswith(SIGIL) else reference
        if name.startswith("{") and name.endswith("}"):
            name = name[1:-1]
        if not name:
            return None

        pattern = re.compile(NAME_BOUNDARY + re.escape(name) + "=(" + VARIABLE_VALUE + ")")
        match = pattern.search(COMMENT_RE.sub("", contents))
        return match.group(1) if match else None

    def get_labels(self, namespace: str, contents: str) -> Dict[str, str]:
        """
        Collects every `NAMESPACE.label=value` assignment in the text.

        Keys have the namespace removed and underscores turned into hyphens.
        Values are raw: a quoted value keeps its quotes. When a label is
        assigned more than once the first assignment wins.

        :param namespace: Label namespace, e.g. 'org.label-schema'.
        :param contents: Dockerfile text.
        :return: Mapping of label to raw value.
        """
        pattern = re.compile(
            NAME_BOUNDARY
            + re.escape(namespace)
            + r'\.([A-Za-z0-9_.\-]+)=("(?:[^"\\\n]|\\.)*"|[^\s\\]+)'
        )
        labels: Dict[str, str] = {}
        for match in pattern.finditer(COMMENT_RE.sub("", contents)):
            labels.setdefault(normalize_label(match.group(1)), match.group(2))
        return labels

    def get_build_arg_names(self, contents: str) -> List[str]:
        """
        Returns the names declared with ARG, in declaration order.

        Defaults (`ARG name=default`) are ignored; only the name matters.
        """
        names: List[str] = []
        for instruction in self.parse_from_string(contents).find_all("ARG"):
            try:
                tokens = shlex.split(instruction.value)
            except ValueError:
                tokens = instruction.value.split()
            for token in tokens:
                name = token.partition("=")[0]
                if name and name not in names:
                    names.append(name)
        return names
