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
Small helpers shared by the runner: git revisions and timestamps.
"""
import subprocess
from datetime import datetime, timezone
from typing import Optional, Union

from ..exceptions import CommandError

ISO8601 = "%Y-%m-%dT%H:%M:%SZ"


def current_git_sha(directory: str = ".") -> str:
    """Return the commit checked out in `directory`."""
    command = ["git", "rev-parse", "HEAD"]
    result = subprocess.run(command, cwd=directory, capture_output=True, text=True, shell=False)
    if result.returncode != 0:
        raise CommandError(command, result.returncode, (result.stderr or result.stdout).strip())
    return result.stdout.strip()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Current UTC time as ISO 8601, e.g. 2018-05-14T22:35:15Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(ISO8601)


def format_timestamp(timestamp: Union[str, int]) -> str:
    """
    Format an image 'Created' value for display.

    Seconds since the epoch are converted to ISO 8601; anything else is
    assumed to be formatted already and is returned unchanged.
    """
    text = str(timestamp)
    if text.strip().isdigit():
        return datetime.fromtimestamp(int(text.strip()), tz=timezone.utc).strftime(ISO8601)
    return text
