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

import logging
import re
import subprocess
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
from dit.UTILS.helpers import current_git_sha, format_timestamp, utc_timestamp
from dit.UTILS.logger import setup_logger
from dit.exceptions import CommandError


def test_format_epoch_timestamp():
    assert format_timestamp("1526069372") == "2018-05-11T20:09:32Z"
    assert format_timestamp(1526069372) == "2018-05-11T20:09:32Z"


def test_format_timestamp_passthrough():
    assert format_timestamp("2018-05-11T20:09:32.123456789Z") == "2018-05-11T20:09:32.123456789Z"
    assert format_timestamp("unknown") == "unknown"


def test_utc_timestamp():
    now = datetime(2018, 5, 14, 18, 35, 15, tzinfo=timezone(timedelta(hours=-4)))
    assert utc_timestamp(now) == "2018-05-14T22:35:15Z"
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$", utc_timestamp())


def test_current_git_sha(tmp_path):
    with mock.patch("dit.UTILS.helpers.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 0, stdout="abc123\n", stderr="")
        assert current_git_sha(str(tmp_path)) == "abc123"
    assert run.call_args.args[0] == ["git", "rev-parse", "HEAD"]
    assert run.call_args.kwargs["cwd"] == str(tmp_path)


def test_current_git_sha_outside_repository(tmp_path):
    with mock.patch("dit.UTILS.helpers.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 128, stdout="", stderr="fatal: not a git repository")
        with pytest.raises(CommandError, match="not a git repository"):
            current_git_sha(str(tmp_path))


def test_setup_logger_is_idempotent():
    root = logging.getLogger()
    level = root.level
    try:
        setup_logger()
        setup_logger(debug=True)
        handlers = [h for h in root.handlers if getattr(h, "_dit_handler", False)]
        assert len(handlers) == 1
        assert root.level == logging.DEBUG
        setup_logger()
        assert root.level == logging.INFO
    finally:
        for handler in [h for h in root.handlers if getattr(h, "_dit_handler", False)]:
            root.removeHandler(handler)
        root.setLevel(level)
