import logging
import pytest
from dit.PARSERS.build_args import filter_build_args, parse_build_args
from dit.exceptions import InvalidBuildArgError, MissingFileError

DOCKERFILE_WITH_ARGS = """\
FROM puppet/puppetserver-standalone:5.3.1

ARG version
ARG foo
ARG bar=default
"""


class TestParseBuildArgs:
    """Tests for parse_build_args."""

    def test_converts_the_list_to_a_dict(self):
        build_args = ["foo=bar", "test=a=string=with==equals"]
        assert parse_build_args(build_args) == {"foo": "bar", "test": "a=string=with==equals"}

    def test_only_first_equals_splits(self):
        assert parse_build_args(["k=v1=v2"]) == {"k": "v1=v2"}

    def test_last_write_wins(self):
        parsed = parse_build_args(["a=1", "b=2", "a=3"])
        assert parsed == {"a": "3", "b": "2"}
        assert list(parsed) == ["a", "b"]

    def test_empty_value(self):
        assert parse_build_args(["a="]) == {"a": ""}

    def test_empty_list(self):
        assert parse_build_args([]) == {}

    @pytest.mark.parametrize("entry", ["foo", "=bar"])
    def test_rejects_malformed_entries(self, entry):
        with pytest.raises(InvalidBuildArgError):
            parse_build_args([entry])


class TestFilterBuildArgs:
    """Tests for filter_build_args."""

    def test_fails_if_the_dockerfile_does_not_exist(self, tmp_path):
        with pytest.raises(MissingFileError, match="doesn't exist"):
            filter_build_args({"a": "1"}, str(tmp_path / "Dockerfile"))

    def test_filters_out_undeclared_args(self, tmp_path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text(DOCKERFILE_WITH_ARGS)
        build_args = {"version": "1.2.3", "foo": "test", "bar": "baz", "test": "test2"}
        filtered = filter_build_args(build_args, str(dockerfile))
        assert filtered == {"version": "1.2.3", "foo": "test", "bar": "baz"}
        assert list(filtered) == ["version", "foo", "bar"]
        # input is left alone
        assert "test" in build_args

    def test_reports_rejected_args(self, tmp_path, caplog):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text("FROM scratch\nARG a\n")
        with caplog.at_level(logging.INFO, logger="dit.PARSERS.build_args"):
            assert filter_build_args({"a": "1", "b": "2"}, str(dockerfile)) == {"a": "1"}
        assert "'b'" in caplog.text
        assert "'a'" not in caplog.text

    def test_keeps_input_order(self, tmp_path):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text("FROM scratch\nARG z\nARG a\n")
        assert list(filter_build_args({"a": "1", "z": "2"}, str(dockerfile))) == ["a", "z"]

    def test_empty_dockerfile_declares_nothing(self, tmp_path, caplog):
        dockerfile = tmp_path / "Dockerfile"
        dockerfile.write_text("")
        with caplog.at_level(logging.INFO, logger="dit.PARSERS.build_args"):
            assert filter_build_args({"a": "1", "b": "2"}, str(dockerfile)) == {}
        assert caplog.text.count("Removing build arg") == 2
