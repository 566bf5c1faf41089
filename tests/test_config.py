import dataclasses
import os
import pickle

import pytest

from covexport.config import (
    AppendRegex,
    Config,
    ConfigSource,
    ExportOptions,
    arg_parser,
    default_config,
    resolve_config_files,
)
from covexport.config import (
    toml_parser as get_toml_parser,
)

void = ConfigSource.void


@pytest.fixture
def void_config():
    return Config(_parent=None, _source=void)


@pytest.fixture
def config():
    return default_config()


@pytest.fixture
def parser():
    return arg_parser()


@pytest.fixture
def toml_parser():
    return get_toml_parser()


def test_fresh_config_has_only_None_values(void_config):
    for field in void_config.__dataclass_fields__.values():
        if field.metadata.get("internal"):
            continue
        assert getattr(void_config, field.name) is None


def test_default_config_values(config):
    assert config.input == "-"
    assert config.output == "-"
    assert config.sources == []
    assert config.num_threads == 0
    assert config.ignore_filename_regex == []
    assert not config.summary_only
    assert not config.skip_expansions
    assert not config.skip_functions


def test_default_config_immutable(config):
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.num_threads = 42


def test_unknown_keys_config_constructor_raise():
    with pytest.raises(TypeError):
        Config(_parent=None, _source=void, unknown_key=42)


def test_unknown_keys_config_object_raise(void_config):
    with pytest.raises(AttributeError):
        void_config.unknown_key  # noqa: B018 (not a useless expression)


def test_count_arg(config, parser):
    args = parser.parse_args(["-vvvvvv"])
    assert args.verbose == 6

    config_from_args = config.with_overrides(ConfigSource.command_line, **vars(args))
    assert config_from_args.verbose == 6


def test_positional_args(config, parser):
    args = parser.parse_args(["coverage.json", "a.c", "b.c", "-j", "4"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    assert config.input == "coverage.json"
    assert config.sources == ["a.c", "b.c"]
    assert config.num_threads == 4


def test_absent_positionals_do_not_override(config, parser):
    args = parser.parse_args(["--summary-only"])
    assert "input" not in vars(args)
    assert "sources" not in vars(args)

    file_config = config.with_overrides(ConfigSource.config_file, input="from-file.json")
    cli_config = file_config.with_overrides(ConfigSource.command_line, **vars(args))
    assert cli_config.value_with_source("input") == (
        "from-file.json",
        ConfigSource.config_file,
    )
    assert cli_config.summary_only


def test_repeated_regex_arg(parser):
    args = parser.parse_args(
        ["--ignore-filename-regex", "^/usr/", "--ignore-filename-regex", r"_test\.c$"]
    )
    assert args.ignore_filename_regex == ["^/usr/", r"_test\.c$"]


def test_invalid_regex_arg(parser):
    with pytest.raises(SystemExit):
        parser.parse_args(["--ignore-filename-regex", "(unclosed"])


def test_append_regex_parse():
    assert AppendRegex.parse("a") == ["a"]
    assert AppendRegex.parse(["a", "b"]) == ["a", "b"]
    assert AppendRegex.parse([]) == []
    assert AppendRegex.unparse(["a"]) == ["a"]

    with pytest.raises(ValueError):
        AppendRegex.parse(["ok", "[bad"])


def test_override(config):
    verbose_before = config.verbose

    override = config.with_overrides(ConfigSource.command_line, verbose=42)

    # the override is reflected in the new config
    assert override.verbose == 42

    # the default config is unchanged
    assert config.verbose == verbose_before

    # default values are still available in the override config
    assert override.num_threads == config.num_threads


def test_toml_parser_expects_single_section(toml_parser):
    # extra section
    with pytest.raises(SystemExit):
        toml_parser.parse_str("[global]\na = 1\n[extra]\nb = 2")

    # missing global
    with pytest.raises(SystemExit):
        toml_parser.parse_str("a = 1\nb = 2")

    # single section is not expected one
    with pytest.raises(SystemExit):
        toml_parser.parse_str("[weird]\na = 1\nb = 2")

    # works
    toml_parser.parse_str("[global]")


def test_toml_regex_list(toml_parser):
    data = toml_parser.parse_str(
        "[global]\nignore-filename-regex = ['^/usr/include/', 'third_party']"
    )
    assert data["ignore_filename_regex"] == ["^/usr/include/", "third_party"]

    # a single string is accepted too
    data = toml_parser.parse_str("[global]\nignore-filename-regex = 'vendor'")
    assert data["ignore_filename_regex"] == ["vendor"]


def test_config_file_default_location_is_cwd():
    # when we don't pass the project root as an argument
    config_files = resolve_config_files(args=[], include_missing=True)

    # then the config file should be in the current working directory
    assert config_files == [os.path.join(os.getcwd(), "covexport.toml")]


def test_config_file_in_project_root():
    # when we pass the project root as an argument
    base_path = "/path/to/project"
    args = ["--root", base_path, "--extra-args", "ignored"]
    config_files = resolve_config_files(args, include_missing=True)

    # then the config file should be in the project root
    assert config_files == [os.path.join(base_path, "covexport.toml")]


def test_config_file_missing_is_skipped(tmp_path):
    assert resolve_config_files(["--root", str(tmp_path)]) == []


def test_config_file_explicit():
    # when we pass a --config argument explicitly
    args = ["--config", "path/to/fake.toml", "--extra-args", "ignored"]
    config_files = resolve_config_files(args)

    # then we expect the config file to be the one we passed
    assert config_files == ["path/to/fake.toml"]


def test_config_file_invalid_key(config, toml_parser):
    # invalid keys result in an error and exit
    with pytest.raises(SystemExit) as exc_info:
        data = toml_parser.parse_str("[global]\ninvalid_key = 42")
        config = config.with_overrides(ConfigSource.config_file, **data)
    assert exc_info.value.code == 2


def test_config_file_snake_case(config, toml_parser):
    config_file_data = toml_parser.parse_str("[global]\nnum-threads = 42")
    assert config_file_data["num_threads"] == 42

    config = config.with_overrides(ConfigSource.config_file, **config_file_data)
    assert config.num_threads == 42


def test_config_e2e(config, parser, toml_parser):
    # when we apply overrides to the default config
    config_file_data = toml_parser.parse_str(
        "[global]\nverbose = 42\nskip-functions = true"
    )
    config = config.with_overrides(ConfigSource.config_file, **config_file_data)

    args = parser.parse_args(["-vvv"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    # then the config object should have the expected values
    assert config.verbose == 3
    assert config.skip_functions
    assert config.num_threads == 0

    # and each value should have the expected source
    assert config.value_with_source("verbose") == (3, ConfigSource.command_line)
    assert config.value_with_source("skip_functions") == (
        True,
        ConfigSource.config_file,
    )
    assert config.value_with_source("num_threads") == (0, ConfigSource.default)


def test_formatted_layers(config):
    config = config.with_overrides(ConfigSource.command_line, num_threads=3)
    layers = config.formatted_layers()
    assert layers.startswith("default:")
    assert "command_line:\n  num_threads: 3" in layers


def test_config_pickle(config, parser):
    args = parser.parse_args(["-vvv"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    # pickle and unpickle the config
    pickled = pickle.dumps(config)
    unpickled = pickle.loads(pickled)

    # then the config object should be the same
    assert config == unpickled
    assert unpickled.value_with_source("verbose") == (3, ConfigSource.command_line)


def test_export_options_from_config(config):
    config = config.with_overrides(
        ConfigSource.command_line, summary_only=True, num_threads=5
    )
    assert ExportOptions.from_config(config) == ExportOptions(
        export_summary_only=True,
        skip_expansions=False,
        skip_functions=False,
        num_threads=5,
    )


def test_export_options_reject_negative_threads():
    with pytest.raises(ValueError):
        ExportOptions(num_threads=-1)


@pytest.mark.parametrize(
    "overrides",
    [
        {"num_threads": "4"},
        {"num_threads": 2.5},
        {"num_threads": True},
        {"export_summary_only": "yes"},
        {"skip_functions": 1},
    ],
)
def test_export_options_reject_wrong_types(overrides):
    with pytest.raises(ValueError):
        ExportOptions(**overrides)
