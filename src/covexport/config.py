import argparse
import os
import re
import sys
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import MISSING, dataclass, fields
from dataclasses import field as dataclass_field
from enum import IntEnum
from typing import Any

import toml

from .logs import warn

# common strings
internal = "internal"

# groups
export, filtering, debugging = (
    "Export options",
    "Filtering options",
    "Debugging options",
)


class ConfigSource(IntEnum):
    void = 0
    default = 1
    config_file = 2
    command_line = 3


# helper to define config fields
def arg(
    help: str,
    global_default: Any,
    metavar: str | None = None,
    group: str | None = None,
    short: str | None = None,
    countable: bool = False,
    positional: bool = False,
    nargs: str | None = None,
    global_default_str: str | None = None,
    action: Callable = None,
):
    return dataclass_field(
        default=None,
        metadata={
            "help": help,
            "global_default": global_default,
            "metavar": metavar,
            "group": group,
            "short": short,
            "countable": countable,
            "positional": positional,
            "nargs": nargs,
            "global_default_str": global_default_str,
            "action": action,
        },
    )


class AppendRegex(argparse.Action):
    """Accumulates a regex per occurrence of the option, validating each one."""

    def __call__(self, parser, namespace, values, option_string=None):
        try:
            parsed = AppendRegex.parse(values)
        except ValueError as e:
            parser.error(str(e))

        current = getattr(namespace, self.dest, None) or []
        setattr(namespace, self.dest, current + parsed)

    @staticmethod
    def parse(values: str | list[str]) -> list[str]:
        if isinstance(values, str):
            values = [values]

        for value in values:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid filename regex '{value}': {e}") from e

        return list(values)

    @staticmethod
    def unparse(values: list[str]) -> list[str]:
        return list(values)


@dataclass(frozen=True)
class Config:
    """Configuration object for covexport.

    Don't instantiate this directly, since all fields have default value None. Instead, use:

     - `default_config()` to get the default configuration with the actual default values
     - `with_overrides()` to create a new configuration object with some fields overridden
    """

    ### Internal fields (not used to generate arg parsers)

    _parent: "Config" = dataclass_field(
        repr=False,
        metadata={
            internal: True,
        },
    )

    _source: ConfigSource = dataclass_field(
        metadata={
            internal: True,
        },
    )

    ### General options
    #
    # These fields are used to generate the arg parser. They have no actual
    # default value, new Config() objects only have None values for them.
    #
    # Constructing a Config object with the actual default values is the
    # responsibility of `default_config()`, which reads the `global_default`
    # metadata field.
    #
    # Config objects built from external arguments only carry those arguments,
    # and are layered on top of `default_config()`.

    input: str = arg(
        help="coverage export document to read ('-' for stdin)",
        global_default="-",
        metavar="INPUT",
        positional=True,
        nargs="?",
    )

    sources: list = arg(
        help="only export the given source files, instead of every file in INPUT",
        global_default=list,
        global_default_str="all files",
        metavar="SOURCES",
        positional=True,
        nargs="*",
    )

    output: str = arg(
        help="write the export document to the given file ('-' for stdout)",
        global_default="-",
        metavar="FILE",
        short="o",
        global_default_str="stdout",
    )

    root: str = arg(
        help="project root directory",
        metavar="ROOT",
        global_default=os.getcwd,
        global_default_str="current working directory",
    )

    config: str = arg(
        help="path to the config file",
        metavar="FILE",
        global_default=lambda: os.path.join(os.getcwd(), "covexport.toml"),
        global_default_str="ROOT/covexport.toml",
    )

    version: bool = arg(
        help="print the version number",
        global_default=False,
    )

    ### Export options

    summary_only: bool = arg(
        help="export only summary information for each source file",
        global_default=False,
        group=export,
    )

    skip_expansions: bool = arg(
        help="don't export expanded source regions",
        global_default=False,
        group=export,
    )

    skip_functions: bool = arg(
        help="don't export per-function data",
        global_default=False,
        group=export,
    )

    num_threads: int = arg(
        help="number of threads used to render files; 0 means one per physical core, capped by the number of files",
        global_default=0,
        metavar="N",
        short="j",
        group=export,
    )

    ### Filtering options

    ignore_filename_regex: str = arg(
        help="skip source files whose names match the given regex; can be repeated",
        global_default=list,
        global_default_str="none",
        metavar="REGEX",
        group=filtering,
        action=AppendRegex,
    )

    ### Debugging options

    verbose: int = arg(
        help="increase verbosity levels: -v, -vv, ...",
        global_default=0,
        group=debugging,
        short="v",
        countable=True,
    )

    statistics: bool = arg(
        help="print timing statistics",
        global_default=False,
        group=debugging,
        short="st",
    )

    no_status: bool = arg(
        help="disable progress display",
        global_default=False,
        group=debugging,
    )

    debug: bool = arg(
        help="run in debug mode",
        global_default=False,
        group=debugging,
    )

    ### Methods

    def __getattribute__(self, name):
        """Look up values in parent object if they are not set in the current object.

        This is because we consider the current object to override its parent.

        Because of this, printing a Config object will show a "flattened/resolved" view of the configuration.
        """

        # look up value in current object
        value = object.__getattribute__(self, name)
        if value is not None:
            return value

        # look up value in parent object
        parent = object.__getattribute__(self, "_parent")
        if parent is not None:
            return getattr(parent, name)

        return value

    def with_overrides(self, source: ConfigSource, **overrides):
        """Create a new configuration object with some fields overridden.

        Use vars(namespace) to pass in the arguments from an argparse parser or
        just a dictionary with the overrides (e.g. from a toml file)."""

        try:
            return Config(_parent=self, _source=source, **overrides)
        except TypeError as e:
            # follow argparse error message format and behavior
            warn(f"error: unrecognized argument: {str(e).split()[-1]}")
            sys.exit(2)

    def value_with_source(self, name: str) -> tuple[Any, ConfigSource]:
        # look up value in current object
        value = object.__getattribute__(self, name)
        if value is not None:
            return (value, self._source)

        # look up value in parent object
        parent = self._parent
        if parent is not None:
            return parent.value_with_source(name)

        return (value, self._source)

    def values(self):
        skip_empty = self._parent is not None

        for field in fields(self):
            if field.metadata.get(internal):
                continue

            field_value = object.__getattribute__(self, field.name)
            if skip_empty and field_value is None:
                continue

            yield field.name, field_value

    def values_by_layer(self) -> dict[ConfigSource, dict[str, Any]]:
        # source -> {field, value}
        if self._parent is None:
            return OrderedDict([(self._source, dict(self.values()))])

        values = self._parent.values_by_layer()
        values[self._source] = dict(self.values())
        return values

    def formatted_layers(self) -> str:
        lines = []
        for layer, values in self.values_by_layer().items():
            lines.append(f"{layer.name}:")
            for field, value in values.items():
                lines.append(f"  {field}: {value}")
        return "\n".join(lines)


@dataclass(frozen=True)
class ExportOptions:
    """The options the exporter itself honors."""

    export_summary_only: bool = False
    skip_expansions: bool = False
    skip_functions: bool = False

    # 0 means derive from the hardware and the number of files
    num_threads: int = 0

    def __post_init__(self):
        for name in ("export_summary_only", "skip_expansions", "skip_functions"):
            if not isinstance(value := getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean: {value!r}")

        if not isinstance(self.num_threads, int) or isinstance(self.num_threads, bool):
            raise ValueError(f"num_threads must be an integer: {self.num_threads!r}")

        if self.num_threads < 0:
            raise ValueError(f"num_threads must be non-negative: {self.num_threads}")

    @staticmethod
    def from_config(config: Config) -> "ExportOptions":
        return ExportOptions(
            export_summary_only=config.summary_only,
            skip_expansions=config.skip_expansions,
            skip_functions=config.skip_functions,
            num_threads=config.num_threads,
        )


def resolve_config_files(args: list[str], include_missing: bool = False) -> list[str]:
    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument(
        "--root",
        metavar="DIRECTORY",
        default=os.getcwd(),
    )

    config_parser.add_argument("--config", metavar="FILE")

    # beware: errors will cause a system exit
    args = config_parser.parse_known_args(args)[0]

    # if --config is passed explicitly, use that
    # no check for existence is done here, we don't want to silently ignore
    # missing config files when they are requested explicitly
    if args.config:
        return [args.config]

    # we expect to find covexport.toml in the project root directory
    default_config_path = os.path.join(args.root, "covexport.toml")
    if not include_missing and not os.path.exists(default_config_path):
        return []

    return [default_config_path]


class TomlParser:
    def __init__(self):
        pass

    def parse_file(self, toml_file_path: str) -> dict:
        with open(toml_file_path) as f:
            return self.parse_str(f.read(), source=toml_file_path)

    # exposed for easier testing
    def parse_str(self, file_contents: str, source: str = "covexport.toml") -> dict:
        parsed = toml.loads(file_contents)
        return self.parse_dict(parsed, source=source)

    # exposed for easier testing
    def parse_dict(self, parsed: dict, source: str = "covexport.toml") -> dict:
        if len(parsed) != 1:
            warn(
                f"error: expected a single `[global]` section in {source}, "
                f"got {len(parsed)}: {', '.join(parsed.keys())}"
            )
            sys.exit(2)

        data = parsed.get("global")
        if data is None:
            for key in parsed:
                warn(f"error: expected a `[global]` section in {source}, got '{key}'")
                sys.exit(2)

        # gather custom actions
        actions = {
            field.name: field.metadata["action"]
            for field in fields(Config)
            if field.metadata.get("action")
        }

        result = {}
        for key, value in data.items():
            key = key.replace("-", "_")
            action = actions.get(key)
            result[key] = action.parse(value) if action else value
        return result


def _create_default_config() -> "Config":
    values = {}

    for field in fields(Config):
        # we build the default config by looking at the global_default metadata field
        default = field.metadata.get("global_default", MISSING)
        if default == MISSING:
            continue

        # retrieve the default value
        raw_value = default() if callable(default) else default

        # parse the default value, if a custom parser is provided
        action = field.metadata.get("action", None)
        values[field.name] = action.parse(raw_value) if action else raw_value

    return Config(_parent=None, _source=ConfigSource.default, **values)


def _create_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="covexport",
        description="Export code coverage data as an llvm.coverage.json.export document.",
    )

    groups = {
        None: parser,
    }

    # add arguments from the Config dataclass
    for field_info in fields(Config):
        # skip internal fields
        if field_info.metadata.get(internal, False):
            continue

        arg_help = field_info.metadata.get("help", "")
        metavar = field_info.metadata.get("metavar", None)
        group_name = field_info.metadata.get("group", None)
        if group_name not in groups:
            groups[group_name] = parser.add_argument_group(group_name)

        group = groups[group_name]

        if field_info.metadata.get("positional", False):
            # absent positionals must not shadow values from config files
            group.add_argument(
                field_info.name,
                help=arg_help,
                metavar=metavar,
                nargs=field_info.metadata["nargs"],
                default=argparse.SUPPRESS,
            )
            continue

        long_name = f"--{field_info.name.replace('_', '-')}"
        names = [long_name]

        short_name = field_info.metadata.get("short", None)
        if short_name:
            names.append(f"-{short_name}")

        if field_info.type is bool:
            group.add_argument(*names, help=arg_help, action="store_true", default=None)
        elif field_info.metadata.get("countable", False):
            group.add_argument(*names, help=arg_help, action="count")
        else:
            # add the default value to the help text
            default = field_info.metadata.get("global_default", None)
            if default is not None:
                default_str = field_info.metadata.get("global_default_str", None)
                default_str = repr(default) if default_str is None else default_str
                arg_help += f" (default: {default_str})"

            kwargs = {
                "help": arg_help,
                "metavar": metavar,
            }
            if action := field_info.metadata.get("action", None):
                kwargs["action"] = action
            else:
                kwargs["type"] = field_info.type
            group.add_argument(*names, **kwargs)

    return parser


def _create_toml_parser() -> TomlParser:
    return TomlParser()


# public singleton accessors
def default_config() -> "Config":
    return _default_config


def arg_parser() -> argparse.ArgumentParser:
    return _arg_parser


def toml_parser():
    return _toml_parser


# init module-level singletons
_arg_parser = _create_arg_parser()
_default_config = _create_default_config()
_toml_parser = _create_toml_parser()


# can generate a sample config file using:
# python -m covexport.config ARGS > covexport.toml
def main():
    def _to_toml_str(value: Any, type) -> str:
        assert value is not None
        if type is str and not isinstance(value, list):
            return f'"{value}"'
        if type is bool:
            return str(value).lower()
        if isinstance(value, list):
            # literal strings, regexes are full of backslashes
            return "[" + ", ".join(f"'{v}'" for v in value) + "]"
        return str(value)

    args = arg_parser().parse_args()
    config = default_config().with_overrides(ConfigSource.command_line, **vars(args))

    lines = ["[global]"]
    current_group_name = None

    for field_info in fields(config):
        if field_info.metadata.get(internal, False):
            # skip internal fields
            continue

        if field_info.metadata.get("positional", False):
            continue

        name = field_info.name.replace("_", "-")
        if name in ["config", "root", "version"]:
            # skip fields that don't make sense in a config file
            continue

        group_name = field_info.metadata.get("group", None)
        if group_name != current_group_name:
            separator = "#" * 80
            lines.append(f"\n{separator}")
            lines.append(f"# {group_name: ^76} #")
            lines.append(separator)
            current_group_name = group_name

        arg_help = field_info.metadata.get("help", "")
        arg_help_tokens = arg_help.split(". ")  # split on sentences
        arg_help_str = "\n# ".join(arg_help_tokens)
        lines.append(f"\n# {arg_help_str}")

        (value, source) = config.value_with_source(field_info.name)
        default = field_info.metadata.get("global_default", None)

        if action := field_info.metadata.get("action", None):
            value = action.unparse(value)

        # callable defaults mean that the default value is not a hardcoded constant
        # it depends on the context, so don't emit it in the config file unless it
        # is explicitly set by the user on the command line
        if value is None or (
            callable(default) and source != ConfigSource.command_line
        ):
            metavar = field_info.metadata.get("metavar", None)
            lines.append(f"# {name} = {metavar}")
        else:
            value_str = _to_toml_str(value, field_info.type)
            lines.append(f"{name} = {value_str}")

    print("\n".join(lines))


if __name__ == "__main__":
    main()
