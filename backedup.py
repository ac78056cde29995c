#
# backedup
#
# A small CLI tool for grandfather-father-son rotation of files with timestamped names.
#
# Licensed under the MIT License. See LICENSE file in the project root for license information.
#

import argparse
import logging
import logging.handlers
import os
import re
import sys
import tomllib
import traceback
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from fnmatch import fnmatchcase
from pathlib import Path
from types import SimpleNamespace
from typing import Any, NoReturn, Optional, TextIO, Union, no_type_check


VERSION: str = "dev-1.0.0"

# YYYY?MM?DD[?HH?MM[?SS]] with any single non-digit as separator
DEFAULT_TIMESTAMP_REGEX: str = r"""(?x)(?P<year>\d{4}) \D?
(?P<month>\d{2}) \D?
(?P<day>\d{2}) \D?
(
   # Optional components.
   (?P<hour>\d{2}) \D?
   (?P<minute>\d{2}) \D?
   (?P<second>\d{2})?
)?"""

REQUIRED_GROUPS: tuple[str, ...] = ("year", "month", "day")

REPRESENTATIVES: tuple[str, ...] = ("newest", "oldest")

SLOT_NAMES: tuple[str, ...] = ("yearly", "monthly", "daily", "hourly", "minutely")

ANSI_GREEN: str = "\033[32m"
ANSI_RED: str = "\033[31m"
ANSI_RESET: str = "\033[0m"


class NoSlotConfiguredError(ValueError):
    def __init__(self) -> None:
        super().__init__("At least one slot must be configured")


class InvalidTimestampGrammarError(ValueError):
    pass


class MissingRequiredGroupError(ValueError):
    name: str

    def __init__(self, name: str) -> None:
        super().__init__(f"Regex missing capture group for '{name}' -- example: (?P<{name}>\\d{{2}})")
        self.name = name


class ConfigFileError(ValueError):
    pass


class DirectoryUnreadableError(OSError):
    path: Path

    def __init__(self, path: Path) -> None:
        super().__init__(f"Cannot read directory '{path}'")
        self.path = path


class DestinationNotWritableError(OSError):
    path: Path

    def __init__(self, path: Path) -> None:
        super().__init__(f"Directory '{path}' is not writable")
        self.path = path


class IntegrityCheckFailedError(Exception):
    pass


class ConfigNamespace(SimpleNamespace):
    pass


class LogLevel(IntEnum):
    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3

    @classmethod
    def from_name_or_number(cls, prefix: str) -> "LogLevel":
        try:
            return next(m for m in cls if m.name.startswith(prefix.strip().upper()))
        except StopIteration:
            try:
                return cls(int(prefix))
            except ValueError:
                raise ValueError("Invalid log level: " + prefix)


SYSLOG_LEVELS: dict[LogLevel, int] = {LogLevel.ERROR: logging.ERROR, LogLevel.WARN: logging.WARNING, LogLevel.INFO: logging.INFO, LogLevel.DEBUG: logging.DEBUG}


def create_syslog_logger() -> logging.Logger:
    syslog = logging.getLogger("backedup")
    syslog.setLevel(logging.DEBUG)
    syslog.propagate = False
    if not syslog.handlers:
        address: Union[str, tuple[str, int]] = "/dev/log" if Path("/dev/log").exists() else ("localhost", logging.handlers.SYSLOG_UDP_PORT)
        handler = logging.handlers.SysLogHandler(address=address, facility=logging.handlers.SysLogHandler.LOG_USER)
        handler.setFormatter(logging.Formatter("backedup: %(message)s"))
        syslog.addHandler(handler)
    return syslog


class Logger:
    _level: LogLevel
    _syslog: Optional[logging.Logger]

    def __init__(self, level: LogLevel = LogLevel.INFO, syslog: bool = False) -> None:
        self._level = level
        self._syslog = create_syslog_logger() if syslog else None

    def has_log_level(self, level: LogLevel) -> bool:
        return level <= int(self._level)

    def _raw_verbose(self, level: LogLevel, message: str, file: Optional[TextIO] = None, prefix: str = "") -> None:
        print(f"[{prefix or LogLevel(level).name}] {message}", file=file or sys.stderr)

    def verbose(self, level: LogLevel, message: str, file: Optional[TextIO] = None, prefix: str = "") -> None:
        if self.has_log_level(level):
            self._raw_verbose(level, message, file, prefix)
            if self._syslog is not None:
                self._syslog.log(SYSLOG_LEVELS[LogLevel(level)], message)


class Period(Enum):
    YEARS = "Years"
    MONTHS = "Months"
    DAYS = "Days"
    HOURS = "Hours"
    MINUTES = "Minutes"

    @property
    def slot_name(self) -> str:
        return SLOT_NAMES[list(Period).index(self)]

    @property
    def key_length(self) -> int:
        """Number of leading timestamp fields (year, month, day, hour, minute) forming the bucket key."""
        return list(Period).index(self) + 1


@dataclass(frozen=True)
class SlotConfig:
    yearly: int = 0
    monthly: int = 0
    daily: int = 0
    hourly: int = 0
    minutely: int = 0

    def __post_init__(self) -> None:
        for name in SLOT_NAMES:
            if getattr(self, name) < 0:
                raise ValueError(f"Invalid {name} slot count '{getattr(self, name)}': must be an integer >= 0")
        if sum(getattr(self, name) for name in SLOT_NAMES) == 0:
            raise NoSlotConfiguredError()

    def get_slot_size(self, period: Period) -> int:
        return getattr(self, period.slot_name)


@dataclass(frozen=True)
class Config:
    """Slots plus the name filter and the timestamp grammar, validated once on construction.

    ``patterns`` are case-sensitive glob patterns (an empty tuple matches every name), ``regex``
    is the timestamp grammar (``None`` selects DEFAULT_TIMESTAMP_REGEX) and ``representative``
    decides which file of a bucket stands for it: the ``newest`` (default) or the ``oldest``.
    """

    slots: SlotConfig
    patterns: tuple[str, ...] = ()
    regex: Optional[str] = None
    representative: str = "newest"
    grammar: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "patterns", tuple(self.patterns))
        try:
            grammar = re.compile(self.regex if self.regex is not None else DEFAULT_TIMESTAMP_REGEX)
        except re.error as e:
            raise InvalidTimestampGrammarError(f"Invalid regex '{self.regex}': {e}") from e
        for name in REQUIRED_GROUPS:
            if name not in grammar.groupindex:
                raise MissingRequiredGroupError(name)
        object.__setattr__(self, "grammar", grammar)
        if self.representative not in REPRESENTATIVES:
            raise ValueError(f"Invalid representative '{self.representative}' (use {' or '.join(REPRESENTATIVES)})")

    def matches_name_filter(self, name: str) -> bool:
        return not self.patterns or any(fnmatchcase(name, pattern) for pattern in self.patterns)


@dataclass(frozen=True, order=True)
class BackupEntry:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    path: Path

    @property
    def timestamp(self) -> tuple[int, int, int, int, int]:
        return (self.year, self.month, self.day, self.hour, self.minute)


def _parse_unsigned(text: Optional[str], limit: int) -> Optional[int]:
    if text is None or not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value <= limit else None


def extract_entry(path: Union[Path, str], config: Config) -> Optional[BackupEntry]:
    """Parse the timestamp out of the name of ``path``.

    Returns None for names that are rejected by the name filter, do not match the grammar, carry an
    unparseable year/month/day or are not valid UTF-8. Missing or unparseable hour and minute are 0.
    The filesystem is never touched.
    """
    path = Path(path)
    name = path.name
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:  # undecodable bytes, surfaced by the OS as surrogate escapes
        return None
    if not config.matches_name_filter(name):
        return None
    match = config.grammar.search(name)
    if match is None:
        return None
    groups = match.groupdict()
    year = _parse_unsigned(groups["year"], 0xFFFF)
    month = _parse_unsigned(groups["month"], 0xFF)
    day = _parse_unsigned(groups["day"], 0xFF)
    if year is None or month is None or day is None:
        return None
    hour = _parse_unsigned(groups.get("hour"), 0xFF) or 0
    minute = _parse_unsigned(groups.get("minute"), 0xFF) or 0
    return BackupEntry(year, month, day, hour, minute, path)


def read_directory(path: Union[Path, str]) -> list[Path]:
    base = Path(path)
    try:
        return sorted(file for file in base.iterdir() if file.is_file())  # no recursion
    except OSError as e:
        raise DirectoryUnreadableError(base) from e


def load_config_file(path: Union[Path, str]) -> Config:
    """Read a TOML config file with a ``[slots]`` table and optional ``pattern``, ``regex`` and ``representative`` keys."""
    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except OSError as e:
        raise ConfigFileError(f"Can't read config from file '{path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigFileError(f"Problem parsing config '{path}': {e}") from e

    slots = data.get("slots")
    if not isinstance(slots, dict):
        raise ConfigFileError(f"Problem parsing config '{path}': missing table [slots]")
    counts: dict[str, int] = {}
    for name in SLOT_NAMES:
        if name not in slots and name in ("yearly", "monthly", "daily"):
            raise ConfigFileError(f"Problem parsing config '{path}': missing key 'slots.{name}'")
        value = slots.get(name, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigFileError(f"Problem parsing config '{path}': 'slots.{name}' must be an integer >= 0")
        counts[name] = value

    patterns = data.get("pattern", [])
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ConfigFileError(f"Problem parsing config '{path}': 'pattern' must be a list of strings")
    regex = data.get("regex")
    if regex is not None and not isinstance(regex, str):
        raise ConfigFileError(f"Problem parsing config '{path}': 'regex' must be a string")
    representative = data.get("representative", "newest")

    return Config(SlotConfig(**counts), tuple(patterns), regex, representative)


def _format_key(key: tuple[int, ...]) -> str:
    return "-".join(f"{part:02d}" for part in key)


@dataclass(frozen=True)
class Plan:
    """Keep/remove decision for one set of files and one Config.

    Both lists are ordered most recent first. ``period_map`` holds, for every kept path, the
    periods that selected it. Paths whose names were filtered out or carry no timestamp are in
    neither list.
    """

    to_keep: list[Path]
    to_remove: list[Path]
    period_map: dict[Path, list[Period]]
    directory: Optional[Path] = None

    @classmethod
    def from_paths(cls, config: Config, paths: Iterable[Union[Path, str]], logger: Optional[Logger] = None, directory: Optional[Path] = None) -> "Plan":
        logger = logger or Logger(LogLevel.WARN)
        entries: list[BackupEntry] = []
        for path in paths:
            entry = extract_entry(path, config)
            if entry is None:
                logger.verbose(LogLevel.DEBUG, f"Ignoring '{Path(path).name}': filtered out or no valid timestamp")
            else:
                entries.append(entry)
        return RetentionLogic(entries, config, logger, directory).process_retention_logic()

    @classmethod
    def from_directory(cls, config: Config, directory: Union[Path, str], logger: Optional[Logger] = None) -> "Plan":
        base = Path(directory)
        return cls.from_paths(config, read_directory(base), logger, base)

    def is_empty(self) -> bool:
        return not self.to_keep and not self.to_remove

    def render(self, color: bool = False) -> str:
        green, red, reset = (ANSI_GREEN, ANSI_RED, ANSI_RESET) if color else ("", "", "")
        lines = ["Plan to:", ""]
        if self.is_empty():
            lines.append("\tDo nothing: no valid timestamps")
            return "\n".join(lines)
        lines.append(f"\t{green}Keep {len(self.to_keep)} file(s) matching period(s){reset}")
        for path in self.to_keep:
            periods = ",".join(period.value for period in self.period_map[path])
            lines.append(f"\t\t{green}{path}{reset} -> ({periods})")
        lines.append("")
        lines.append(f"\t{red}Remove {len(self.to_remove)} file(s) not matching periods{reset}")
        for path in self.to_remove:
            lines.append(f"\t\t{red}{path}{reset}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()

    def execute(self, logger: Optional[Logger] = None) -> list[Path]:
        """Remove every path of ``to_remove``, returning the paths that could not be removed.

        A failing file is logged and skipped; nothing already removed is restored.
        """
        logger = logger or Logger()
        if self.directory is not None and not os.access(self.directory, os.W_OK):
            raise DestinationNotWritableError(self.directory)
        if not self.to_remove:
            logger.verbose(LogLevel.INFO, "No file to remove")
        failed: list[Path] = []
        for path in self.to_remove:
            try:
                path.unlink()
            except OSError as e:  # Catch deletion error, log it, and continue
                logger.verbose(LogLevel.ERROR, f"Failed to remove file '{path}': {e}")
                failed.append(path)
            else:
                logger.verbose(LogLevel.INFO, f"Removed file '{path}'")
        return failed


class RetentionLogic:
    _entries: list[BackupEntry]
    _config: Config
    _logger: Logger
    _directory: Optional[Path]
    _keep: set[BackupEntry]
    _period_map: dict[Path, list[Period]]

    def __init__(self, entries: Iterable[BackupEntry], config: Config, logger: Optional[Logger] = None, directory: Optional[Path] = None) -> None:
        self._entries = sorted(set(entries), reverse=True)  # newest first, ties on the timestamp by path
        self._config = config
        self._logger = logger or Logger(LogLevel.WARN)
        self._directory = directory
        self._keep = set()
        self._period_map = {}

    def _create_retention_buckets(self, period: Period) -> dict[tuple[int, ...], list[BackupEntry]]:
        buckets: dict[tuple[int, ...], list[BackupEntry]] = defaultdict(list)
        for entry in self._entries:
            buckets[entry.timestamp[: period.key_length]].append(entry)  # each bucket stays ordered newest first
        if self._logger.has_log_level(LogLevel.DEBUG):
            for key, entries in buckets.items():
                self._logger.verbose(LogLevel.DEBUG, f"Retention buckets: {period.value} {_format_key(key)} - {', '.join(entry.path.name for entry in entries)}")
        return buckets

    def _select_representative(self, bucket: list[BackupEntry]) -> BackupEntry:
        return bucket[-1] if self._config.representative == "oldest" else bucket[0]

    def _process_retention_buckets(self, period: Period, buckets: dict[tuple[int, ...], list[BackupEntry]]) -> None:
        slot_size = self._config.slots.get_slot_size(period)
        sorted_keys = sorted(buckets.keys(), reverse=True)  # newest bucket first
        for index, key in enumerate(sorted_keys[:slot_size], start=1):
            entry = self._select_representative(buckets[key])
            self._logger.verbose(LogLevel.DEBUG, f"Keeping for period '{period.value}' {index:02d}/{slot_size:02d}: {entry.path.name} (key: {_format_key(key)})")
            self._keep.add(entry)
            periods = self._period_map.setdefault(entry.path, [])
            if period not in periods:
                periods.append(period)

    def process_retention_logic(self) -> Plan:
        # Periods are independent of each other, the order only decides the order of the attribution
        for period in Period:
            if self._config.slots.get_slot_size(period):
                buckets = self._create_retention_buckets(period)
                self._process_retention_buckets(period, buckets)

        to_keep = [entry.path for entry in self._entries if entry in self._keep]
        to_remove = [entry.path for entry in self._entries if entry not in self._keep]

        # Simple integrity checks
        if not len(self._entries) == len(to_keep) + len(to_remove):
            raise IntegrityCheckFailedError(f"File count mismatch: some files are neither kept nor removed (all: {len(self._entries)}, keep: {len(to_keep)}, remove: {len(to_remove)})!!")
        if not set(self._period_map) == set(to_keep):
            raise IntegrityCheckFailedError("Period attribution mismatch!!")

        return Plan(to_keep, to_remove, self._period_map, self._directory)


class ModernHelpFormatter(argparse.HelpFormatter):
    @no_type_check
    def __init__(self, *a, **kw) -> None:  # noqa: ANN002, ANN003
        super().__init__(*a, max_help_position=30, width=160, **kw)

    @no_type_check
    def start_section(self, heading) -> None:  # noqa: ANN001
        super().start_section(heading.capitalize())


class ModernStrictArgumentParser(argparse.ArgumentParser):
    @no_type_check
    def __init__(self, *a, **kw) -> None:  # noqa: ANN002, ANN003
        super().__init__(*a, **kw)
        self._errors: list[str] = []

    def add_error(self, msg: str) -> None:
        if msg not in self._errors:
            self._errors.append(msg)

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print("\nError(s):", file=sys.stderr)
        for line in message.split("\n"):
            print(f"  • {line}", file=sys.stderr)
        print("\nHint: Try '--help' for more information.", file=sys.stderr)
        sys.exit(2)

    # Argument type helpers
    def non_negative_int_argument(self, value: str) -> int:
        try:
            int_value = int(value)
            if int_value < 0:
                raise ValueError
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid value '{value}': must be an integer >= 0")
        return int_value

    def verbose_argument(self, value: str) -> LogLevel:
        try:
            return LogLevel.from_name_or_number(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid verbose value '{value}' (use ERROR, WARN, INFO, DEBUG or 0, 1, 2, 3)")

    # Internal helper methods
    def _suggest(self, argument: str) -> list[str]:
        opts = [o for a in self._actions for o in a.option_strings if o.startswith("--")]
        cand = [o for o in opts if abs(len(o) - len(argument)) <= 2 and sum(a != b for a, b in zip(o, argument)) <= 2]
        return cand[:1]

    @no_type_check
    def _collect_raw_args(self, args):  # noqa: ANN202, ANN001
        if args is not None:
            return list(args)
        return sys.argv[1:]  # default argparse behavior

    @no_type_check
    def _detect_duplicate_flags(self, raw_args) -> None:  # noqa: ANN001
        # Normalize option strings, repeatable options (append) are allowed more than once
        alias = {opt: action.option_strings[0] for action in self._actions for opt in action.option_strings}
        repeatable = {opt for action in self._actions if isinstance(action, argparse._AppendAction) for opt in action.option_strings}
        seen = set()

        for tok in raw_args:
            if not tok.startswith("-") or tok == "-":
                continue

            # Extract option (handles -d3, -d=3, --daily=3)
            opt = tok.split("=", 1)[0]

            # Handle -d3 → -d
            if len(opt) > 2 and opt.startswith("-") and not opt.startswith("--"):
                opt = opt[:2]

            if opt in repeatable or opt not in alias:
                continue

            key = alias[opt]
            if key in seen:
                self.add_error(f"Duplicate flag: {key}")
            seen.add(key)

    @no_type_check
    def _validate_arguments(self, ns) -> None:  # noqa: ANN001
        # Default verbosity, if none given
        if ns.verbose is None:
            ns.verbose = LogLevel.INFO

        # incompatible options (config file and inline configuration)
        if ns.config is not None:
            inline = [name for name in SLOT_NAMES if getattr(ns, name) is not None]
            if ns.pattern:
                inline.append("pattern")
            if ns.regex is not None:
                inline.append("regex")
            if ns.keep_oldest:
                inline.append("keep-oldest")
            if inline:
                self.add_error(f"--config cannot be combined with {', '.join('--' + name for name in inline)}")

    # Main hook
    @no_type_check
    def parse_known_args(self, args=None, namespace=None) -> tuple[argparse.Namespace, list[str]]:  # noqa: ANN001
        self._errors = []
        raw_args = self._collect_raw_args(args)
        self._detect_duplicate_flags(raw_args)

        ns, unknown = super().parse_known_args(raw_args, namespace or argparse.Namespace())

        if unknown:
            sug = self._suggest(unknown[0])
            if sug:
                self.add_error(f"Unknown option: {unknown[0]} (did you mean {sug[0]}?)")
            else:
                self.add_error(f"Unknown option: {unknown[0]}")

        self._validate_arguments(ns)

        if self._errors:
            msg = "\n".join(f"{e}" for e in self._errors)
            self.error(msg)

        return ns, unknown


def create_parser() -> ModernStrictArgumentParser:
    parser: ModernStrictArgumentParser = ModernStrictArgumentParser(
        description=f"backedup {VERSION}\n\nGrandfather-father-son rotation for files with a timestamp in their names",
        usage=("backedup path [options]\n\nExample:\n  backedup /data/backups -p '*.tar.gz' -y 3 -m 12 -d 30"),
        epilog="Without --execute only the plan is printed, no file is deleted.",
        formatter_class=ModernHelpFormatter,
        add_help=False,
    )

    g_main = parser.add_argument_group("Main arguments")
    g_slots = parser.add_argument_group("Slot arguments")
    g_filter = parser.add_argument_group("Filter arguments")
    g_behavior = parser.add_argument_group("Behavior arguments")
    g_common = parser.add_argument_group("Common arguments")

    # positional arguments
    g_main.add_argument("path", help="Directory with the timestamped files (recursion is not supported)")
    g_main.add_argument("--config", "-c", type=str, default=None, metavar="file", help="TOML config file with slots, patterns and regex (replaces the inline options)")

    # slot arguments (validated, no defaults, so that the config file check can see them)
    g_slots.add_argument("--yearly", "-y", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per year for the last N years")
    g_slots.add_argument("--monthly", "-m", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per month for the last N months")
    g_slots.add_argument("--daily", "-d", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per day for the last N days")
    g_slots.add_argument("--hourly", "-h", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per hour for the last N hours")
    g_slots.add_argument("--minutely", "-M", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per minute for the last N minutes")

    # filter arguments
    # fmt: off
    g_filter.add_argument("--pattern", "-p", type=str, action="append", default=None, metavar="glob",
        help="Wildcard filename pattern to look for, quote it to prevent shell expansion (can be given several times)")
    g_filter.add_argument("--regex", type=str, default=None, metavar="regex",
        help="Alternate regex for parsing timestamps, named groups year, month and day are required (e.g. '(?P<year>\\d{2})(?P<month>\\d{2})(?P<day>\\d{2})')")
    g_filter.add_argument("--keep-oldest", action="store_true", help="Keep the oldest file of each period instead of the newest")
    # fmt: on

    # behavior flags
    # fmt: off
    g_behavior.add_argument("--execute", "-x", action="store_true", help="Execute the plan and remove timestamped files not matching a slot")
    g_behavior.add_argument("--verbose", "-V", "-v", type=parser.verbose_argument, default=None, nargs="?", const=LogLevel.INFO, metavar="lev",
        help="Verbosity level: 0 = error, 1 = warn, 2 = info, 3 = debug (default: 'info'; use numbers or names)")
    # fmt: on
    g_behavior.add_argument("--no-color", action="store_false", dest="color", default=True, help="Do not colorize the plan (default: colorized on a terminal)")
    g_behavior.add_argument("--syslog", action="store_true", help="Mirror log messages to the local syslog")

    # common flags
    g_common.add_argument("--version", "-R", action="version", version=f"%(prog)s {VERSION}")
    g_common.add_argument("--help", "-H", action="help", help="Show this help message and exit")
    g_common.add_argument("--stacktrace", action="store_true", help=argparse.SUPPRESS)

    return parser


def parse_arguments(argv: Optional[list[str]] = None) -> ConfigNamespace:
    parser = create_parser()
    args = parser.parse_args(argv)
    return ConfigNamespace(**vars(args))


def build_config(args: ConfigNamespace) -> Config:
    if args.config is not None:
        return load_config_file(args.config)
    slots = SlotConfig(*(getattr(args, name) or 0 for name in SLOT_NAMES))
    return Config(slots, tuple(args.pattern or ()), args.regex, "oldest" if args.keep_oldest else "newest")


def handle_exception(exception: Exception, exit_code: int, stacktrace: bool, prefix: str = "") -> None:
    if stacktrace:
        traceback.print_exc()
    print(f"[{prefix or LogLevel.ERROR.name}] {exception}", file=sys.stderr)
    sys.exit(exit_code)


def main() -> None:
    args: Optional[ConfigNamespace] = None

    try:
        args = parse_arguments()
        logger = Logger(args.verbose, syslog=args.syslog)

        logger.verbose(LogLevel.DEBUG, f"Parsed arguments: {args}")

        config = build_config(args)  # configuration errors abort before the directory is read
        logger.verbose(LogLevel.DEBUG, f"Using config: {config}")

        plan = Plan.from_directory(config, args.path, logger)

        logger.verbose(LogLevel.INFO, f"Total files keep:   {len(plan.to_keep):03d}")
        logger.verbose(LogLevel.INFO, f"Total files remove: {len(plan.to_remove):03d}")

        if args.execute:
            if plan.to_remove:
                logger.verbose(LogLevel.INFO, f"Executing plan to remove {len(plan.to_remove)} and keep {len(plan.to_keep)} files")
            failed = plan.execute(logger)
            if failed:
                logger.verbose(LogLevel.WARN, f"{len(failed)} file(s) could not be removed")
        else:
            print(plan.render(color=args.color and sys.stdout.isatty()))

    except DirectoryUnreadableError as e:
        handle_exception(e, 3, args.stacktrace if args is not None else True)
    except DestinationNotWritableError as e:
        handle_exception(e, 4, args.stacktrace if args is not None else True)
    except OSError as e:
        handle_exception(e, 1, args.stacktrace if args is not None else True)
    except ValueError as e:
        handle_exception(e, 2, args.stacktrace if args is not None else True)
    except IntegrityCheckFailedError as e:
        handle_exception(e, 7, args.stacktrace if args is not None else True)
    except Exception as e:
        handle_exception(e, 9, args.stacktrace if args is not None else True, prefix="UNEXPECTED ERROR")


if __name__ == "__main__":
    main()
