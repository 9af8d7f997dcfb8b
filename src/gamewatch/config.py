"""Configuration system for gamewatch."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from gamewatch.tracker import TrackedTarget, build_targets

VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass
class PollingConfig:
    """Poll cadence configuration.

    The two intervals are independent. Unfocused polling only needs to be
    slower than focused polling, not a fixed multiple of it.
    """

    focused_interval: float = 2.0  # Seconds between checks while the host window has focus
    unfocused_interval: float = 5.0  # Seconds between checks while backgrounded


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "info"
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


@dataclass
class GameConfig:
    """Active game descriptor and its discovery result.

    An empty executable or path means the game has not been discovered yet.
    """

    id: str = ""
    name: str = ""
    executable: str = ""  # File name, relative to path
    path: str = ""  # Installation directory


@dataclass
class ToolConfig:
    """A discovered auxiliary tool of the active game."""

    path: str = ""
    exclusive: bool = False
    detached: bool = False  # Accept instances not launched by us


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    polling: PollingConfig = field(default_factory=PollingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    game: GameConfig = field(default_factory=GameConfig)
    tools: dict[str, ToolConfig] = field(default_factory=dict)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "gamewatch"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "gamewatch"

    @property
    def log_path(self) -> Path:
        """Monitor log path (JSON Lines)."""
        return self.state_dir / "monitor.log"

    def targets(self) -> list[TrackedTarget]:
        """Return the executables to watch, game first."""
        return build_targets(
            self.game.executable,
            self.game.path,
            {
                tool_id: (tool.path, tool.exclusive, tool.detached)
                for tool_id, tool in self.tools.items()
            },
        )

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("polling", "logging", "game"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        tools = tomlkit.table(is_super_table=True)
        for tool_id, tool in self.tools.items():
            tools.add(tool_id, _dataclass_to_table(tool))
        doc.add("tools", tools)

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            polling=_load_polling_config(data.get("polling", {})),
            logging=_load_logging_config(data.get("logging", {})),
            game=_load_game_config(data.get("game", {})),
            tools=_load_tools_config(data.get("tools", {})),
        )


def _require_number(name: str, value: object) -> float:
    """Return value as a number, or raise ValueError naming the setting."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return value


def _require_int(name: str, value: object, minimum: int) -> int:
    """Return value as an int >= minimum, or raise ValueError naming the setting."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return int(value)


def _load_polling_config(data: dict) -> PollingConfig:
    """Load polling config, validating interval ordering."""
    defaults = PollingConfig()
    focused = _require_number(
        "focused_interval", data.get("focused_interval", defaults.focused_interval)
    )
    unfocused = _require_number(
        "unfocused_interval", data.get("unfocused_interval", defaults.unfocused_interval)
    )

    if focused <= 0:
        raise ValueError(f"focused_interval must be > 0, got {focused}")
    if unfocused <= focused:
        raise ValueError(
            f"unfocused_interval must be > focused_interval, got {unfocused} <= {focused}"
        )

    return PollingConfig(focused_interval=float(focused), unfocused_interval=float(unfocused))


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = str(data.get("level", d.level)).lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {VALID_LOG_LEVELS}")
    return LoggingConfig(
        level=level,
        log_max_bytes=_require_int(
            "log_max_bytes", data.get("log_max_bytes", d.log_max_bytes), minimum=1
        ),
        log_backup_count=_require_int(
            "log_backup_count", data.get("log_backup_count", d.log_backup_count), minimum=0
        ),
    )


def _load_game_config(data: dict) -> GameConfig:
    """Load the active game section."""
    d = GameConfig()
    return GameConfig(
        id=str(data.get("id", d.id)),
        name=str(data.get("name", d.name)),
        executable=str(data.get("executable", d.executable)),
        path=str(data.get("path", d.path)),
    )


def _load_tools_config(data: dict) -> dict[str, ToolConfig]:
    """Load [tools.<id>] sections, keeping file order."""
    d = ToolConfig()
    tools: dict[str, ToolConfig] = {}
    for tool_id, tool_data in data.items():
        if not isinstance(tool_data, Mapping):
            raise ValueError(f"[tools.{tool_id}] must be a table")
        tools[str(tool_id)] = ToolConfig(
            path=str(tool_data.get("path", d.path)),
            exclusive=bool(tool_data.get("exclusive", d.exclusive)),
            detached=bool(tool_data.get("detached", d.detached)),
        )
    return tools
