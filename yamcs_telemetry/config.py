"""Configuration loader for yamcs-telemetry."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Tuple

from . import constants


@dataclass(slots=True)
class YamcsConfig:
    dictionary_url: str = constants.DEFAULT_YAMCS_URL
    realtime_url: str = constants.DEFAULT_YAMCS_REALTIME_URL
    instance: str = constants.DEFAULT_INSTANCE
    folder: str = constants.DEFAULT_FOLDER


@dataclass(slots=True)
class DictionaryConfig:
    page_limit: int = constants.DEFAULT_PAGE_LIMIT
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class RealtimeConfig:
    reconnect_schedule_seconds: Tuple[float, ...] = field(
        default_factory=lambda: tuple(constants.RECONNECT_SCHEDULE_SECONDS)
    )


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class TelemetryClientConfig:
    yamcs: YamcsConfig
    dictionary: DictionaryConfig
    realtime: RealtimeConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path


def _parse_schedule(value: str, *, default: Iterable[float]) -> Tuple[float, ...]:
    if not value:
        return tuple(default)
    try:
        schedule = tuple(
            float(item.strip()) for item in value.split(",") if item.strip()
        )
    except ValueError:
        return tuple(default)
    if not schedule or any(delay < 0 for delay in schedule):
        return tuple(default)
    return schedule


def load_config(path: Optional[Path] = None) -> TelemetryClientConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "yamcs": {
                "dictionary_url": constants.DEFAULT_YAMCS_URL,
                "realtime_url": constants.DEFAULT_YAMCS_REALTIME_URL,
                "instance": constants.DEFAULT_INSTANCE,
                "folder": constants.DEFAULT_FOLDER,
            },
            "dictionary": {
                "page_limit": str(constants.DEFAULT_PAGE_LIMIT),
                "request_timeout_seconds": "30.0",
            },
            "realtime": {
                "reconnect_schedule_seconds": ",".join(
                    f"{delay:g}" for delay in constants.RECONNECT_SCHEDULE_SECONDS
                ),
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    yamcs = YamcsConfig(
        dictionary_url=_with_trailing_slash(parser.get("yamcs", "dictionary_url")),
        realtime_url=_with_trailing_slash(parser.get("yamcs", "realtime_url")),
        instance=parser.get("yamcs", "instance"),
        folder=parser.get("yamcs", "folder"),
    )

    dictionary = DictionaryConfig(
        page_limit=max(
            1,
            parser.getint(
                "dictionary", "page_limit", fallback=constants.DEFAULT_PAGE_LIMIT
            ),
        ),
        request_timeout_seconds=max(
            0.1,
            parser.getfloat("dictionary", "request_timeout_seconds", fallback=30.0),
        ),
    )

    realtime = RealtimeConfig(
        reconnect_schedule_seconds=_parse_schedule(
            parser.get("realtime", "reconnect_schedule_seconds", fallback=""),
            default=constants.RECONNECT_SCHEDULE_SECONDS,
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="")
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return TelemetryClientConfig(
        yamcs=yamcs,
        dictionary=dictionary,
        realtime=realtime,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )


def save_config(config: TelemetryClientConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)


def _with_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"
