"""Constants used across the yamcs-telemetry package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "yamcs-telemetry"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_YAMCS_URL = "http://localhost:8090/"
DEFAULT_YAMCS_REALTIME_URL = "ws://localhost:8090/"
DEFAULT_INSTANCE = "myproject"
DEFAULT_FOLDER = "myproject"

DEFAULT_PAGE_LIMIT = 1000

# Seconds to wait before each successive reconnect attempt. The last entry
# is reused for every further attempt until a connection succeeds.
RECONNECT_SCHEDULE_SECONDS = (1.0, 5.0, 5.0, 10.0, 10.0, 30.0)

OBJECT_NAMESPACE = "taxonomy"
ROOT_KEY = "spacecraft"
ROOT_LOCATION = "ROOT"

FOLDER_TYPE = "folder"
TELEMETRY_TYPE = "numeric-telemetry"
STRING_TYPE = "string-telemetry"
IMAGE_TYPE = "image-telemetry"

TELEMETRY_TYPES = frozenset({TELEMETRY_TYPE, STRING_TYPE, IMAGE_TYPE})

# Alias namespaces understood on MDB parameter records.
OMIT_ALIAS_NAMESPACE = "OpenMCT:omit"
TYPE_ALIAS_NAMESPACE = "OpenMCT:type"

# Alias names accepted for the type override, mapped to node kinds.
TYPE_ALIASES = {
    "telemetry": TELEMETRY_TYPE,
    "numeric": TELEMETRY_TYPE,
    TELEMETRY_TYPE: TELEMETRY_TYPE,
    "string": STRING_TYPE,
    STRING_TYPE: STRING_TYPE,
    "image": IMAGE_TYPE,
    IMAGE_TYPE: IMAGE_TYPE,
}
