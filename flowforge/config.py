"""Shared flowforge configuration utilities.

Centralises reading of ~/.flowforge/configuration.json so that the editor,
the execution controller and the CLI share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWFORGE_CONFIG_FILE = Path(
    os.environ.get("FLOWFORGE_CONFIG", Path.home() / ".flowforge" / "configuration.json")
)

DEFAULT_TICK_INTERVAL_MS = 300
DEFAULT_PROGRESS_STEP = 20
DEFAULT_STEP_DURATION_MS = 2000

# Simulated wall-clock cost of each built-in step type
DEFAULT_STEP_DURATIONS_MS: dict[str, int] = {
    "dataSource": 2000,
    "process": 3000,
    "ai": 5000,
    "filter": 1500,
    "visualization": 2500,
    "conditional": 1000,
    "switch": 1000,
}


def get_flowforge_config() -> dict[str, Any]:
    """Load flowforge configuration from ~/.flowforge/configuration.json."""
    if not FLOWFORGE_CONFIG_FILE.exists():
        return {}
    try:
        with open(FLOWFORGE_CONFIG_FILE, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _execution_section() -> dict[str, Any]:
    return get_flowforge_config().get("execution", {})


def get_tick_interval() -> float:
    """Return the tick interval in seconds."""
    return _execution_section().get("tick_interval_ms", DEFAULT_TICK_INTERVAL_MS) / 1000


def get_progress_step() -> int:
    """Return the progress increment applied on every tick."""
    return int(_execution_section().get("progress_step", DEFAULT_PROGRESS_STEP))


def get_require_end_node() -> bool:
    return bool(_execution_section().get("require_end_node", True))


def get_step_durations() -> dict[str, float]:
    """Return simulated step durations in seconds, keyed by node type."""
    durations = dict(DEFAULT_STEP_DURATIONS_MS)
    durations.update(_execution_section().get("step_durations_ms", {}))
    return {node_type: ms / 1000 for node_type, ms in durations.items()}


def get_default_step_duration() -> float:
    return _execution_section().get("default_step_duration_ms", DEFAULT_STEP_DURATION_MS) / 1000


def get_log_level() -> str:
    return get_flowforge_config().get("logging", {}).get("level", "INFO")


def get_log_format() -> str:
    return get_flowforge_config().get("logging", {}).get("format", "auto")


# ---------------------------------------------------------------------------
# ExecutionConfig – shared by the controller and the CLI
# ---------------------------------------------------------------------------


@dataclass
class ExecutionConfig:
    """Simulated runner configuration loaded from ~/.flowforge/configuration.json."""

    tick_interval: float = field(default_factory=get_tick_interval)
    progress_step: int = field(default_factory=get_progress_step)
    require_end_node: bool = field(default_factory=get_require_end_node)
    step_durations: dict[str, float] = field(default_factory=get_step_durations)
    default_step_duration: float = field(default_factory=get_default_step_duration)

    def __post_init__(self) -> None:
        if self.progress_step <= 0:
            raise ValueError(f"progress_step must be positive, got {self.progress_step}")
        if self.tick_interval < 0:
            raise ValueError(f"tick_interval must not be negative, got {self.tick_interval}")

    def duration_for(self, node_type: str) -> float:
        """Simulated duration in seconds for a node of ``node_type``."""
        return self.step_durations.get(node_type, self.default_step_duration)
