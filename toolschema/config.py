"""Settings for tool registration and the command line.

Values come from ``~/.toolschema/config.json`` and can be overridden by
environment variables:

* ``TOOLSCHEMA_ADDITIONAL_PROPERTIES`` — closedness for input schemas
* ``TOOLSCHEMA_OUTPUT_ADDITIONAL_PROPERTIES`` — closedness for output schemas
* ``TOOLSCHEMA_TYPE_NAME`` — default root name for generated types
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .compiler import CompileOptions, ObjectClosedness

logger = logging.getLogger(__name__)


def _config_path() -> Path:
    return Path(os.path.expanduser("~/.toolschema/config.json"))


def load_config() -> dict[str, Any]:
    """Load the local config file, or an empty dict when there is none."""
    path = _config_path()
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", path)
            return {}
        return data if isinstance(data, dict) else {}
    return {}


def parse_closedness(text: str) -> ObjectClosedness:
    """Parse ``strip``, ``passthrough`` or ``strict`` (any case)."""
    try:
        return ObjectClosedness(text.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in ObjectClosedness)
        raise ValueError(f"Unknown additional properties mode {text!r} (expected {choices})") from None


@dataclass(frozen=True)
class Settings:
    """Defaults applied when tools are registered."""

    additional_properties: ObjectClosedness = ObjectClosedness.STRICT
    output_additional_properties: ObjectClosedness = ObjectClosedness.PASSTHROUGH
    type_name: str = "Schema"

    @property
    def input_options(self) -> CompileOptions:
        return CompileOptions(additional_properties=self.additional_properties)

    @property
    def output_options(self) -> CompileOptions:
        return CompileOptions(additional_properties=self.output_additional_properties)


def load_settings(config: Optional[dict[str, Any]] = None) -> Settings:
    """Build :class:`Settings` from the config file and environment."""
    cfg = load_config() if config is None else config
    defaults = Settings()

    input_mode = os.environ.get("TOOLSCHEMA_ADDITIONAL_PROPERTIES") or cfg.get(
        "additional_properties"
    )
    output_mode = os.environ.get("TOOLSCHEMA_OUTPUT_ADDITIONAL_PROPERTIES") or cfg.get(
        "output_additional_properties"
    )
    type_name = os.environ.get("TOOLSCHEMA_TYPE_NAME") or cfg.get("type_name")

    return Settings(
        additional_properties=(
            parse_closedness(input_mode) if input_mode else defaults.additional_properties
        ),
        output_additional_properties=(
            parse_closedness(output_mode)
            if output_mode
            else defaults.output_additional_properties
        ),
        type_name=type_name or defaults.type_name,
    )
