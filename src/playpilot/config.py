"""
Configuration schema using Pydantic.

Built-in defaults can be overridden from a YAML file, from environment
variables, or by passing a dict of overrides to a section. Overrides are
merged as-is: values are not range-checked.
"""

import os
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple

import yaml
from pydantic import BaseModel, Field


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    def __init__(self, message: str, field: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.message = message
        self.field = field
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]
        if self.field:
            lines.append(f"  Field: {self.field}")
        if self.suggestions:
            lines.append("  Suggestions:")
            for s in self.suggestions:
                lines.append(f"    - {s}")
        return "\n".join(lines)


class ConfigSection(BaseModel):
    """Base for config sections: adds shallow override merging."""

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Return a copy with ``overrides`` shallow-merged over this section.

        Unknown keys raise ConfigurationError; values are not validated.
        """
        if not overrides:
            return self
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown {type(self).__name__} keys: {', '.join(sorted(unknown))}",
                suggestions=[f"Valid keys: {', '.join(type(self).model_fields)}"],
            )
        return self.model_copy(update=overrides)


class CaptureConfig(ConfigSection):
    """Screen capture configuration."""

    screenshot_dir: str = Field(default="./screenshots")
    save_screenshots: bool = Field(default=False, description="Persist every capture as PNG")
    monitor_index: int = Field(default=0, description="0 = primary monitor")

    @property
    def screenshot_path(self) -> Path:
        """Get resolved screenshot directory."""
        return Path(self.screenshot_dir).expanduser()


class OCRConfig(ConfigSection):
    """Text recognition configuration."""

    language: str = Field(default="chi_sim+eng", description="Tesseract language(s)")
    min_confidence: float = Field(default=60.0, description="Spans at or below this are dropped")
    tesseract_cmd: Optional[str] = Field(default=None, description="Path to tesseract executable")
    psm: int = Field(default=11, description="Tesseract page segmentation mode")
    timeout_seconds: float = Field(default=30.0, description="0 disables the timeout")
    preprocess: bool = Field(default=True, description="Grayscale before OCR")
    upscale_factor: float = Field(default=1.0)


class VisionConfig(ConfigSection):
    """Element classification and template matching configuration."""

    block_size: int = Field(default=50, description="Dark-scan block side length (px)")
    sample_stride: int = Field(default=5, description="Pixel stride inside a block")
    dark_luminance: float = Field(default=30.0)
    dark_ratio: float = Field(default=0.7)
    footprint_blocks: Tuple[int, int] = Field(default=(4, 3), description="Video candidate size in blocks (cols, rows)")
    template_stride: int = Field(default=10)
    template_sample_step: int = Field(default=2)
    template_threshold: float = Field(default=0.7)
    template_dir: Optional[str] = Field(default=None)


class MouseConfig(ConfigSection):
    """Actuator timing and safety configuration. Delays are milliseconds."""

    mouse_speed: float = Field(default=3.0, description="Higher = shorter inter-step delay")
    click_delay_ms: int = Field(default=100, description="Settle delay before a button event")
    double_click_delay_ms: int = Field(default=50)
    scroll_speed: int = Field(default=3, description="Default scroll clicks")
    key_delay_ms: int = Field(default=50, description="Pause around key taps and while combo keys are held")
    typing_delay_ms: int = Field(default=50)
    move_smooth: bool = Field(default=True)
    safety_margin: int = Field(default=10)
    max_retries: int = Field(default=3)
    retry_backoff_ms: int = Field(default=500)
    human_delay_ms: Tuple[int, int] = Field(default=(100, 300))
    human_jitter_px: int = Field(default=3)


class PlayPilotConfig(BaseModel):
    """Root configuration."""

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    vision: VisionConfig = Field(default_factory=VisionConfig)
    mouse: MouseConfig = Field(default_factory=MouseConfig)


def get_default_config_path() -> Path:
    """Get default config file path."""
    return Path.home() / ".playpilot" / "config.yaml"


def load_config(config_path: Optional[str] = None) -> PlayPilotConfig:
    """
    Load configuration from a YAML file.

    Falls back to defaults if the default file doesn't exist.
    Environment variables override config file values.

    Args:
        config_path: Path to config file (optional)

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the config file is missing or invalid
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}",
                suggestions=[
                    f"Create the config file at {path}",
                    "Use 'playpilot config --init' to write a default config",
                    "Or run without --config to use defaults",
                ]
            )
    else:
        path = get_default_config_path()

    data: Dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            raise ConfigurationError(
                f"Invalid YAML in config file: {path}",
                suggestions=[
                    f"Check syntax at line {mark.line + 1 if mark else 'unknown'}",
                    "Use a YAML validator to check your config",
                ]
            ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")

    data = _deep_merge(data, _get_env_overrides())

    try:
        return PlayPilotConfig(**data)
    except Exception as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            suggestions=[
                "Check field names and values in your config",
                "Run 'playpilot config' to see the effective values",
            ]
        ) from e


def _get_env_overrides() -> Dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: Dict[str, Any] = {}

    env_mappings = {
        "PLAYPILOT_OCR_LANGUAGE": ("ocr", "language"),
        "PLAYPILOT_TESSERACT_CMD": ("ocr", "tesseract_cmd"),
        "PLAYPILOT_SCREENSHOT_DIR": ("capture", "screenshot_dir"),
        "PLAYPILOT_MOUSE_SPEED": ("mouse", "mouse_speed"),
        "PLAYPILOT_SAFETY_MARGIN": ("mouse", "safety_margin"),
        "PLAYPILOT_MAX_RETRIES": ("mouse", "max_retries"),
    }

    for env_key, (section, field) in env_mappings.items():
        value = os.environ.get(env_key)
        if value:
            if section not in overrides:
                overrides[section] = {}
            if value.isdigit():
                value = int(value)
            overrides[section][field] = value

    return overrides


def _deep_merge(base: Dict, overlay: Dict) -> Dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def save_config(config: PlayPilotConfig, config_path: Optional[str] = None) -> Path:
    """Save configuration to a YAML file and return its path."""
    path = Path(config_path) if config_path else get_default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    return path
