"""Settings management using TOML configuration."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Self

from musicfox.config.paths import CONFIG_FILE


@dataclass
class MenuSettings:
    dual_column: bool = True
    dynamic_row_count: bool = False
    page_size: int = 10


@dataclass
class PlaybackSettings:
    audio_quality: str = "high"
    default_mode: str = "list_loop"
    failure_threshold: int = 3
    stuck_tolerance: float = 10.0
    seek_step: int = 5
    default_volume: int = 80
    api_timeout: int = 15


@dataclass
class LyricsSettings:
    enabled: bool = True
    offset_ms: int = 0
    max_lines: int = 5


@dataclass
class CatalogSettings:
    page_size: int = 50


SECTION_MAP: dict[str, type] = {
    "menu": MenuSettings,
    "playback": PlaybackSettings,
    "lyrics": LyricsSettings,
    "catalog": CatalogSettings,
}


@dataclass
class Settings:
    menu: MenuSettings = field(default_factory=MenuSettings)
    playback: PlaybackSettings = field(default_factory=PlaybackSettings)
    lyrics: LyricsSettings = field(default_factory=LyricsSettings)
    catalog: CatalogSettings = field(default_factory=CatalogSettings)

    @classmethod
    def load(cls, path: Path = CONFIG_FILE) -> Self:
        settings = cls()

        if not path.exists():
            settings._create_default(path)
            return settings

        with open(path, "rb") as f:
            data = tomllib.load(f)

        for section_name in SECTION_MAP:
            if section_name in data:
                section_data = data[section_name]
                section_instance = getattr(settings, section_name)
                for f_info in fields(section_instance):
                    if f_info.name in section_data:
                        setattr(section_instance, f_info.name, section_data[f_info.name])

        return settings

    def save(self, path: Path = CONFIG_FILE) -> None:
        import os

        from musicfox.config.paths import SECURE_FILE_MODE

        path.parent.mkdir(parents=True, exist_ok=True)
        lines: list[str] = []

        for section_name in SECTION_MAP:
            section = getattr(self, section_name)
            lines.append(f"[{section_name}]")
            for f_info in fields(section):
                value = getattr(section, f_info.name)
                lines.append(f"{f_info.name} = {_format_toml_value(value)}")
            lines.append("")

        path.write_text("\n".join(lines))
        os.chmod(path, SECURE_FILE_MODE)

    def _create_default(self, path: Path) -> None:
        self.save(path)


def _format_toml_value(value: object) -> str:
    match value:
        case bool():
            return "true" if value else "false"
        case int() | float():
            return str(value)
        case str():
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        case list():
            items = ", ".join(_format_toml_value(v) for v in value)
            return f"[{items}]"
        case _:
            return repr(value)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
