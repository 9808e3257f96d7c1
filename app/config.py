from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.services.align_storyline import AlignCriterion
from domain.services.justify_layers import BlockHandling, JustifyConfig, LayerStyle

DEFAULT_CONFIG_PATH = Path("config/storyline.yaml")

JustifyMethod = Literal["blocks", "lp"]


class LayoutSettings(BaseModel):
    alignment_criterion: AlignCriterion = "sum-of-heights"
    gap_ratio: float = Field(default=1.0, ge=0)
    align_continued_meetings: bool = False
    layer_style: LayerStyle = "condensed"
    block_handling: BlockHandling = "continuous"
    justify_method: JustifyMethod = "blocks"

    @field_validator(
        "alignment_criterion", "layer_style", "block_handling", "justify_method", mode="before"
    )
    @classmethod
    def normalize_choice(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value

    def to_justify_config(self) -> JustifyConfig:
        return JustifyConfig(layer_style=self.layer_style, block_handling=self.block_handling)


class SolverSettings(BaseModel):
    qp_max_iterations: int = Field(default=10000, gt=0)
    dump_dir: Path | None = None


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STORYLINE_", env_nested_delimiter="__")

    title: str = "Storyline Layout"
    max_layout_sessions: int = Field(default=256, gt=0)
    layout: LayoutSettings = LayoutSettings()
    solver: SolverSettings = SolverSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("STORYLINE_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
