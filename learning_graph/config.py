"""
Engine configuration.

Settings are plain pydantic models so they can be built in code,
loaded from environment variables, or validated from a dict.

Environment variables:
    LEARNING_GRAPH_MODE=memory|sqlite
    LEARNING_GRAPH_DB_PATH=learning_graph.db
    LEARNING_GRAPH_LOG_LEVEL=INFO
    LEARNING_GRAPH_CONFIGURE_LOGGING=1
    LEARNING_GRAPH_LAYOUT_SEED=42
"""

import logging
import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LayoutSettings(BaseModel):
    """Force-directed layout constants."""
    repulsion: float = Field(default=100.0, gt=0.0)
    attraction: float = Field(default=0.1, gt=0.0)
    max_velocity: float = Field(default=10.0, gt=0.0)
    damping: float = Field(default=0.9, ge=0.0, le=1.0)
    min_distance: float = Field(default=1.0, gt=0.0)

    width: float = Field(default=800.0, gt=0.0)
    height: float = Field(default=600.0, gt=0.0)
    iterations: int = Field(default=100, gt=0)
    seed: Optional[int] = None


class PathSettings(BaseModel):
    """Defaults for path finding and learning path generation."""
    max_depth: int = Field(default=5, gt=0)
    min_strength: float = Field(default=0.0, ge=0.0, le=1.0)

    # generate_path filters weak edges by default
    generation_min_strength: float = Field(default=0.3, ge=0.0, le=1.0)

    prerequisite_max_depth: int = Field(default=3, gt=0)
    prerequisite_min_strength: float = Field(default=0.5, ge=0.0, le=1.0)

    related_limit: int = Field(default=10, gt=0)


class EngineSettings(BaseModel):
    """Top-level settings for LearningGraphEngine."""
    mode: Literal["memory", "sqlite"] = "memory"
    db_path: str = ":memory:"
    log_level: LogLevel = "INFO"
    configure_logging: bool = False     # Engine calls setup_logging() on startup

    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from LEARNING_GRAPH_* environment variables."""
        layout = LayoutSettings()
        seed = os.getenv("LEARNING_GRAPH_LAYOUT_SEED")
        if seed:
            layout = layout.model_copy(update={"seed": int(seed)})

        return cls(
            mode=os.getenv("LEARNING_GRAPH_MODE", "memory"),
            db_path=os.getenv("LEARNING_GRAPH_DB_PATH", ":memory:"),
            log_level=os.getenv("LEARNING_GRAPH_LOG_LEVEL", "INFO"),
            configure_logging=os.getenv("LEARNING_GRAPH_CONFIGURE_LOGGING", "").lower() in ("1", "true", "yes"),
            layout=layout,
        )


def setup_logging(
    level: int | str = logging.INFO,
    fmt: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt: str = "%Y-%m-%dT%H:%M:%S%z",
) -> None:
    """Configure the root logger with timestamped structured output."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, force=True)
