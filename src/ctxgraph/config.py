"""Configuration management for ctxgraph."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ctxgraph.chunking.models import ChunkingStrategy
from ctxgraph.context.models import WindowOrder
from ctxgraph.exceptions import ConfigError

CTXGRAPH_DIR = ".ctxgraph"
CONFIG_FILE = "config.json"
GRAPH_DB_FILE = "graph.db"


class GraphConfig(BaseModel):
    """Edge construction thresholds."""

    edge_threshold: float = 0.2
    similar_threshold: float = 0.7
    link_threshold: float = 0.1  # chaining consecutive bucket centroids
    layout_radius: float = 200.0


class SearchConfig(BaseModel):
    """Graph search defaults."""

    max_results: int = 10
    max_depth: int = 3
    min_relevance: float = 0.1
    seed_limit: int = 5
    seed_threshold: float = 0.1
    max_context_tokens: int = 4000


class WindowConfig(BaseModel):
    """Context window defaults."""

    max_tokens: int = 4000
    min_relevance: float = 0.1
    order: WindowOrder = WindowOrder.ORIGINAL
    include_titles: bool = True
    include_metadata: bool = True
    include_summaries: bool = True
    add_separators: bool = True


class CacheConfig(BaseModel):
    ttl_seconds: float = 300
    max_entries: int | None = 1024  # None = unbounded


class LoggingConfig(BaseModel):
    level: str = "WARNING"


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    default_scope: str = "default"
    chunking: ChunkingStrategy = Field(default_factory=ChunkingStrategy)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    window: WindowConfig = Field(default_factory=WindowConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .ctxgraph directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CTXGRAPH_DIR).is_dir():
            return current
        current = current.parent
    if (current / CTXGRAPH_DIR).is_dir():
        return current
    return None


def get_ctxgraph_dir(root: Path) -> Path:
    """Get the .ctxgraph directory for a project root."""
    return root / CTXGRAPH_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .ctxgraph/config.json."""
    config_path = get_ctxgraph_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .ctxgraph/config.json."""
    cg_dir = get_ctxgraph_dir(root)
    cg_dir.mkdir(parents=True, exist_ok=True)
    config_path = cg_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'search.max_depth')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return ProjectConfig(**data)
