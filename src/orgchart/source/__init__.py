"""Tree Source implementations and factory."""

from __future__ import annotations

from orgchart.core.config import TreeSourceConfig
from orgchart.source.base import TreeSource
from orgchart.source.http import HttpTreeSource
from orgchart.source.memory import InMemoryTreeSource

SOURCE_REGISTRY: dict[str, type] = {
    "memory": InMemoryTreeSource,
    "http": HttpTreeSource,
}


def create_tree_source(config: TreeSourceConfig) -> TreeSource:
    """Factory: instantiate a Tree Source based on config.provider."""
    provider = config.provider.lower()
    if provider not in SOURCE_REGISTRY:
        available = ", ".join(sorted(SOURCE_REGISTRY))
        raise ValueError(
            f"Unknown tree source provider {config.provider!r}. "
            f"Available: {available}"
        )
    if provider == "memory":
        return InMemoryTreeSource(seed_path=config.seed_path)
    return HttpTreeSource(config)


__all__ = [
    "SOURCE_REGISTRY",
    "HttpTreeSource",
    "InMemoryTreeSource",
    "TreeSource",
    "create_tree_source",
]
