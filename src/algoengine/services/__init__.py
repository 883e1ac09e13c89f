"""
Service Classes for the Algorithm Expression Engine

Configuration, algorithm execution and formula dependency analysis.
"""

# Lightweight imports (expression modules depend on these)
from .config_loader import ConfigLoader, EngineConfig, get_config_loader, get_engine_config, load_config


def __getattr__(name):
    """Lazy-import services that depend on the expressions package."""
    if name == "AlgorithmExecutionService":
        from .execution_service import AlgorithmExecutionService
        return AlgorithmExecutionService
    if name == "DependencyGraph":
        from .dependency_service import DependencyGraph
        return DependencyGraph
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ConfigLoader",
    "EngineConfig",
    "get_config_loader",
    "get_engine_config",
    "load_config",
    "AlgorithmExecutionService",
    "DependencyGraph",
]
