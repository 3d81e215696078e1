from contextkit.engines.resolver import PathResolver
from contextkit.engines.session import ActivitySession

__all__ = ["ActivitySession", "PathResolver"]
