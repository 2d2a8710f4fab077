from colorfeed.resolver.orchestration.workers import WorkerPool
from colorfeed.resolver.orchestration.session import ResolveSession

__all__ = ["WorkerPool", "ResolveSession"]
