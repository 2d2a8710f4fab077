from colorfeed.resolver.base.fetcher import BaseFetcher, build_client

__all__ = ["BaseFetcher", "build_client"]
