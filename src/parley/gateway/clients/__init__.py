"""HTTP clients for upstream providers."""

from .upstream import UpstreamClient, UpstreamClientConfig

__all__ = ["UpstreamClient", "UpstreamClientConfig"]
