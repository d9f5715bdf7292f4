"""
Read API Routers.
"""
from . import chains, health, icm, metrics

__all__ = ["chains", "health", "icm", "metrics"]
