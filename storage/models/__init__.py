"""
Storage Models Package.

============================================================
MODEL ORGANIZATION
============================================================

Chains (chains.py)
- ChainRecordRow

Metrics (metrics.py)
- MetricSampleRow

Cross-chain messages (icm.py)
- IcmMessageCountRow

============================================================
"""

from storage.models.base import Base, JSONType, TimestampMixin
from storage.models.chains import ChainRecordRow
from storage.models.icm import IcmMessageCountRow
from storage.models.metrics import MetricSampleRow


__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "ChainRecordRow",
    "IcmMessageCountRow",
    "MetricSampleRow",
]
