"""
Storage Package.

This package manages all data persistence.

Modules:
- models/: ORM models (chain records, metric samples, ICM message counts)
- repositories/: Data access layer (ChainRecordStore, MetricSeriesWriter, IcmCountWriter)
"""
