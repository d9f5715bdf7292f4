"""
Scripts Package.

This package contains operational scripts for the aggregator.

Scripts:
- dedupe_chains: Find and remove duplicate chain records
"""

# Scripts are meant to be run directly, not imported
