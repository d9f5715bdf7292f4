"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified, injectable time abstraction
- config: Dataclass configuration (env / YAML)
- logging_config: Logging setup and credential masking
- exceptions: Shared exception base
"""
