"""
Orchestrator Package - Command-line entry point.

============================================================
RUNTIME MODES
============================================================
- registry : Registry descriptors -> chain records
- chains   : Explorer chain list + validators -> chain records
- metrics  : Daily metric series for every known chain
- full     : registry, chains, metrics in that order
- serve    : Read API (FastAPI + uvicorn)

============================================================
"""
