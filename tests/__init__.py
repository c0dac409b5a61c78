"""Test package for the venue grouping engine.

This package contains:
- Unit tests (test_geo.py, test_cache.py, test_budget.py, test_places_client.py, ...)
- End-to-end grouping scenarios (test_orchestrator.py, marked ``integration``)
- Test configuration and mock Places API (conftest.py)
"""
