"""
Progression Engine Test Suite

Unit tests live under `tests/unit`; shared fixtures are in `conftest.py`.
"""
