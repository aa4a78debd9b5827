"""
Validation package.

Exposes `InputValidator`, the canonical check for caller-supplied values
(action names, timeframes, counts) before they reach the services.
"""

from progression_engine.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
