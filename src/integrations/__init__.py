"""
External integrations for the assessment engine.

Modules:
- test_provider: HTTP client for the assessment backend (Test Provider)
"""
from .test_provider import TestProviderClient

__all__ = ["TestProviderClient"]
