"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .transport_factory import FailingTransport, FakeTransport, analysis_payload, provider_response

__all__ = ["FailingTransport", "FakeTransport", "analysis_payload", "provider_response"]
