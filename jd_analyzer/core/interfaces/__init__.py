"""
Core Interfaces Module

Protocols the core depends on instead of concrete implementations.

Components:
-----------
- **storage.py**: DurableStore protocol for the durable cache tier
"""

from jd_analyzer.core.interfaces.storage import DurableStore

__all__ = ["DurableStore"]
