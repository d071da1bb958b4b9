"""Utility modules for the contractloom core package.

This package contains shared utility functions used across the codebase.
"""

from .token_counter import TokenCounter

__all__ = ["TokenCounter"]
