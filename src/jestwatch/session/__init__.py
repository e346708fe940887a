"""Session management for jestwatch front ends."""

from ._session import JestSession

__all__ = ["JestSession"]
