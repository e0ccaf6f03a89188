"""Shared HTTP and async plumbing used by the tracker and channel adapters."""

from .async_utils import call_with_timeout, run_sync
from .http import ApiClient

__all__ = ["ApiClient", "call_with_timeout", "run_sync"]
