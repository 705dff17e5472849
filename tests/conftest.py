"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings.
"""
import os

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MONOBANK__LIVE_TOKEN", "test-x-token")
os.environ.setdefault("MONOBANK__TEST_MODE", "false")
