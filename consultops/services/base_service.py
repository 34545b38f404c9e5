"""
Base Service Class.

Standardises the injected-logger pattern for every service.
"""

from __future__ import annotations

from consultops.logger import StructuredLogger


class BaseService:
    """Base class for all service classes. Provides ``self._logger``."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
