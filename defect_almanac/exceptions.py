"""
Exceptions raised by Defect Almanac.

Data-quality problems in single defect reports are never exceptions: those
reports are filtered and counted. These types cover failures that abort a run.
"""

from typing import Dict, Optional


class AlmanacError(Exception):
    """Base exception for all Defect Almanac errors"""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(AlmanacError):
    """Invalid settings, such as an out-of-range walk-forward cutoff"""


class DataSourceError(AlmanacError):
    """The issue tracker or the repository returned unusable data"""


class ModelFitError(AlmanacError):
    """A classifier could not be fitted or evaluated"""
