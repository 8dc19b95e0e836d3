"""Custom exception hierarchy for the importer."""

from __future__ import annotations


class ImporterError(Exception):
    """Base error for the feature importer."""


class ConfigurationError(ImporterError):
    """Raised when an import definition or runtime setting is unusable."""


class AmbiguousMatchError(ImporterError):
    """Raised when a filter expected to be unique matches more than one remote entity."""


class MalformedPayloadError(ImporterError):
    """Raised when a rendered properties, result or time template cannot be parsed."""


class ProjectionError(ImporterError):
    """Raised when a coordinate reference system cannot be resolved or applied."""


class RemoteCallError(ImporterError):
    """Raised when a query, create or update against the remote store fails."""
