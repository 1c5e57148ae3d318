"""
Exception hierarchy for fatal analyzer errors.
"""


class DependencyLagError(Exception):
    """Base class for errors that abort a run."""


class ConfigurationError(DependencyLagError, ValueError):
    """Invalid run configuration (stopping rules, ecosystem)."""


class RepositoryError(DependencyLagError, RuntimeError):
    """The repository cannot be opened, cloned or enumerated."""
