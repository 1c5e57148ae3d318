"""
Dependency Update Lag Tool

A tool for measuring how long a project takes to adopt new releases of its
dependencies, mined from the history of its dependency manifests.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main"]
