"""
CLI layer for buildspine.

A thin orchestrator over ``buildspine.core``: it inspects and maintains the
staleness cache and drives event emissions from plugin modules. All logic
lives in the core; this package handles argument parsing and rendering.

Entry point::

    buildspine --help
"""

from buildspine.cli.app import app

__all__ = ["app"]
