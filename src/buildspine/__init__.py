"""
buildspine - event dispatch and staleness tracking for static-site builds.

- buildspine.core.events: priority-grouped asyncio EventBus
- buildspine.core.cache: persisted StaleCache of file fingerprints
- buildspine.cli: ``buildspine`` command-line front end
"""

__version__ = "0.1.0"

from buildspine.core import *  # noqa
