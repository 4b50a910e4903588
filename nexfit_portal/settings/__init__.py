"""
Settings package initializer.

The actual settings module is selected via the `DJANGO_SETTINGS_MODULE`
environment variable. Management commands default to the development
configuration (`nexfit_portal.settings.dev`); the test suite runs with
`nexfit_portal.settings.ci` and production entrypoints point to
`nexfit_portal.settings.prod`.
"""

from __future__ import annotations

import os

DEFAULT_SETTINGS_MODULE = "nexfit_portal.settings.dev"

# Do not override if the variable is already defined externally.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", DEFAULT_SETTINGS_MODULE)

__all__ = ["DEFAULT_SETTINGS_MODULE"]
