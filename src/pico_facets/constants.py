"""Constants used throughout pico-facets.

This module defines the package logger and the attribute names stamped onto
decorated classes, generated context implementations and their instances.
"""

import logging

LOGGER_NAME: str = "pico_facets"
"""Default logger name for the pico-facets package."""

LOGGER: logging.Logger = logging.getLogger(LOGGER_NAME)
"""Package logger for resolution diagnostics."""

FACETS_META: str = "_facets_declarations"
"""Attribute name storing the declarations attached by ``@facets``."""

IMPL_MARKER: str = "_facets_implementation_of"
"""Attribute name marking a generated context implementation class."""

STATE_ATTR: str = "_facets_state"
"""Attribute name holding the per-instance slot state of a context."""
