# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# errors.py
# -----------------------------------------------------------------------------
# Purpose:
#   Exception types raised by the engine.
#
# Design notes:
#   - ConfigError is raised once, when a run is initialized.
#   - SimulationStateError marks misuse of the engine (clock moved backward,
#     stepping while running, ...). It is never used for "queue empty" style
#     outcomes; those return None.
# -----------------------------------------------------------------------------

from __future__ import annotations


class ConfigError(ValueError):
    """Invalid simulation configuration."""


class SimulationStateError(RuntimeError):
    """An engine operation was invoked in a state where it cannot apply."""
