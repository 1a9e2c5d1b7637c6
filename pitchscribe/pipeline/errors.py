"""Exceptions raised by the pitchscribe pipeline.

Only contract violations surface as errors. Silence, gating and debounce are
normal results and never raise.
"""
from __future__ import annotations


class PitchscribeError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(PitchscribeError, ValueError):
    """A sample window that does not match the estimator contract."""


class InvalidConfig(PitchscribeError, ValueError):
    """A configuration value with no defined meaning."""


class CaptureError(PitchscribeError, RuntimeError):
    """The audio capture collaborator could not deliver samples."""
