# src/hcspec/errors.py
from __future__ import annotations
from enum import IntEnum


class Status(IntEnum):
    """Stage return codes (0 means success, as in the analyzer status words)."""
    OK = 0
    INIT_ERROR = -2
    DATA_ERROR = -1


class HcSpecError(RuntimeError):
    """Base class for spectrometer-stage failures."""
    status: Status = Status.DATA_ERROR


class InitError(HcSpecError):
    """
    Fatal setup failure: the run must not start.

    Raised when the hodoscope collaborator is missing, or the
    reconstruction coefficient file cannot be opened or is truncated.
    """
    status = Status.INIT_ERROR


class DataError(HcSpecError):
    """Per-event failure; only the current event's selection is aborted."""
    status = Status.DATA_ERROR


class SelectionError(DataError):
    """Golden-track pruning ended without a usable survivor."""
