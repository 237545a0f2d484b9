"""Argument validation package."""

from cashledger.validation.validator import RecordValidator

__all__ = ["RecordValidator"]
