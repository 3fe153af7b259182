"""Validation helpers for allocation payloads."""

from captive_ledger.validation.validators import (
    AllocationValidationError,
    PayloadIssue,
    assert_payloads_valid,
    validate_allocation_payloads,
)

__all__ = [
    "AllocationValidationError",
    "PayloadIssue",
    "assert_payloads_valid",
    "validate_allocation_payloads",
]
