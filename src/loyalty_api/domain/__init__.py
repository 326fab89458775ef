"""Pure domain types for the loyalty accrual service."""
