"""Loyalty accrual service."""
