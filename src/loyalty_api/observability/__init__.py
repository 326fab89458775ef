"""Tracing setup for the API process."""
