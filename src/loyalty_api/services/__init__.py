"""Service layer for order intake, reconciliation inputs and member auth."""
