"""Command-line interface for budgetbook."""
