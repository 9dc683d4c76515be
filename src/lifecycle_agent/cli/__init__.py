"""Command-line interface for inspecting agent configuration, token budgets, and error handling."""
