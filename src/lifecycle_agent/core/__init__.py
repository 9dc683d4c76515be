"""Core engine: resilience, token budgeting, and the orchestration loop."""
