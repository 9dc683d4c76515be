"""lifecycle-agent: resilient tool-calling orchestration for the preview debugging agent."""

__version__ = "0.4.0"
