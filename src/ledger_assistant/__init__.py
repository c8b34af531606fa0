"""Client-side orchestration for the bookkeeping AI assistant."""

__version__ = "0.1.0"
