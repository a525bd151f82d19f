"""Engine facade over the ranking and subscription components."""

from src.engine.engine import ContentEngine, request_context


__all__ = ["ContentEngine", "request_context"]
