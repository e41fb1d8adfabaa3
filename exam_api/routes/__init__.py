"""API route modules."""
from exam_api.routes import attempts, exams, series

__all__ = ["attempts", "exams", "series"]
