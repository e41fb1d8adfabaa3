"""FastAPI dependencies."""
from exam_api.dependencies.auth import get_current_user

__all__ = ["get_current_user"]
