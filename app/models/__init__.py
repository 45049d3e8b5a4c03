"""Database models for Atlantic Pool."""

from app.models.base import Base
from app.models.domain import JobRun, Prediction, Standing, User

__all__ = [
    # Base
    "Base",
    # Domain models
    "Standing",
    "User",
    "Prediction",
    "JobRun",
]
