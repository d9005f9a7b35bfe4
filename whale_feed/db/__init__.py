"""Database layer."""

from .models import SCHEMA
from .repository import Repository

__all__ = ["SCHEMA", "Repository"]
