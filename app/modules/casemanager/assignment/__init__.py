"""Assignment resolution."""

from .resolver import AssignmentResolver

__all__ = ["AssignmentResolver"]
