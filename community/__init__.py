"""Social wall and contact form."""

from .routes import community_bp

__all__ = ["community_bp"]
