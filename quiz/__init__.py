"""Weekly quiz feature package (sessions, submission, public prize check)."""

from .routes import quiz_bp

__all__ = ["quiz_bp"]
