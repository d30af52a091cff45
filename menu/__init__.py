"""Secret menu and public carte."""

from .routes import menu_bp

__all__ = ["menu_bp"]
