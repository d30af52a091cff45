"""Admin back-office package (prize scanning, stats, content editing)."""

from .routes import admin_bp
from .service import ADMIN_ACTIONS, security_token

__all__ = ["ADMIN_ACTIONS", "admin_bp", "security_token"]
