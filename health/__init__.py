"""Weekly health report for the store and the promo content."""

from .routes import health_bp
from .service import run_health_check

__all__ = ["health_bp", "run_health_check"]
