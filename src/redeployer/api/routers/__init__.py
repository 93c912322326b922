from . import health, live, services

__all__ = ["health", "live", "services"]
