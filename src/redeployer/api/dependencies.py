"""FastAPI dependencies."""

from fastapi import Request

from redeployer.context import AppContext


def get_context(request: Request) -> AppContext:
    """Application context built at startup (or injected by tests)."""
    return request.app.state.context
