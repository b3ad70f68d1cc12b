"""FastAPI dependency injection — prompt parser instance."""

from __future__ import annotations

from fastapi import Request

from promptcut.parser import PromptParser


def get_prompt_parser(request: Request) -> PromptParser:
    """Return the parser built for this application in its lifespan."""
    return request.app.state.prompt_parser
