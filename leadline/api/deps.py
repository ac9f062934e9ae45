"""
FastAPI dependencies for the long-lived pipeline objects built at startup.
"""
from fastapi import Request

from leadline.agents.conductor import ConversationConductor


def get_conductor(request: Request) -> ConversationConductor:
    """The conductor created in the app lifespan."""
    return request.app.state.conductor
