"""FastAPI dependencies resolving the services built in the app lifespan."""
from fastapi import Request

from datadeck.services.presentation.generator import PresentationGenerator
from datadeck.services.presentation.store import SessionStore
from datadeck.services.presentation.tweaker import PresentationTweaker


def get_generator(request: Request) -> PresentationGenerator:
    return request.app.state.generator


def get_tweaker(request: Request) -> PresentationTweaker:
    return request.app.state.tweaker


def get_store(request: Request) -> SessionStore:
    return request.app.state.store
