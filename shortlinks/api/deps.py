"""FastAPI dependencies — the core objects built in the app lifespan."""

from fastapi import Request

from shortlinks.core.allocator import CodeAllocator
from shortlinks.core.links import LinkStore
from shortlinks.core.resolver import RedirectResolver


def get_link_store(request: Request) -> LinkStore:
    return request.app.state.links


def get_allocator(request: Request) -> CodeAllocator:
    return request.app.state.allocator


def get_resolver(request: Request) -> RedirectResolver:
    return request.app.state.resolver
