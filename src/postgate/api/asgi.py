"""ASGI entrypoint for the postgate app."""

from postgate.api.app import create_app
from postgate.containers import build_container

app = create_app(build_container())
