"""ASGI entrypoint: ``uvicorn crafting_api.main:app``."""

from crafting_api.core.app_factory import create_app

app = create_app()
