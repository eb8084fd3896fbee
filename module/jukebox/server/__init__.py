# Server module
from .app import create_app, run_server
from .routes import STORE_KEY

__all__ = ["create_app", "run_server", "STORE_KEY"]
