"""External interfaces package."""

from .rpc_server import create_rpc_app, to_jsonable

__all__ = ["create_rpc_app", "to_jsonable"]
