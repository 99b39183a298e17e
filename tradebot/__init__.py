"""Top-level package for the tradebot signal-subscription service.

Subpackages follow the request path: :mod:`tradebot.interfaces` receives RPC
calls, :mod:`tradebot.api` validates them, and storage, traders and data_feed
provide the collaborators the handlers delegate to.
"""

__all__: list[str] = []
