"""NadePro admin client.

Keeps an authenticated admin session against the NadePro backend and
controls editor sessions (private game servers) allocated by it.
"""

__version__ = "0.1.0"
