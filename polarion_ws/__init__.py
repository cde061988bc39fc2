"""
Polarion WS - Typed client for the Polarion SOAP web services.

Layers:
- core: SOAP envelope codec, HTTP transport, login and raw types
- sdk: High-level Polarion client with one method per remote operation
- cli: Command-line interface printing JSON
"""

from polarion_ws.sdk import Polarion

__version__ = "0.1.0"
__all__ = ["Polarion"]
