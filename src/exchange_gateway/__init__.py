"""
Exchange Gateway

Bridges browser OAuth / federated sign-in flows with a stateless API backend.
The gateway runs the provider handshake on the browser's behalf and hands the
API application a short-lived, single-use exchange token.
"""

__version__ = "0.1.0"
