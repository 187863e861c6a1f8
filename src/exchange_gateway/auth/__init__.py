"""
Exchange Gateway Authentication Module

One-time exchange tokens, signed-cookie browser sessions, and the identity
provider handshake interface.
"""
