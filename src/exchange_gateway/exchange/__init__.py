"""
Session-to-Token Exchange

Per-provider start/callback pipelines that turn a completed identity provider
handshake into a one-time exchange token.
"""
