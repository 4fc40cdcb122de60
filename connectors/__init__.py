"""
connectors — Google Calendar integration.

Handles:
  • OAuth2 consent URL + callback (code → token exchange)
  • Per-user token storage with lazy refresh
  • Fernet encryption of tokens at rest
  • events.list for a single day
  • Unlink / best-effort revocation
"""
