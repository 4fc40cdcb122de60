"""
auth — identity of the application's end user.

Provides:
  • signed identity token creation & verification
  • ``get_current_user_id`` / ``get_optional_id_token`` FastAPI dependencies
"""
