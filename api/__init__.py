"""
API layer

Thin FastAPI routers over core.JamManager and core.UserManager.
"""
