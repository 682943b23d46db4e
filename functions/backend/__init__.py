"""
Backend package for the RockMundo game server.

This package provides the FastAPI application, the worker that runs
scheduled game jobs, and the database and queue abstractions they share.
"""
