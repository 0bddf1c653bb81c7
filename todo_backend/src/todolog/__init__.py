"""
Todo backend with an append-only activity log.

The ASGI application lives in `src.todolog.main` (`app`, or `create_app()` to
build one around an existing store). Importing this package does not create
the application.
"""
