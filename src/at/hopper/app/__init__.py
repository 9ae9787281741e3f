"""
Hopper Application Layer

This package implements the web application layer for the Hopper service using the
aiohttp framework. It exposes the AT-URI resolver as a redirect endpoint and provides
the probes and plumbing a deployed service needs.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration, cache construction and middleware setup
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers for the redirect and internal endpoints
- tasks.py: Background health monitoring

The application uses two middleware layers:
- Statsd middleware for request metrics
- Sentry middleware for error reporting

It provides the following endpoints:
- / : resolves the ``aturi`` query parameter and redirects to the destination
- /internal/alive and /internal/ready: liveness and readiness probes
- /internal/api/resolve: JSON report of resolution outcomes
"""
