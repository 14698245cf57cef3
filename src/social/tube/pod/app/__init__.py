"""
Pod Application Layer

This package implements the HTTP surface of the pod using the aiohttp framework.

Key Components:
- server.py: Web server configuration, middleware and startup/shutdown
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers, one module per resource, plus the authorization guard
- tasks.py: Background tasks for health decay and expired token purging
- metrics.py: Metrics client abstraction
- health.py: Failure gauge backing the readiness check
- cli.py: Entry point for running the application
- util/: Administrative command line utilities

The application uses two middleware layers:
- Statsd middleware for request metrics
- Error middleware mapping access failures to responses and reporting the rest to Sentry

It provides the following main endpoints:
- Token endpoints (/api/v1/users/token, /api/v1/users/revoke-token)
- Users, videos and pods (/api/v1/users, /api/v1/videos, /api/v1/pods)
- OAuth client administration (/api/v1/oauth-clients)
- Health checks (/internal/alive, /internal/ready)
"""
