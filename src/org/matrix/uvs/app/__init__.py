"""
UVS Application Layer

This package implements the web application layer for the UVS service, handling HTTP requests
and responses using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration and middleware setup
- config.py: Configuration management using Pydantic settings
- metrics.py: Metrics client abstraction (Telegraf/StatsD or no-op)
- handlers/: Request handlers for the health and verification endpoints

The application uses two middleware layers:
- Statsd middleware for metrics collection
- Sentry middleware for error reporting

It provides the following endpoints:
- GET /health
- POST /verify/user
- POST /verify/user/in-room
"""
