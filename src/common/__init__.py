"""
Common building blocks for the stars categorizer.

This package contains reusable, domain-agnostic code:

- configuration loading (environment variables)
- retry/backoff helpers
- logging configuration
"""
