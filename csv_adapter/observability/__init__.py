"""Logging and request-context helpers.

structlog JSON logs for the whole process, plus request IDs bound into
contextvars for the HTTP access log.
"""
