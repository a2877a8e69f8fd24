"""Shared constants, exceptions, audit trail and rate limiting."""
