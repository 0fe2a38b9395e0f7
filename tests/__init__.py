"""Test suite for the lazybind package.

This package contains unit and integration tests validating binding
tables, deferred resolution, failure wrapping, shared resolution across
tables, concurrency guarantees, policy configuration and the CLI.
"""
