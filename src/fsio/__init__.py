"""Scoped filesystem access.

This module adapts fsspec filesystems to the path conventions used by
repository, lock, and datastore code, and adds atomic replace writes.
"""
