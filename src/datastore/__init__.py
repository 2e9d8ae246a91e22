"""Key-value datastore layer.

This module holds the store implementations composed into a repository
datastore tree and the engine that builds that tree from a spec.
"""
