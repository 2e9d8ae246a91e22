"""Repository lifecycle layer.

This module holds repository init/open/close, the config document, the
version marker, and the keystore kept inside a repository directory.
"""
