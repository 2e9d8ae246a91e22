"""Advisory cross-process repository lock.

This module holds the lock-file protocol and the process liveness probe
used to recover locks left behind by crashed owners.
"""
