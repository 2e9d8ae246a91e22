"""Core constants used across Cairn modules.

This module centralizes repository layout names and engine limits.
Keeping values here avoids magic literals in lifecycle and store logic.
"""

from __future__ import annotations

from pathlib import Path

REPO_VERSION = 11
DEFAULT_REPO_DIR = Path("~/.cairn")
LEGACY_REPO_DIR_NAME = ".cairn-v0"
REPO_DIR_NAME = ".cairn"
DEFAULT_FS_PROTOCOL = "file"
CONFIG_FILE_NAME = "config"
SPEC_FILE_NAME = "datastore_spec"
VERSION_FILE_NAME = "version"
LOCK_FILE_NAME = "repo.lock"
API_FILE_NAME = "api"
SWARM_KEY_FILE_NAME = "swarm.key"
KEYSTORE_DIR_NAME = "keystore"
WRITABLE_CHECK_FILE_NAME = "._check_writable"
CONFIG_BACKUP_PREFIX = "config-"
OBJECT_KEY_SUFFIX = ".dsobject"
KEYSTORE_FILE_PREFIX = "key_"
MAX_SPEC_DEPTH = 32
REPO_DATASTORE_METRICS_PREFIX = "cairn.repo.datastore"
PRIVATE_KEY_SELECTOR = "Identity.PrivKey"
DEFAULT_STORAGE_MAX = "10GB"
DEFAULT_STORAGE_GC_WATERMARK = 90
DEFAULT_GC_PERIOD = "1h"
DEFAULT_BLOOM_FILTER_SIZE = 0
BLOCKS_MOUNTPOINT = "/blocks"
BLOCKS_LEAF_PATH = "blocks"
BLOCKS_METRICS_PREFIX = "leaf.blocks"
ROOT_MOUNTPOINT = "/"
ROOT_LEAF_PATH = "datastore"
ROOT_METRICS_PREFIX = "leaf.datastore"
