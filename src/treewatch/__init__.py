"""treewatch: filesystem helpers and a recursive, throttled change stream."""

__version__ = "0.1.0"

# Public API
from treewatch.config import Config, LoggingConfig, WatchConfig, get_config, load_config, reset_config
from treewatch.logging import get_logger, set_level, setup_logging
from treewatch.pathutil import (
    basename,
    contains,
    dirname,
    extname,
    filename,
    is_absolute,
    normalize,
    resolve,
    resolve_child,
)
from treewatch.storage import (
    LocalStorage,
    StatPoller,
    StatType,
    Storage,
    Subscription,
    ensure_dir,
    file_id,
    is_directory,
    is_file,
    move,
)
from treewatch.watching import ChangeWatcher, SubscriptionRegistry, WatchSession, watch
from treewatch.config.watcher import ConfigWatcher

__all__ = [
    # Watching
    "watch",
    "ChangeWatcher",
    "WatchSession",
    "SubscriptionRegistry",
    # Storage
    "Storage",
    "Subscription",
    "StatType",
    "LocalStorage",
    "StatPoller",
    # Filesystem helpers
    "is_file",
    "is_directory",
    "file_id",
    "ensure_dir",
    "move",
    # Path helpers
    "resolve",
    "resolve_child",
    "basename",
    "dirname",
    "extname",
    "filename",
    "is_absolute",
    "normalize",
    "contains",
    # Config
    "Config",
    "WatchConfig",
    "LoggingConfig",
    "load_config",
    "get_config",
    "reset_config",
    "ConfigWatcher",
    # Logging
    "setup_logging",
    "set_level",
    "get_logger",
]
