"""Clone or pull gitmod's own distribution repository."""

import logging
from typing import Optional

from gitmod.config import Settings
from gitmod.git.cache import CacheEntry, CacheStore
from gitmod.git.runner import GitRunner
from gitmod.model.module import parse_module_id

logger = logging.getLogger(__name__)


def update_self(settings: Settings, runner: Optional[GitRunner] = None) -> CacheEntry:
    """
    Fetch the latest gitmod sources into the cache.

    The distribution is cached like any other module, under
    <cache_home>/<self_repo>; reinstall from there to upgrade.
    """
    module_id = parse_module_id(settings.self_repo)
    store = CacheStore.from_settings(settings, runner)
    with store.lock(module_id):
        entry = store.ensure(module_id)
    if entry.cloned:
        logger.info(f"Fetched gitmod sources into {entry.path}")
    elif entry.refreshed:
        logger.info(f"Updated gitmod sources in {entry.path}")
    return entry
