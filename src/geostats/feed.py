"""Harvest match ids from a player's recent-games activity feed.

Each feed entry carries its activities as a JSON *string* in ``payload``:
either a single activity object or a list of them.  Every activity
holds ``payload.gameId`` and ``payload.gameMode``.
"""

import json
import logging
from typing import Any, Iterable

logger = logging.getLogger(__name__)

# Activities that are not duels and cannot be fetched from the duels endpoint
SKIPPED_GAME_MODES = frozenset({"LiveChallenge"})


def _activities(entry: dict[str, Any]) -> list[dict[str, Any]]:
    raw = entry.get("payload")
    if not isinstance(raw, str):
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Skipping feed entry with unparseable payload")
        return []
    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        return []
    return [a for a in parsed if isinstance(a, dict)]


def game_ids_from_feed(entries: Iterable[dict[str, Any]]) -> list[str]:
    """Return the unique duels game ids in ``entries``, in first-seen order."""
    game_ids: dict[str, None] = {}
    for entry in entries:
        for activity in _activities(entry):
            inner = activity.get("payload")
            if not isinstance(inner, dict):
                continue
            if inner.get("gameMode") in SKIPPED_GAME_MODES:
                continue
            game_id = inner.get("gameId")
            if isinstance(game_id, str) and game_id:
                game_ids.setdefault(game_id, None)
    return list(game_ids)


def load_feed(data: Any) -> list[dict[str, Any]]:
    """Return the entry list of a decoded feed document.

    Accepts either ``{"entries": [...]}`` or a bare list of entries.
    """
    if isinstance(data, dict):
        data = data.get("entries", [])
    if not isinstance(data, list):
        raise ValueError("Feed must be a list of entries or an object with 'entries'")
    return [e for e in data if isinstance(e, dict)]
