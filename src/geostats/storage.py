"""Filesystem archive for raw match payloads.

Saves and loads gzip-compressed JSON documents exactly as the game
server returned them::

    base_dir/
      games/
        {game_id}.json.gz
"""

import gzip
import json
from pathlib import Path
from typing import Any


class PayloadStorage:
    """Gzipped JSON save/load/exists filesystem layer.

    Usage::

        storage = PayloadStorage("data/raw")
        path = storage.save("5f3c...", payload)
        payload = storage.load("5f3c...")
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def save(self, game_id: str, payload: dict[str, Any]) -> Path:
        """Write ``payload`` to disk and return the file path."""
        file_path = self._build_path(game_id)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(gzip.compress(json.dumps(payload).encode("utf-8")))
        return file_path

    def load(self, game_id: str) -> dict[str, Any]:
        """Load a saved payload.

        Raises:
            FileNotFoundError: If no payload was saved for ``game_id``.
        """
        file_path = self._build_path(game_id)
        if not file_path.exists():
            raise FileNotFoundError(
                f"No saved payload for game {game_id}: {file_path}"
            )
        return json.loads(gzip.decompress(file_path.read_bytes()).decode("utf-8"))

    def exists(self, game_id: str) -> bool:
        return self._build_path(game_id).exists()

    def _build_path(self, game_id: str) -> Path:
        if not game_id or "/" in game_id or game_id in (".", ".."):
            raise ValueError(f"Invalid game id {game_id!r}")
        return self.base_dir / "games" / f"{game_id}.json.gz"
