"""Data access layer committing assembled write-sets atomically.

Every table has an explicit conflict policy in ``TABLES``:

* **INSERT** -- plain insert; a conflict is an error.  Match-owned rows
  (games, rounds, guesses and their solo_* counterparts) use it: a
  conflict on ``games`` or ``solo_games`` means the game was already
  ingested.
* **UPDATE** -- ``INSERT ... ON CONFLICT DO UPDATE SET`` (not INSERT OR
  REPLACE) so mutable reference rows are refreshed in place.
* **IGNORE** -- ``INSERT ... ON CONFLICT DO NOTHING``; the first write wins.

The SQL for each table is generated once from the policy table at import.
Read methods return dicts (via sqlite3.Row) for easy consumption.
"""

import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from geostats.assembler import WriteSet
from geostats.exceptions import MatchAlreadyExists, StorageError
from geostats.models import RowModel

logger = logging.getLogger(__name__)


class UpsertPolicy(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    IGNORE = "ignore"


@dataclass(frozen=True)
class TableSpec:
    """Columns, primary key and conflict policy of one table."""

    name: str
    columns: tuple[str, ...]
    key: tuple[str, ...]
    policy: UpsertPolicy
    # Columns never overwritten by an UPDATE-policy conflict
    frozen: tuple[str, ...] = ()

    @property
    def update_columns(self) -> tuple[str, ...]:
        skip = set(self.key) | set(self.frozen)
        return tuple(c for c in self.columns if c not in skip)

    def build_sql(self) -> str:
        """Return the named-parameter INSERT statement for this table."""
        sql = (
            f"INSERT INTO {self.name} ({', '.join(self.columns)}) "
            f"VALUES ({', '.join(':' + c for c in self.columns)})"
        )
        conflict = f" ON CONFLICT({', '.join(self.key)})"
        if self.policy is UpsertPolicy.UPDATE:
            assignments = ", ".join(
                f"{c} = excluded.{c}" for c in self.update_columns
            )
            sql += f"{conflict} DO UPDATE SET {assignments}"
        elif self.policy is UpsertPolicy.IGNORE:
            sql += f"{conflict} DO NOTHING"
        return sql


# ---------------------------------------------------------------------------
# Policy table, in commit order: reference rows first, then match-owned rows
# ---------------------------------------------------------------------------

TABLES: tuple[TableSpec, ...] = (
    TableSpec(
        name="locations",
        columns=(
            "id", "lat", "lng", "heading", "pitch", "zoom",
            "country_code", "subdivision_code",
        ),
        key=("id",),
        policy=UpsertPolicy.IGNORE,
    ),
    TableSpec(
        name="players",
        columns=(
            "id", "name", "country_code", "avatar_pin", "level",
            "is_pro_user", "is_creator",
            "rating", "moving_rating", "no_move_rating", "nmpz_rating",
        ),
        key=("id",),
        policy=UpsertPolicy.UPDATE,
    ),
    TableSpec(
        name="comp_teams",
        columns=("team_id", "player_id1", "player_id2", "name", "rating"),
        key=("team_id",),
        policy=UpsertPolicy.UPDATE,
    ),
    TableSpec(
        name="fun_teams",
        columns=("team_id", "player_ids"),
        key=("team_id",),
        policy=UpsertPolicy.IGNORE,
    ),
    TableSpec(
        name="maps",
        columns=("id", "name", "lat1", "lng1", "lat2", "lng2", "max_distance"),
        key=("id",),
        policy=UpsertPolicy.UPDATE,
        frozen=("lat1", "lng1", "lat2", "lng2"),
    ),
    TableSpec(
        name="games",
        columns=(
            "id", "team_id1", "team_id2", "health_team1", "health_team2",
            "team_game_mode", "geo_mode", "start_time", "map_id",
            "rating_before_team1", "rating_before_team2",
        ),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
    TableSpec(
        name="rounds",
        columns=("id", "game_id", "location_id", "round_number", "damage_multiplier"),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
    TableSpec(
        name="guesses",
        columns=(
            "id", "game_id", "round_id", "team_id", "player_id",
            "lat", "lng", "score", "time", "distance",
            "country_code", "subdivision_code", "round_country_code",
            "is_teams_best",
        ),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
    TableSpec(
        name="solo_games",
        columns=("id", "player_id", "geo_mode", "start_time", "map_id", "total_score"),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
    TableSpec(
        name="solo_rounds",
        columns=("id", "game_id", "location_id", "round_number"),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
    TableSpec(
        name="solo_guesses",
        columns=(
            "id", "game_id", "round_id", "player_id",
            "lat", "lng", "score", "time", "distance",
            "country_code", "subdivision_code", "round_country_code",
        ),
        key=("id",),
        policy=UpsertPolicy.INSERT,
    ),
)

TABLES_BY_NAME: dict[str, TableSpec] = {spec.name: spec for spec in TABLES}

# Tables whose primary key identifies an ingested game
MATCH_TABLES = ("games", "solo_games")

_SQL: dict[str, str] = {spec.name: spec.build_sql() for spec in TABLES}


def _rows(spec: TableSpec, models: Iterable[RowModel]) -> list[dict]:
    rows = []
    for model in models:
        row = model.as_row()
        rows.append({column: row[column] for column in spec.columns})
    return rows


class IngestRepository:
    """Commits write-sets and reads back stored rows.

    ``commit`` wraps every table in one ``with self.conn:`` block: either
    the whole write-set lands or nothing does.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def commit(self, write_set: WriteSet) -> None:
        """Atomically store every row of ``write_set``.

        Raises:
            MatchAlreadyExists: If a match in the write-set is already stored.
            StorageError: On any other database error.
        """
        try:
            with self.conn:
                for spec in TABLES:
                    rows = _rows(spec, getattr(write_set, spec.name))
                    if not rows:
                        continue
                    if spec.name in MATCH_TABLES:
                        self._insert_matches(spec.name, rows)
                    else:
                        self.conn.executemany(_SQL[spec.name], rows)
        except sqlite3.Error as exc:
            raise StorageError(f"Commit failed, rolled back: {exc}") from exc

        logger.debug(
            "Committed %d games (%d rows total)",
            len(write_set.game_ids), len(write_set),
        )

    def _insert_matches(self, table: str, rows: list[dict]) -> None:
        for row in rows:
            try:
                self.conn.execute(_SQL[table], row)
            except sqlite3.IntegrityError as exc:
                raise MatchAlreadyExists(
                    f"Match {row['id']} already exists", game_id=row["id"]
                ) from exc

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def game_exists(self, game_id: str, table: str = "games") -> bool:
        return bool(self.existing_game_ids([game_id], table))

    def existing_game_ids(
        self, game_ids: Iterable[str], table: str = "games"
    ) -> set[str]:
        """Return the subset of ``game_ids`` already stored in ``table``."""
        if table not in MATCH_TABLES:
            raise ValueError(f"{table!r} does not hold games")
        ids = list(game_ids)
        found: set[str] = set()
        # Stay well below SQLITE_MAX_VARIABLE_NUMBER
        for start in range(0, len(ids), 500):
            chunk = ids[start:start + 500]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self.conn.execute(
                f"SELECT id FROM {table} WHERE id IN ({placeholders})", chunk
            ).fetchall()
            found.update(r["id"] for r in rows)
        return found

    def get_game(self, game_id: str) -> dict | None:
        return self._get_one("games", "id", game_id)

    def get_rounds(self, game_id: str) -> list[dict]:
        """Return all rounds of a match, ordered by round_number."""
        rows = self.conn.execute(
            "SELECT * FROM rounds WHERE game_id = ? ORDER BY round_number",
            (game_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_guesses(self, game_id: str) -> list[dict]:
        """Return all guesses of a match, ordered by round then team."""
        rows = self.conn.execute(
            "SELECT g.* FROM guesses g "
            "JOIN rounds r ON r.id = g.round_id "
            "WHERE g.game_id = ? "
            "ORDER BY r.round_number, g.team_id, g.player_id",
            (game_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_solo_game(self, game_id: str) -> dict | None:
        return self._get_one("solo_games", "id", game_id)

    def get_solo_guesses(self, game_id: str) -> list[dict]:
        """Return the guesses of a single-player game in round order."""
        rows = self.conn.execute(
            "SELECT g.* FROM solo_guesses g "
            "JOIN solo_rounds r ON r.id = g.round_id "
            "WHERE g.game_id = ? ORDER BY r.round_number",
            (game_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_location(self, location_id: str) -> dict | None:
        return self._get_one("locations", "id", location_id)

    def get_player(self, player_id: str) -> dict | None:
        return self._get_one("players", "id", player_id)

    def get_comp_team(self, team_id: str) -> dict | None:
        return self._get_one("comp_teams", "team_id", team_id)

    def get_fun_team(self, team_id: str) -> dict | None:
        return self._get_one("fun_teams", "team_id", team_id)

    def get_map(self, map_id: str) -> dict | None:
        return self._get_one("maps", "id", map_id)

    def count_rows(self, table: str) -> int:
        """Return the number of rows in one of the ``TABLES``."""
        if table not in TABLES_BY_NAME:
            raise ValueError(f"Unknown table {table!r}")
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def _get_one(self, table: str, column: str, value: str) -> dict | None:
        row = self.conn.execute(
            f"SELECT * FROM {table} WHERE {column} = ?", (value,)
        ).fetchone()
        return dict(row) if row is not None else None
