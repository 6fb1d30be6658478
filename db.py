import sqlite3
import aiosqlite
import datetime
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from algorithms.local_date import date_key, parse_date_key, parse_timestamp
from errors import DuplicateEntryError, NotFoundError, StoreWriteError
from models import (
    CATEGORIES,
    EQUIPMENT_KINDS,
    BodyweightLog,
    DietLog,
    Exercise,
    SessionExerciseRecord,
    SessionSets,
    SessionSummary,
    TemplateItem,
    UserProfile,
    WorkoutSession,
    WorkoutSet,
    WorkoutTemplate,
)

logger = logging.getLogger(__name__)

# Marks an argument the caller left out, as opposed to an explicit None.
UNSET = object()


def _ts(value: Optional[str]) -> Optional[datetime.datetime]:
    return parse_timestamp(value) if value else None


def _integrity_error(e: sqlite3.IntegrityError) -> Exception:
    """Translate a constraint failure into the matching domain error."""
    message = str(e)
    if message.startswith("UNIQUE constraint failed"):
        return DuplicateEntryError(message)
    if message.startswith("FOREIGN KEY constraint failed"):
        return NotFoundError("referenced row not found")
    return ValueError(message)


def _iso(value: datetime.datetime) -> str:
    """Serialize a timestamp as UTC so stored values sort chronologically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat()


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT NOT NULL,
                    equipment TEXT NOT NULL,
                    demo_url TEXT,
                    form_cues TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1
                );""",
            ["id", "name", "category", "equipment", "demo_url", "form_cues", "is_active"],
        ),
        "workout_templates": (
            """CREATE TABLE workout_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    cycle_order INTEGER NOT NULL,
                    description TEXT
                );""",
            ["id", "name", "cycle_order", "description"],
        ),
        "workout_template_items": (
            """CREATE TABLE workout_template_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    sort_order INTEGER NOT NULL,
                    sets INTEGER NOT NULL,
                    rep_min INTEGER NOT NULL,
                    rep_max INTEGER NOT NULL,
                    rest_seconds INTEGER NOT NULL DEFAULT 90,
                    start_weight REAL,
                    increment REAL NOT NULL DEFAULT 5,
                    notes TEXT,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "template_id",
                "exercise_id",
                "sort_order",
                "sets",
                "rep_min",
                "rep_max",
                "rest_seconds",
                "start_weight",
                "increment",
                "notes",
            ],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    template_id INTEGER NOT NULL,
                    started_at TEXT NOT NULL,
                    ended_at TEXT,
                    workout_day TEXT NOT NULL,
                    bodyweight REAL,
                    notes TEXT,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id)
                );""",
            [
                "id",
                "user_id",
                "template_id",
                "started_at",
                "ended_at",
                "workout_day",
                "bodyweight",
                "notes",
            ],
        ),
        "workout_session_exercises": (
            """CREATE TABLE workout_session_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    session_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    template_item_id INTEGER NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(template_item_id) REFERENCES workout_template_items(id)
                );""",
            [
                "id",
                "user_id",
                "session_id",
                "exercise_id",
                "template_item_id",
                "is_completed",
                "completed_at",
            ],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    rir INTEGER,
                    is_warmup INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "session_id",
                "exercise_id",
                "set_number",
                "weight",
                "reps",
                "rir",
                "is_warmup",
                "created_at",
            ],
        ),
        "bodyweight_logs": (
            """CREATE TABLE bodyweight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    logged_on TEXT NOT NULL,
                    weight REAL NOT NULL,
                    waist REAL,
                    notes TEXT,
                    UNIQUE(user_id, logged_on)
                );""",
            ["id", "user_id", "logged_on", "weight", "waist", "notes"],
        ),
        "diet_logs": (
            """CREATE TABLE diet_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    logged_on TEXT NOT NULL,
                    protein_g REAL NOT NULL,
                    calories REAL,
                    steps INTEGER,
                    notes TEXT,
                    UNIQUE(user_id, logged_on)
                );""",
            ["id", "user_id", "logged_on", "protein_g", "calories", "steps", "notes"],
        ),
        "user_profile": (
            """CREATE TABLE user_profile (
                    user_id TEXT PRIMARY KEY,
                    starting_weight REAL NOT NULL,
                    starting_date TEXT NOT NULL,
                    goal_weight REAL,
                    updated_at TEXT NOT NULL
                );""",
            ["user_id", "starting_weight", "starting_date", "goal_weight", "updated_at"],
        ),
    }

    _INDEX_DEFINITIONS = [
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_user_day "
        "ON workout_sessions (user_id, workout_day);",
        "CREATE INDEX IF NOT EXISTS idx_sessions_user_started "
        "ON workout_sessions (user_id, started_at);",
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sets_session_exercise_number "
        "ON workout_sets (session_id, exercise_id, set_number);",
    ]

    def __init__(self, db_path: str = "tracker.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._ensure_indexes()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_indexes(self) -> None:
        with self._connection() as conn:
            for sql in self._INDEX_DEFINITIONS:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous repository base using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        try:
            async with self._async_connection() as conn:
                cursor = await conn.execute(query, params)
                await conn.commit()
                return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e) from e
        except sqlite3.Error as e:
            logger.error("Write failed: %s", e)
            raise StoreWriteError(str(e)) from e

    async def execute_many(self, query: str, rows: Iterable[Tuple]) -> None:
        try:
            async with self._async_connection() as conn:
                await conn.executemany(query, list(rows))
                await conn.commit()
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e) from e
        except sqlite3.Error as e:
            logger.error("Batch write failed: %s", e)
            raise StoreWriteError(str(e)) from e

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async repository for exercise reference data."""

    async def add(
        self,
        name: str,
        category: str,
        equipment: str,
        demo_url: Optional[str] = None,
        form_cues: Optional[str] = None,
    ) -> int:
        if category not in CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(CATEGORIES)}")
        if equipment not in EQUIPMENT_KINDS:
            raise ValueError(f"equipment must be one of {', '.join(EQUIPMENT_KINDS)}")
        return await self.execute(
            "INSERT INTO exercises (name, category, equipment, demo_url, form_cues) VALUES (?, ?, ?, ?, ?);",
            (name, category, equipment, demo_url, form_cues),
        )

    async def fetch_all_exercises(self, active_only: bool = True) -> list[Exercise]:
        query = "SELECT id, name, category, equipment, demo_url, form_cues, is_active FROM exercises"
        if active_only:
            query += " WHERE is_active = 1"
        rows = await self.fetch_all(query + " ORDER BY name;")
        return [self._row(r) for r in rows]

    async def fetch_detail(self, exercise_id: int) -> Exercise:
        rows = await self.fetch_all(
            "SELECT id, name, category, equipment, demo_url, form_cues, is_active FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise NotFoundError("exercise not found")
        return self._row(rows[0])

    @staticmethod
    def _row(r: Tuple) -> Exercise:
        return Exercise(int(r[0]), r[1], r[2], r[3], r[4], r[5], bool(r[6]))


class AsyncTemplateRepository(AsyncBaseRepository):
    """Async repository for the alternating workout templates."""

    async def create(
        self, name: str, cycle_order: int, description: Optional[str] = None
    ) -> int:
        if cycle_order not in (1, 2):
            raise ValueError("cycle_order must be 1 or 2")
        return await self.execute(
            "INSERT INTO workout_templates (name, cycle_order, description) VALUES (?, ?, ?);",
            (name, cycle_order, description),
        )

    async def list_templates(self) -> list[WorkoutTemplate]:
        rows = await self.fetch_all(
            "SELECT id, name, cycle_order, description FROM workout_templates ORDER BY cycle_order, id;"
        )
        return [WorkoutTemplate(int(r[0]), r[1], int(r[2]), r[3]) for r in rows]

    async def fetch_detail(self, template_id: int) -> WorkoutTemplate:
        rows = await self.fetch_all(
            "SELECT id, name, cycle_order, description FROM workout_templates WHERE id = ?;",
            (template_id,),
        )
        if not rows:
            raise NotFoundError("template not found")
        r = rows[0]
        return WorkoutTemplate(int(r[0]), r[1], int(r[2]), r[3])


class AsyncTemplateItemRepository(AsyncBaseRepository):
    """Async repository for template items joined with their exercise."""

    _SELECT = (
        "SELECT i.id, i.template_id, i.sort_order, i.sets, i.rep_min, i.rep_max, "
        "i.rest_seconds, i.start_weight, i.increment, i.notes, "
        "e.id, e.name, e.category, e.equipment, e.demo_url, e.form_cues, e.is_active "
        "FROM workout_template_items i JOIN exercises e ON e.id = i.exercise_id"
    )

    async def add(
        self,
        template_id: int,
        exercise_id: int,
        sort_order: int,
        sets: int,
        rep_min: int,
        rep_max: int,
        rest_seconds: int = 90,
        start_weight: Optional[float] = None,
        increment: float = 5.0,
        notes: Optional[str] = None,
    ) -> int:
        if sets <= 0:
            raise ValueError("sets must be positive")
        if rep_min < 0 or rep_min > rep_max:
            raise ValueError("rep_min must be between 0 and rep_max")
        if increment < 0:
            raise ValueError("increment must be non-negative")
        if start_weight is not None and start_weight < 0:
            raise ValueError("start_weight must be non-negative")
        return await self.execute(
            "INSERT INTO workout_template_items (template_id, exercise_id, sort_order, sets, rep_min, rep_max, rest_seconds, start_weight, increment, notes) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                template_id,
                exercise_id,
                sort_order,
                sets,
                rep_min,
                rep_max,
                rest_seconds,
                start_weight,
                increment,
                notes,
            ),
        )

    async def fetch_items(self, template_id: int) -> list[TemplateItem]:
        rows = await self.fetch_all(
            self._SELECT + " WHERE i.template_id = ? ORDER BY i.sort_order, i.id;",
            (template_id,),
        )
        return [self._row(r) for r in rows]

    async def fetch_detail(self, item_id: int) -> TemplateItem:
        rows = await self.fetch_all(self._SELECT + " WHERE i.id = ?;", (item_id,))
        if not rows:
            raise NotFoundError("template item not found")
        return self._row(rows[0])

    @staticmethod
    def _row(r: Tuple) -> TemplateItem:
        exercise = Exercise(int(r[10]), r[11], r[12], r[13], r[14], r[15], bool(r[16]))
        return TemplateItem(
            id=int(r[0]),
            template_id=int(r[1]),
            exercise=exercise,
            sort_order=int(r[2]),
            sets=int(r[3]),
            rep_min=int(r[4]),
            rep_max=int(r[5]),
            rest_seconds=int(r[6]),
            start_weight=float(r[7]) if r[7] is not None else None,
            increment=float(r[8]),
            notes=r[9],
        )


class AsyncSessionRepository(AsyncBaseRepository):
    """Async repository for workout sessions."""

    _COLUMNS = "s.id, s.user_id, s.template_id, s.started_at, s.ended_at, s.workout_day, s.bodyweight, s.notes"

    async def create_with_exercises(
        self,
        user_id: str,
        template_id: int,
        workout_day: datetime.date,
        started_at: datetime.datetime,
        items: Iterable[TemplateItem],
        bodyweight: Optional[float] = None,
    ) -> int:
        """Insert a session and one exercise record per template item.

        Both writes share one transaction so a session is never visible
        without its exercise records.
        """
        try:
            async with self._async_connection() as conn:
                cursor = await conn.execute(
                    "INSERT INTO workout_sessions (user_id, template_id, started_at, workout_day, bodyweight) VALUES (?, ?, ?, ?, ?);",
                    (user_id, template_id, _iso(started_at), date_key(workout_day), bodyweight),
                )
                session_id = cursor.lastrowid
                await conn.executemany(
                    "INSERT INTO workout_session_exercises (user_id, session_id, exercise_id, template_item_id, is_completed) VALUES (?, ?, ?, ?, 0);",
                    [(user_id, session_id, item.exercise.id, item.id) for item in items],
                )
                await conn.commit()
                return session_id
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e) from e
        except sqlite3.Error as e:
            logger.error("Session creation failed: %s", e)
            raise StoreWriteError(str(e)) from e

    async def fetch_detail(self, session_id: int) -> WorkoutSession:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sessions s WHERE s.id = ?;",
            (session_id,),
        )
        if not rows:
            raise NotFoundError("session not found")
        return self._row(rows[0])

    async def fetch_for_day(
        self, user_id: str, workout_day: datetime.date
    ) -> Optional[WorkoutSession]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sessions s WHERE s.user_id = ? AND s.workout_day = ?;",
            (user_id, date_key(workout_day)),
        )
        return self._row(rows[0]) if rows else None

    async def fetch_recent(self, user_id: str, limit: int = 10) -> list[SessionSummary]:
        """Return recent sessions with their template cycle, newest first."""
        rows = await self.fetch_all(
            "SELECT s.id, s.started_at, s.ended_at, t.cycle_order FROM workout_sessions s "
            "LEFT JOIN workout_templates t ON t.id = s.template_id "
            "WHERE s.user_id = ? ORDER BY s.started_at DESC, s.id DESC LIMIT ?;",
            (user_id, limit),
        )
        return [
            SessionSummary(
                int(r[0]),
                parse_timestamp(r[1]),
                _ts(r[2]),
                int(r[3]) if r[3] is not None else None,
            )
            for r in rows
        ]

    async def fetch_start_times(
        self,
        user_id: str,
        limit: int = 60,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
    ) -> list[datetime.datetime]:
        query = "SELECT started_at FROM workout_sessions WHERE user_id = ?"
        params: list[str | int] = [user_id]
        if start_day:
            query += " AND workout_day >= ?"
            params.append(date_key(start_day))
        if end_day:
            query += " AND workout_day <= ?"
            params.append(date_key(end_day))
        query += " ORDER BY started_at DESC LIMIT ?;"
        params.append(limit)
        rows = await self.fetch_all(query, tuple(params))
        return [parse_timestamp(r[0]) for r in rows]

    async def fetch_days(
        self,
        user_id: str,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
    ) -> list[datetime.date]:
        query = "SELECT workout_day FROM workout_sessions WHERE user_id = ?"
        params: list[str] = [user_id]
        if start_day:
            query += " AND workout_day >= ?"
            params.append(date_key(start_day))
        if end_day:
            query += " AND workout_day <= ?"
            params.append(date_key(end_day))
        rows = await self.fetch_all(query + " ORDER BY workout_day;", tuple(params))
        return [parse_date_key(r[0]) for r in rows]

    async def close(self, session_id: int, ended_at: datetime.datetime) -> None:
        """Set ``ended_at`` on an open session; closed sessions are left alone."""
        await self.execute(
            "UPDATE workout_sessions SET ended_at = ? WHERE id = ? AND ended_at IS NULL;",
            (_iso(ended_at), session_id),
        )

    @staticmethod
    def _row(r: Tuple) -> WorkoutSession:
        return WorkoutSession(
            id=int(r[0]),
            user_id=r[1],
            template_id=int(r[2]),
            started_at=parse_timestamp(r[3]),
            ended_at=_ts(r[4]),
            workout_day=parse_date_key(r[5]),
            bodyweight=float(r[6]) if r[6] is not None else None,
            notes=r[7],
        )


class AsyncSessionExerciseRepository(AsyncBaseRepository):
    """Async repository for per-session exercise completion records."""

    _COLUMNS = "id, session_id, exercise_id, template_item_id, is_completed, completed_at"

    async def fetch_for_session(self, session_id: int) -> list[SessionExerciseRecord]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_session_exercises WHERE session_id = ? ORDER BY id;",
            (session_id,),
        )
        return [self._row(r) for r in rows]

    async def fetch_detail(self, record_id: int) -> SessionExerciseRecord:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_session_exercises WHERE id = ?;",
            (record_id,),
        )
        if not rows:
            raise NotFoundError("session exercise not found")
        return self._row(rows[0])

    async def set_completion(
        self, record_id: int, completed: bool, timestamp: datetime.datetime
    ) -> None:
        await self.execute(
            "UPDATE workout_session_exercises SET is_completed = ?, completed_at = ? WHERE id = ?;",
            (int(completed), _iso(timestamp) if completed else None, record_id),
        )

    @staticmethod
    def _row(r: Tuple) -> SessionExerciseRecord:
        return SessionExerciseRecord(
            id=int(r[0]),
            session_id=int(r[1]),
            exercise_id=int(r[2]),
            template_item_id=int(r[3]),
            is_completed=bool(r[4]),
            completed_at=_ts(r[5]),
        )


class AsyncSetRepository(AsyncBaseRepository):
    """Async repository for logged sets."""

    _COLUMNS = "id, session_id, exercise_id, set_number, weight, reps, rir, is_warmup"

    @staticmethod
    def _validate(weight: float, reps: int, rir: Optional[int]) -> None:
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        if rir is not None and not 0 <= rir <= 10:
            raise ValueError("rir must be between 0 and 10")

    async def add(
        self,
        session_id: int,
        exercise_id: int,
        weight: float,
        reps: int,
        rir: Optional[int] = None,
        is_warmup: bool = False,
        created_at: Optional[datetime.datetime] = None,
    ) -> int:
        self._validate(weight, reps, rir)
        created = created_at or datetime.datetime.now(datetime.timezone.utc)
        # set_number is assigned by the INSERT itself
        return await self.execute(
            "INSERT INTO workout_sets (session_id, exercise_id, set_number, weight, reps, rir, is_warmup, created_at) "
            "SELECT ?, ?, COALESCE(MAX(set_number), 0) + 1, ?, ?, ?, ?, ? "
            "FROM workout_sets WHERE session_id = ? AND exercise_id = ?;",
            (
                session_id,
                exercise_id,
                weight,
                reps,
                rir,
                int(is_warmup),
                _iso(created),
                session_id,
                exercise_id,
            ),
        )

    async def update(
        self,
        set_id: int,
        weight: Optional[float] = None,
        reps: Optional[int] = None,
        rir=UNSET,
        is_warmup: Optional[bool] = None,
    ) -> None:
        """Correct a set in place.

        ``None`` keeps the stored weight, reps or warm-up flag. ``rir`` is
        kept only when omitted; an explicit ``None`` clears it.
        """
        current = await self.fetch_detail(set_id)
        new_weight = current.weight if weight is None else weight
        new_reps = current.reps if reps is None else reps
        new_rir = current.rir if rir is UNSET else rir
        new_warmup = current.is_warmup if is_warmup is None else is_warmup
        self._validate(new_weight, new_reps, new_rir)
        await self.execute(
            "UPDATE workout_sets SET weight = ?, reps = ?, rir = ?, is_warmup = ? WHERE id = ?;",
            (new_weight, new_reps, new_rir, int(new_warmup), set_id),
        )

    async def fetch_detail(self, set_id: int) -> WorkoutSet:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sets WHERE id = ?;",
            (set_id,),
        )
        if not rows:
            raise NotFoundError("set not found")
        return self._row(rows[0])

    async def fetch_for_exercise(
        self, session_id: int, exercise_id: int, include_warmups: bool = True
    ) -> list[WorkoutSet]:
        query = f"SELECT {self._COLUMNS} FROM workout_sets WHERE session_id = ? AND exercise_id = ?"
        if not include_warmups:
            query += " AND is_warmup = 0"
        rows = await self.fetch_all(query + " ORDER BY set_number;", (session_id, exercise_id))
        return [self._row(r) for r in rows]

    async def fetch_working_history(
        self,
        user_id: str,
        exercise_id: int,
        limit: int = 3,
        exclude_session_id: Optional[int] = None,
    ) -> list[SessionSets]:
        """Return working sets from the user's last finished sessions with this exercise.

        A session qualifies when it scheduled the exercise or logged a set
        for it, so a session where nothing was logged yields an empty entry.
        """
        query = (
            "SELECT s.id, s.started_at FROM workout_sessions s "
            "WHERE s.user_id = ? AND s.ended_at IS NOT NULL AND s.id != ? AND ("
            "EXISTS (SELECT 1 FROM workout_session_exercises se WHERE se.session_id = s.id AND se.exercise_id = ?) "
            "OR EXISTS (SELECT 1 FROM workout_sets ws WHERE ws.session_id = s.id AND ws.exercise_id = ?)) "
            "ORDER BY s.started_at DESC, s.id DESC LIMIT ?;"
        )
        sessions = await self.fetch_all(
            query, (user_id, exclude_session_id or 0, exercise_id, exercise_id, limit)
        )
        history: list[SessionSets] = []
        for sid, started in sessions:
            sets = await self.fetch_for_exercise(int(sid), exercise_id, include_warmups=False)
            history.append(SessionSets(int(sid), parse_timestamp(started), sets))
        return history

    async def count_working_sets(
        self,
        user_id: str,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
    ) -> int:
        query = (
            "SELECT COUNT(*) FROM workout_sets ws JOIN workout_sessions s ON s.id = ws.session_id "
            "WHERE s.user_id = ? AND ws.is_warmup = 0"
        )
        params: list[str] = [user_id]
        if start_day:
            query += " AND s.workout_day >= ?"
            params.append(date_key(start_day))
        if end_day:
            query += " AND s.workout_day <= ?"
            params.append(date_key(end_day))
        rows = await self.fetch_all(query + ";", tuple(params))
        return int(rows[0][0]) if rows else 0

    @staticmethod
    def _row(r: Tuple) -> WorkoutSet:
        return WorkoutSet(
            id=int(r[0]),
            session_id=int(r[1]),
            exercise_id=int(r[2]),
            set_number=int(r[3]),
            weight=float(r[4]),
            reps=int(r[5]),
            rir=int(r[6]) if r[6] is not None else None,
            is_warmup=bool(r[7]),
        )


class AsyncBodyWeightRepository(AsyncBaseRepository):
    """Async repository for daily body weight logs."""

    async def upsert(
        self,
        user_id: str,
        logged_on: datetime.date,
        weight: float,
        waist: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> None:
        if weight <= 0:
            raise ValueError("weight must be positive")
        await self.execute(
            "INSERT INTO bodyweight_logs (user_id, logged_on, weight, waist, notes) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, logged_on) DO UPDATE SET weight=excluded.weight, waist=excluded.waist, notes=excluded.notes;",
            (user_id, date_key(logged_on), weight, waist, notes),
        )

    async def fetch_history(
        self,
        user_id: str,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
    ) -> list[BodyweightLog]:
        query = "SELECT id, user_id, logged_on, weight, waist, notes FROM bodyweight_logs WHERE user_id = ?"
        params: list[str] = [user_id]
        if start_day:
            query += " AND logged_on >= ?"
            params.append(date_key(start_day))
        if end_day:
            query += " AND logged_on <= ?"
            params.append(date_key(end_day))
        rows = await self.fetch_all(query + " ORDER BY logged_on;", tuple(params))
        return [
            BodyweightLog(int(r[0]), r[1], parse_date_key(r[2]), float(r[3]), r[4], r[5])
            for r in rows
        ]

    async def fetch_latest(self, user_id: str) -> Optional[BodyweightLog]:
        rows = await self.fetch_all(
            "SELECT id, user_id, logged_on, weight, waist, notes FROM bodyweight_logs "
            "WHERE user_id = ? ORDER BY logged_on DESC LIMIT 1;",
            (user_id,),
        )
        if not rows:
            return None
        r = rows[0]
        return BodyweightLog(int(r[0]), r[1], parse_date_key(r[2]), float(r[3]), r[4], r[5])


class AsyncDietRepository(AsyncBaseRepository):
    """Async repository for daily diet logs."""

    async def upsert(
        self,
        user_id: str,
        logged_on: datetime.date,
        protein_g: float,
        calories: Optional[float] = None,
        steps: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> None:
        if protein_g < 0:
            raise ValueError("protein must be non-negative")
        if calories is not None and calories < 0:
            raise ValueError("calories must be non-negative")
        if steps is not None and steps < 0:
            raise ValueError("steps must be non-negative")
        await self.execute(
            "INSERT INTO diet_logs (user_id, logged_on, protein_g, calories, steps, notes) VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, logged_on) DO UPDATE SET protein_g=excluded.protein_g, calories=excluded.calories, "
            "steps=excluded.steps, notes=excluded.notes;",
            (user_id, date_key(logged_on), protein_g, calories, steps, notes),
        )

    async def fetch_history(
        self,
        user_id: str,
        start_day: Optional[datetime.date] = None,
        end_day: Optional[datetime.date] = None,
        limit: Optional[int] = None,
    ) -> list[DietLog]:
        query = "SELECT id, user_id, logged_on, protein_g, calories, steps, notes FROM diet_logs WHERE user_id = ?"
        params: list[str | int] = [user_id]
        if start_day:
            query += " AND logged_on >= ?"
            params.append(date_key(start_day))
        if end_day:
            query += " AND logged_on <= ?"
            params.append(date_key(end_day))
        query += " ORDER BY logged_on DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = await self.fetch_all(query + ";", tuple(params))
        return [
            DietLog(
                int(r[0]),
                r[1],
                parse_date_key(r[2]),
                float(r[3]),
                float(r[4]) if r[4] is not None else None,
                int(r[5]) if r[5] is not None else None,
                r[6],
            )
            for r in rows
        ]


class AsyncProfileRepository(AsyncBaseRepository):
    """Async repository for the per-user profile."""

    async def upsert(
        self,
        user_id: str,
        starting_weight: float,
        starting_date: datetime.date,
        goal_weight: Optional[float] = None,
    ) -> None:
        if starting_weight <= 0:
            raise ValueError("starting_weight must be positive")
        if goal_weight is not None and goal_weight <= 0:
            raise ValueError("goal_weight must be positive")
        await self.execute(
            "INSERT INTO user_profile (user_id, starting_weight, starting_date, goal_weight, updated_at) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET starting_weight=excluded.starting_weight, "
            "starting_date=excluded.starting_date, goal_weight=excluded.goal_weight, updated_at=excluded.updated_at;",
            (
                user_id,
                starting_weight,
                date_key(starting_date),
                goal_weight,
                datetime.datetime.now(datetime.timezone.utc).isoformat(),
            ),
        )

    async def fetch(self, user_id: str) -> Optional[UserProfile]:
        rows = await self.fetch_all(
            "SELECT user_id, starting_weight, starting_date, goal_weight FROM user_profile WHERE user_id = ?;",
            (user_id,),
        )
        if not rows:
            return None
        r = rows[0]
        return UserProfile(
            r[0],
            float(r[1]),
            parse_date_key(r[2]),
            float(r[3]) if r[3] is not None else None,
        )
