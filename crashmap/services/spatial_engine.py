"""Read-only session lifecycle over the DuckDB crash store."""
from __future__ import annotations

import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Mapping, Optional

import duckdb
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from crashmap.exceptions import (QueryExecutionError,
                                 SpatialCapabilityUnavailable)
from crashmap.utils.config import settings
from crashmap.utils.logging import get_logger

logger = get_logger(__name__)

STORE_ERRORS = (SQLAlchemyError, duckdb.Error)


class SpatialSession:
    """One connection to the store plus its spatial capability state.

    The spatial extension is loaded at most once per session, before the
    first query runs. A failed load poisons the session: every later query
    raises ``SpatialCapabilityUnavailable`` without retrying.
    """

    def __init__(self, connection: Connection):
        self.connection = connection
        self.spatial_loaded = False
        self.spatial_error: Optional[str] = None
        self.closed = False

    def __enter__(self) -> "SpatialSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Capability loading
    # ------------------------------------------------------------------
    def ensure_spatial(self) -> None:
        """Load the spatial extension, installing it first if necessary."""
        if self.spatial_loaded:
            return
        if self.spatial_error is not None:
            raise SpatialCapabilityUnavailable(
                f"Spatial extension unavailable: {self.spatial_error}"
            )

        try:
            self.connection.execute(text("LOAD spatial"))
        except STORE_ERRORS as load_error:
            self._rollback()
            logger.info(
                "Spatial extension not loadable, attempting install",
                error=str(load_error),
            )
            try:
                self.connection.execute(text("INSTALL spatial"))
                self.connection.execute(text("LOAD spatial"))
            except STORE_ERRORS as exc:
                self._rollback()
                self.spatial_error = str(exc)
                logger.error("Failed to load spatial extension", error=str(exc))
                raise SpatialCapabilityUnavailable(
                    f"Spatial extension unavailable: {exc}"
                ) from exc

        self.spatial_loaded = True
        logger.debug("Spatial extension loaded")

    # ------------------------------------------------------------------
    # Query primitives
    # ------------------------------------------------------------------
    def fetch_all(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Run a parameterised query and return rows as dictionaries.

        Caller values must arrive through ``params``; they are bound, never
        formatted into ``sql``.
        """
        if self.closed:
            raise QueryExecutionError("Session is closed.")
        self.ensure_spatial()

        try:
            result = self.connection.execute(text(sql), dict(params or {}))
            return [dict(row) for row in result.mappings()]
        except STORE_ERRORS as exc:
            self._rollback()
            logger.error(
                "Query execution failed",
                error=str(exc),
                params=sorted((params or {}).keys()),
            )
            raise QueryExecutionError(f"Query failed: {exc}") from exc

    def fetch_one(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.connection.close()
        except STORE_ERRORS as exc:  # pragma: no cover - close failures are only logged
            logger.warning("Failed to close store connection", error=str(exc))

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except STORE_ERRORS as exc:
            logger.warning("Rollback after failed statement failed", error=str(exc))


class SpatialQueryEngine:
    """Opens read-only sessions against the crash store."""

    def __init__(
        self,
        database_path: Optional[str] = None,
        read_only: Optional[bool] = None,
        extension_directory: Optional[str] = None,
        threads: Optional[int] = None,
    ):
        db_settings = settings.database
        self.database_path = database_path or db_settings.path
        self.read_only = db_settings.read_only if read_only is None else read_only
        self.extension_directory = extension_directory or db_settings.extension_directory
        threads = threads if threads is not None else db_settings.threads

        config: Dict[str, Any] = {}
        if self.extension_directory:
            # Serverless home directories can be read-only
            os.makedirs(self.extension_directory, exist_ok=True)
            config["extension_directory"] = self.extension_directory
        if threads:
            config["threads"] = threads

        self.engine: Engine = create_engine(
            db_settings.model_copy(update={"path": self.database_path}).url,
            connect_args={"read_only": self.read_only, "config": config},
            poolclass=NullPool,
        )

    def open_session(self) -> SpatialSession:
        """Acquire a new session; the caller owns closing it."""
        try:
            connection = self.engine.connect()
        except STORE_ERRORS as exc:
            logger.error(
                "Failed to open crash store",
                path=self.database_path,
                error=str(exc),
            )
            raise QueryExecutionError(f"Failed to open crash store: {exc}") from exc
        return SpatialSession(connection)

    @contextmanager
    def session(self) -> Iterator[SpatialSession]:
        """Scoped session, closed on every exit path."""
        spatial_session = self.open_session()
        try:
            yield spatial_session
        finally:
            spatial_session.close()

    def dispose(self) -> None:
        self.engine.dispose()


@lru_cache(maxsize=1)
def get_engine() -> SpatialQueryEngine:
    """Process-wide engine built from settings."""
    return SpatialQueryEngine()
