from __future__ import annotations

import logging

from skygrid.common.types import Cell
from skygrid.engine.collaborators import Scheduler
from skygrid.persist.base import Persistence

logger = logging.getLogger(__name__)

KEY_X = "lastIslandX"
KEY_Z = "lastIslandZ"
DEFAULT_NAMESPACE = "options.general"


class FrontierStore:
    """Durable record of the last cell reached by spiral expansion.

    Storage is read once; afterwards the cached cell is authoritative and
    every advance is written back on the scheduler.
    """

    def __init__(
        self,
        persistence: Persistence,
        scheduler: Scheduler,
        namespace: str = DEFAULT_NAMESPACE,
        legacy_namespace: str | None = None,
        default: Cell = (0, 0),
    ) -> None:
        self.persistence = persistence
        self.scheduler = scheduler
        self.namespace = namespace
        self.legacy_namespace = legacy_namespace
        self.default = default
        self._cell: Cell | None = None

    def get(self) -> Cell:
        if self._cell is None:
            self._cell = self._load()
        return self._cell

    def advance(self, cell: Cell) -> None:
        self._cell = cell
        self.scheduler.run_async(lambda: self._write(cell))

    def _load(self) -> Cell:
        try:
            values = self.persistence.load_namespace(self.namespace)
            if not _has_frontier(values) and self.legacy_namespace:
                values = self._migrate_legacy()
            if not _has_frontier(values):
                return self.default
            cell = (int(values[KEY_X]), int(values[KEY_Z]))
        except Exception:
            logger.exception("Unable to load frontier from namespace %s", self.namespace)
            return self.default
        logger.info("Loaded frontier %s from namespace %s", cell, self.namespace)
        return cell

    def _migrate_legacy(self) -> dict[str, str]:
        legacy = self.persistence.load_namespace(self.legacy_namespace)
        if not _has_frontier(legacy):
            return {}
        values = {KEY_X: legacy[KEY_X], KEY_Z: legacy[KEY_Z]}
        # the legacy keys are only dropped once the new namespace holds them
        try:
            self.persistence.save_namespace(self.namespace, values)
            remaining = {k: v for k, v in legacy.items() if k not in values}
            if remaining:
                self.persistence.save_namespace(self.legacy_namespace, remaining)
            else:
                self.persistence.delete_namespace(self.legacy_namespace)
        except Exception:
            logger.warning(
                "Unable to migrate frontier from namespace %s",
                self.legacy_namespace,
                exc_info=True,
            )
            return values
        logger.info(
            "Migrated frontier from namespace %s to %s", self.legacy_namespace, self.namespace
        )
        return values

    def _write(self, cell: Cell) -> None:
        try:
            self.persistence.save_namespace(
                self.namespace, {KEY_X: str(cell[0]), KEY_Z: str(cell[1])}
            )
        except Exception:
            logger.warning("Unable to save frontier %s", cell, exc_info=True)


def _has_frontier(values: dict[str, str]) -> bool:
    return KEY_X in values and KEY_Z in values
