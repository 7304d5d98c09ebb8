from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from skygrid.common.types import Cell


class Persistence(ABC):
    """Abstract persistence interface for allocator state and the island registry."""

    @abstractmethod
    def load_namespace(self, namespace: str) -> Dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def save_namespace(self, namespace: str, values: Dict[str, str]) -> None:
        """Replace every key stored under ``namespace`` with ``values``."""
        raise NotImplementedError

    @abstractmethod
    def delete_namespace(self, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def add_island(self, cell: Cell, owner: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def remove_island(self, cell: Cell) -> bool:
        raise NotImplementedError

    @abstractmethod
    def has_island(self, cell: Cell) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_islands(self, limit: int = 100) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def add_orphan(self, cell: Cell) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_orphans(self, limit: int = 100) -> List[Cell]:
        """Queued orphans, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def remove_orphan(self, cell: Cell) -> bool:
        raise NotImplementedError

    @abstractmethod
    def orphan_count(self) -> int:
        raise NotImplementedError
