from __future__ import annotations

import threading
from typing import Optional

from snapshot import Snapshot


class SnapshotStore:
    """
    Contenedor de la última Snapshot con semántica copy-on-write.

    Invariantes:
    - el scheduler es el único escritor; lectores sin límite
    - los valores son inmutables y se reemplazan enteros: un lector obtiene la
      instantánea anterior o la nueva, nunca una mezcla
    """

    def __init__(self) -> None:
        self._snapshot: Optional[Snapshot] = None
        self._lock = threading.Lock()

    def replace(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def current(self) -> Optional[Snapshot]:
        """Última instantánea, o None antes del primer cálculo correcto."""
        with self._lock:
            return self._snapshot
