# chatrelay/services/connection_registry.py

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from chatrelay.models.models import Session

# ============================================================================
# CONNECTION REGISTRY
# ============================================================================

class ConnectionRegistry:
    """
    Single source of truth for "who is where".

    Maps an opaque connection id to the Session (username, room) attached to
    it by a successful join. A connection that has not joined yet simply has
    no entry. Nothing here is persisted: a process restart starts empty and
    clients rejoin on reconnect.

    Data Structures:
        sessions: Maps conn_id -> Session
                  Example: {"9f1c...": Session(username="alice", room="lobby")}

    Scaling:
        - Single instance only. A multi-instance deployment would need a
          shared store with read-after-write consistency per room.
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, Session] = {}

    def set(self, conn_id: str, session: Session) -> None:
        """
        Attach a session to a connection, replacing any previous one.

        Replacement moves the entry to the end of the iteration order, so a
        re-join sorts after members that were already in the room.
        """
        self.sessions.pop(conn_id, None)
        self.sessions[conn_id] = session

    def get(self, conn_id: str) -> Optional[Session]:
        return self.sessions.get(conn_id)

    def delete(self, conn_id: str) -> Optional[Session]:
        """Drop the session for a connection. Unknown ids are ignored."""
        return self.sessions.pop(conn_id, None)

    def items(self) -> Iterator[Tuple[str, Session]]:
        # Snapshot so callers may await between items without tripping over
        # concurrent joins/leaves.
        return iter(list(self.sessions.items()))

    def __len__(self) -> int:
        return len(self.sessions)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self.sessions
