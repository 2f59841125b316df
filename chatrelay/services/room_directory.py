# chatrelay/services/room_directory.py

from __future__ import annotations

from typing import Dict, List

from chatrelay.services.connection_registry import ConnectionRegistry

# ============================================================================
# ROOM DIRECTORY
# ============================================================================

class RoomDirectory:
    """
    Read-only view of room membership, derived from the ConnectionRegistry.

    Rooms are never stored. Every lookup scans the registry, so the roster
    cannot drift from the sessions that actually exist. That is O(n) in the
    number of live connections, which is fine for small chat rooms.

    Usage:
        directory = RoomDirectory(registry)
        directory.members_of("lobby")      # ["alice", "bob"]
        directory.connections_in("lobby")  # ["9f1c...", "2ab0..."]
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def members_of(self, room: str) -> List[str]:
        """Usernames in `room`, in the order their sessions were created."""
        return [s.username for _, s in self.registry.items() if s.room == room]

    def connections_in(self, room: str) -> List[str]:
        """Connection ids whose current session is in `room`."""
        return [conn_id for conn_id, s in self.registry.items() if s.room == room]

    def list_rooms(self) -> Dict[str, int]:
        """
        Rooms that currently have at least one member.

        Returns:
            Dict mapping room name -> member count

        Used by the /metrics endpoint and for debugging.
        """
        counts: Dict[str, int] = {}
        for _, session in self.registry.items():
            counts[session.room] = counts.get(session.room, 0) + 1
        return counts
