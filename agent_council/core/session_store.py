"""
Session registry for brainstorming sessions.
Following Single Responsibility Principle - handles session bookkeeping only.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import BrainstormingSession


class SessionStore(ABC):
    """Abstract registry of active sessions plus an archive of evicted ones"""

    @abstractmethod
    def add(self, session: BrainstormingSession) -> None:
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[BrainstormingSession]:
        """Active (non-evicted) session by id"""
        pass

    @abstractmethod
    def evict(self, session_id: str) -> Optional[BrainstormingSession]:
        """Remove from the active registry, keeping it in the archive"""
        pass

    @abstractmethod
    def get_evicted(self, session_id: str) -> Optional[BrainstormingSession]:
        pass

    @abstractmethod
    def remove(self, session_id: str) -> None:
        """Forget a session entirely"""
        pass

    @abstractmethod
    def list_sessions(self) -> List[BrainstormingSession]:
        pass

    def lookup(self, session_id: str) -> Optional[BrainstormingSession]:
        """Active or evicted session by id"""
        return self.get(session_id) or self.get_evicted(session_id)


class InMemorySessionStore(SessionStore):
    """Process-local session registry"""

    def __init__(self, archive_limit: int = 100):
        self._sessions: Dict[str, BrainstormingSession] = {}
        self._evicted: Dict[str, BrainstormingSession] = {}
        self.archive_limit = archive_limit

    def add(self, session: BrainstormingSession) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[BrainstormingSession]:
        return self._sessions.get(session_id)

    def evict(self, session_id: str) -> Optional[BrainstormingSession]:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            self._evicted[session_id] = session
            # dicts keep insertion order; drop the oldest archived sessions
            while len(self._evicted) > self.archive_limit:
                del self._evicted[next(iter(self._evicted))]
        return session

    def get_evicted(self, session_id: str) -> Optional[BrainstormingSession]:
        return self._evicted.get(session_id)

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._evicted.pop(session_id, None)

    def list_sessions(self) -> List[BrainstormingSession]:
        return list(self._sessions.values())

    def clear(self) -> None:
        self._sessions.clear()
        self._evicted.clear()
