"""
Commits and streams - the persisted shape of an aggregate's history

A Commit is one batch of events produced by a single aggregate interaction
(one reconcile pass). A Stream is every commit of one aggregate.

Commits may come back from the store in any order, so a Stream always
re-sorts before handing events out.
"""

from aeto.kernel.events import Event


class Commit:
    """A named, ordered batch of events"""

    def __init__(
        self,
        commit_id: str,
        sequence: int,
        timestamp: str = "",
        events: list[Event] | None = None,
    ) -> None:
        self.id = commit_id
        self.sequence = sequence
        self.timestamp = timestamp
        self.events: list[Event] = list(events or [])

    def append(self, event: Event) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)

    def __repr__(self) -> str:
        return f"Commit(id={self.id!r}, sequence={self.sequence}, events={len(self.events)})"


class Stream:
    """
    The complete ordered history of one aggregate

    `events()` flattens every commit and sorts by event sequence. The sort
    is mandatory - chunk order from the backing store is not guaranteed.
    """

    def __init__(self, stream_id: str, commits: list[Commit] | None = None) -> None:
        self.id = stream_id
        self._commits: list[Commit] = list(commits or [])

    def commits(self) -> list[Commit]:
        """Commits ordered by commit sequence"""
        return sorted(self._commits, key=lambda c: c.sequence)

    def events(self) -> list[Event]:
        """Every event of every commit, ordered by event sequence"""
        events = [e for c in self._commits for e in c.events]
        return sorted(events, key=lambda e: e.sequence)

    def length(self) -> int:
        """Total number of events in the stream"""
        return sum(len(c) for c in self._commits)

    def version(self) -> int:
        """Sequence of the most recent commit (0 for an empty stream)"""
        commits = self.commits()
        return commits[-1].sequence if commits else 0

    def __len__(self) -> int:
        return len(self._commits)

    def __repr__(self) -> str:
        return f"Stream(id={self.id!r}, commits={len(self._commits)}, events={self.length()})"
