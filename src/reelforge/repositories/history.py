"""HistoryLedger repository for reelforge.

Provides lookup and reclamation over the artifacts generated in this process.
"""

from pathlib import Path

from reelforge.models.artifact import Artifact


class HistoryLedger:
    """Append-only, insertion-ordered record of completed artifacts.

    The most recently appended remaining entry is the "last artifact", used for
    implicit continuation. It is derived from the stored order rather than kept
    as a separate pointer, so removals always fall back to the next most recent
    entry (or None once the ledger is empty).
    """

    def __init__(self) -> None:
        self._entries: list[Artifact] = []

    def append(self, artifact: Artifact) -> Artifact:
        """Record a completed artifact as the newest entry.

        Args:
            artifact: Artifact whose file is already on disk

        Returns:
            The appended artifact
        """
        self._entries.append(artifact)
        return artifact

    @property
    def last(self) -> Artifact | None:
        """Most recently appended artifact still in the ledger."""
        return self._entries[-1] if self._entries else None

    def find_by_id(self, artifact_id: str) -> Artifact | None:
        """Retrieve artifact by its generated identity.

        Returns:
            Artifact if found, None otherwise
        """
        return next((a for a in self._entries if a.id == artifact_id), None)

    def find_by_path(self, path: str | Path) -> Artifact | None:
        """Retrieve artifact by file path (relative paths are resolved first).

        Returns:
            Artifact if found, None otherwise
        """
        absolute_path = Path(path).expanduser().resolve()
        return next((a for a in self._entries if a.path == absolute_path), None)

    def find_by_operation_id(self, operation_id: str) -> Artifact | None:
        """Retrieve the artifact produced by a given remote operation.

        Returns:
            Artifact if the operation has been materialized, None otherwise
        """
        return next((a for a in self._entries if a.operation_id == operation_id), None)

    def remove_by_id(self, artifact_id: str) -> Artifact | None:
        """Remove a single artifact from the ledger (the file is left alone).

        Returns:
            Removed artifact, or None if the id is unknown
        """
        for index, artifact in enumerate(self._entries):
            if artifact.id == artifact_id:
                return self._entries.pop(index)
        return None

    def remove_all(self) -> list[Artifact]:
        """Empty the ledger.

        Returns:
            Removed artifacts, oldest first
        """
        removed, self._entries = self._entries, []
        return removed

    def list_newest_first(self) -> list[Artifact]:
        """Return artifacts in reverse insertion order without touching stored order."""
        return list(reversed(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
