"""Extension chain manager: continuation of previously generated videos.

Chains are counted per root. Extending an original consumes a slot on the
original; extending an extension consumes a slot on the extension's root.
The count is checked before any remote submission, and an in-flight slot is
reserved so concurrent extensions of the same root cannot overshoot the cap.
"""

from collections import Counter
from pathlib import Path

import structlog

from reelforge.models.artifact import Artifact, ExtensionDraft
from reelforge.models.request import GenerationRequest, RequestKind
from reelforge.repositories.history import HistoryLedger
from reelforge.services.exceptions import ChainLimitExceeded

logger = structlog.get_logger(__name__)


class ExtensionChainManager:
    """Validates chain limits and links extension results back to their parent."""

    def __init__(
        self,
        history: HistoryLedger,
        max_extensions: int = 20,
        increment_seconds: int = 7,
    ):
        self.history = history
        self.max_extensions = max_extensions
        self.increment_seconds = increment_seconds
        self._in_flight: Counter[str] = Counter()

    def root_of(self, artifact: Artifact) -> Artifact:
        """Return the chain root, or the artifact itself when the root was reclaimed."""
        if artifact.root_id is None:
            return artifact
        return self.history.find_by_id(artifact.root_id) or artifact

    def in_flight(self, root_id: str) -> int:
        return self._in_flight[root_id]

    def extend(self, parent: Artifact, prompt: str) -> ExtensionDraft:
        """Reserve an extension slot and build the continuation request.

        Args:
            parent: Ledger artifact to continue
            prompt: Description of what happens next

        Returns:
            Draft carrying the request to submit and the derived duration

        Raises:
            ChainLimitExceeded: If the root's chain is full (no remote call is made)
        """
        root = self.root_of(parent)
        used = root.extension_count + self._in_flight[root.id]
        if used >= self.max_extensions:
            logger.warning(
                "extension.rejected",
                parent_id=parent.id,
                root_id=root.id,
                extension_count=root.extension_count,
                in_flight=self._in_flight[root.id],
                max_extensions=self.max_extensions,
            )
            raise ChainLimitExceeded(root.id, root.extension_count, self.max_extensions)

        self._in_flight[root.id] += 1
        request = GenerationRequest(
            prompt=prompt,
            model=parent.model,
            duration_seconds=None,
            aspect_ratio=parent.aspect_ratio,
            resolution=parent.resolution,
            source_video_path=parent.path,
        )
        logger.info(
            "extension.reserved",
            parent_id=parent.id,
            root_id=root.id,
            extension_number=used + 1,
            max_extensions=self.max_extensions,
        )
        return ExtensionDraft(
            parent=parent,
            root=root,
            request=request,
            duration_seconds=parent.duration_seconds + self.increment_seconds,
        )

    def release(self, draft: ExtensionDraft) -> None:
        """Give back the slot of an extension that did not produce a video."""
        if self._in_flight[draft.root.id] > 0:
            self._in_flight[draft.root.id] -= 1
        if self._in_flight[draft.root.id] == 0:
            del self._in_flight[draft.root.id]

    def complete(
        self, draft: ExtensionDraft, artifact_id: str, path: Path, operation_id: str
    ) -> Artifact:
        """Record a finished extension.

        Increments the root's counter in place and appends the new artifact in
        one synchronous step.

        Returns:
            The appended extension artifact
        """
        self.release(draft)
        draft.root.extension_count += 1

        artifact = Artifact(
            id=artifact_id,
            path=path,
            prompt=draft.request.prompt,
            model=draft.parent.model,
            duration_seconds=draft.duration_seconds,
            resolution=draft.parent.resolution,
            aspect_ratio=draft.parent.aspect_ratio,
            operation_id=operation_id,
            kind=RequestKind.EXTENSION,
            extension_count=draft.root.extension_count,
            parent_id=draft.parent.id,
            root_id=draft.root.id,
        )
        return self.history.append(artifact)
