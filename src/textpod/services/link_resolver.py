"""Background resolution of marker links.

A marker link is a token such as ``+https://example.com/post`` inside a
note. For each one a daemon thread classifies the URL, fetches it and, on
success, rewrites the note so the link points at the local copy:

    +https://example.com/post
    https://example.com/post ([local copy](/attachments/webpages/example.com_post.html))

Failures are logged and leave the marker in place. Nothing here is
persisted; links left unresolved by a crash stay unresolved.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Protocol

from textpod.exceptions import FetchError, TextpodError
from textpod.models.schema import LinkKind, LinkState
from textpod.observability import metrics
from textpod.services.fetcher import Fetcher
from textpod.services.link_classifier import LinkClassifier
from textpod.storage.markdown_renderer import MARKER, rewrite_local_link
from textpod.storage.note_store import NoteStore

logger = logging.getLogger(__name__)

LINK_PREFIX = MARKER + "http"


def extract_marker_links(content: str) -> List[str]:
    """Return the URLs of all marker links in ``content``, without the marker.

    Each URL is returned once, in order of first appearance.
    """
    links: List[str] = []
    for word in content.split():
        if word.startswith(LINK_PREFIX):
            url = word[len(MARKER):]
            if url not in links:
                links.append(url)
    return links


class LinkDelegate(Protocol):
    """What link resolution needs from the rest of the application."""

    @property
    def attachments_dir(self) -> Path:
        """Directory local copies are stored under."""
        ...

    def update_local_link(self, external_link: str, local_path: Path) -> None:
        """Point the marker for ``external_link`` at ``local_path``."""
        ...


@dataclass
class NoteLinkDelegate:
    """LinkDelegate that rewrites one note in a NoteStore."""

    store: NoteStore
    note_id: int
    attachments_dir: Path
    public_path: str = "/attachments"

    def local_link(self, local_path: Path) -> Optional[str]:
        """Public URL for ``local_path``, or None if it is outside attachments."""
        try:
            relative = local_path.resolve().relative_to(self.attachments_dir.resolve())
        except ValueError:
            return None
        return f"{self.public_path.rstrip('/')}/{PurePosixPath(*relative.parts)}"

    def update_local_link(self, external_link: str, local_path: Path) -> None:
        local_link = self.local_link(local_path)
        if local_link is None:
            logger.error(
                f"Attempt to update local link to inaccessible path {local_path}"
            )
            return

        try:
            found = self.store.update_with(
                self.note_id,
                lambda content: rewrite_local_link(content, external_link, local_link),
            )
        except TextpodError as e:
            logger.error(f"Failed to update note #{self.note_id}: {e}")
            return

        if found:
            logger.debug(f"Note updated: #{self.note_id}")
        else:
            logger.error(f"Attempt to update non-existent note #{self.note_id}")


@dataclass
class LinkJob:
    """One marker link being resolved on its own thread."""

    url: str
    note_id: int
    state: LinkState = LinkState.PENDING
    kind: Optional[LinkKind] = None
    local_path: Optional[Path] = None
    error: Optional[str] = None
    thread: Optional[threading.Thread] = field(default=None, repr=False)

    def wait(self, timeout: Optional[float] = None) -> LinkState:
        """Block until the job finishes (tests and shutdown only)."""
        if self.thread is not None:
            self.thread.join(timeout)
        return self.state


class LinkResolver:
    """Spawn and run link resolution jobs."""

    def __init__(self, classifier: LinkClassifier, fetcher: Fetcher):
        self.classifier = classifier
        self.fetcher = fetcher

    def _transition(self, job: LinkJob, state: LinkState) -> None:
        logger.debug(f"Link {job.url} (note #{job.note_id}): {job.state.value} -> {state.value}")
        job.state = state

    def run_job(self, job: LinkJob, delegate: LinkDelegate) -> None:
        """Classify, fetch and write back a single link.

        Never raises; failures end in the UNRESOLVED state.
        """
        start_time = time.perf_counter()
        try:
            self._transition(job, LinkState.CLASSIFYING)
            job.kind = self.classifier.classify(job.url)

            self._transition(job, LinkState.FETCHING)
            job.local_path = self.fetcher.fetch(
                job.url, job.kind, delegate.attachments_dir
            )

            delegate.update_local_link(job.url, job.local_path)
            self._transition(job, LinkState.RESOLVED)
        except FetchError as e:
            job.error = str(e)
            logger.error(f"Link {job.url} left unresolved: {e}")
            self._transition(job, LinkState.UNRESOLVED)
        except Exception as e:
            # A background thread has nobody to propagate to
            job.error = str(e)
            logger.error(f"Unexpected error resolving {job.url}: {e}", exc_info=True)
            self._transition(job, LinkState.UNRESOLVED)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            metrics.record_operation(
                "resolve_link",
                duration_ms,
                job.state == LinkState.RESOLVED,
                job.error,
            )

    def resolve_links(
        self, note_id: int, content: str, delegate: LinkDelegate
    ) -> List[LinkJob]:
        """Start one background thread per marker link in ``content``.

        Returns immediately. The returned jobs can be waited on, but
        callers serving requests should not.
        """
        jobs = []
        for url in extract_marker_links(content):
            job = LinkJob(url=url, note_id=note_id)
            job.thread = threading.Thread(
                target=self.run_job,
                args=(job, delegate),
                daemon=True,
                name=f"link-{note_id}",
            )
            job.thread.start()
            jobs.append(job)

        if jobs:
            logger.info(f"Resolving {len(jobs)} link(s) for note #{note_id}")
        return jobs
