"""
Folder tree traversal and removal cascade.

The folder tree is an adjacency list (``parent_uuid``) with no database-level
guarantee against cycles, so every walk here is iterative, keeps a visited set
and is bounded by CASCADE_MAX_DEPTH / CASCADE_MAX_NODES.
"""
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CascadeLimitExceeded, FolderNotFound, InvalidMove
from app.lifecycle.state_machine import apply_file_status, apply_folder_status
from app.models import File, FileStatus, Folder, FolderStatus, utcnow
from app.reclamation import ReclamationOutbox

logger = logging.getLogger(__name__)

# Keeps IN (...) lists within what every backend accepts
_IN_CHUNK = 500


@dataclass
class CascadeReport:
    """
    Outcome of removing one folder subtree
    """
    root_uuid: str
    folders_removed: int = 0
    files_removed: int = 0
    reclamation_records: int = 0
    max_depth: int = 0

    @property
    def nodes(self) -> int:
        return self.folders_removed + self.files_removed

    def to_dict(self):
        return {
            'root_uuid': self.root_uuid,
            'folders_removed': self.folders_removed,
            'files_removed': self.files_removed,
            'reclamation_records': self.reclamation_records,
            'max_depth': self.max_depth,
        }


class CascadePropagator:
    """
    Removes a folder and everything beneath it.

    Runs inside the caller's transaction: a guard violation raises
    CascadeLimitExceeded and the caller's rollback discards the partial walk.
    """

    def __init__(
        self,
        db: Session,
        outbox: Optional[ReclamationOutbox] = None,
        max_depth: Optional[int] = None,
        max_nodes: Optional[int] = None,
    ):
        self.db = db
        self.outbox = outbox or ReclamationOutbox(db)
        self.max_depth = settings.CASCADE_MAX_DEPTH if max_depth is None else max_depth
        self.max_nodes = settings.CASCADE_MAX_NODES if max_nodes is None else max_nodes

    def remove(self, folder: Folder, now: Optional[datetime] = None) -> CascadeReport:
        """
        Mark ``folder`` removed and propagate to every non-removed descendant.

        Each descendant folder and file becomes DELETED with ``removed_at`` and
        ``deleted_at`` set, and gets a reclamation record when it qualifies.

        Args:
            folder: Locked, not yet removed folder
            now: Timestamp to stamp on every row touched

        Returns:
            CascadeReport with counts and the deepest level reached
        """
        now = now or utcnow()
        report = CascadeReport(root_uuid=folder.uuid)

        self._remove_folder(folder, now, report)

        visited = {folder.uuid}
        worklist = deque([(folder.uuid, 0)])

        while worklist:
            parent_uuid, depth = worklist.popleft()
            report.max_depth = max(report.max_depth, depth)

            files = (
                self.db.query(File)
                .filter(File.folder_uuid == parent_uuid, File.status != FileStatus.DELETED)
                .with_for_update()
                .all()
            )
            for file in files:
                apply_file_status(file, FileStatus.DELETED, now)
                report.files_removed += 1
                if self.outbox.record_file(file):
                    report.reclamation_records += 1

            children = (
                self.db.query(Folder)
                .filter(Folder.parent_uuid == parent_uuid, Folder.status != FolderStatus.DELETED)
                .with_for_update()
                .all()
            )
            for child in children:
                if child.uuid in visited:
                    logger.warning(f"Folder cycle detected at {child.uuid} while removing {folder.uuid}")
                    continue
                if depth + 1 > self.max_depth:
                    raise CascadeLimitExceeded(folder.uuid, "max_depth", self.max_depth)
                visited.add(child.uuid)
                self._remove_folder(child, now, report)
                worklist.append((child.uuid, depth + 1))

            if report.nodes > self.max_nodes:
                raise CascadeLimitExceeded(folder.uuid, "max_nodes", self.max_nodes)

            self.db.flush()

        logger.info(
            f"Cascade from folder {folder.uuid}: {report.folders_removed} folder(s), "
            f"{report.files_removed} file(s), depth {report.max_depth}"
        )
        return report

    def _remove_folder(self, folder: Folder, now: datetime, report: CascadeReport) -> None:
        apply_folder_status(folder, FolderStatus.DELETED, now)
        report.folders_removed += 1
        if self.outbox.record_folder(folder):
            report.reclamation_records += 1


def _get_live_folder(db: Session, folder_uuid: str, user_id: str) -> Optional[Folder]:
    return (
        db.query(Folder)
        .filter(
            Folder.uuid == folder_uuid,
            Folder.user_id == user_id,
            Folder.status != FolderStatus.DELETED,
        )
        .first()
    )


def iter_ancestors(
    db: Session,
    folder_uuid: str,
    user_id: str,
    include_self: bool = False,
    max_depth: Optional[int] = None,
) -> Iterator[Folder]:
    """
    Walk up from ``folder_uuid`` towards the root, nearest parent first.

    Only the user's non-removed folders are followed; a missing or removed
    parent ends the walk. Trashed folders are still yielded.

    Raises:
        FolderNotFound: If the starting folder does not exist for the user
        CascadeLimitExceeded: If the chain is longer than ``max_depth``
    """
    if max_depth is None:
        max_depth = settings.CASCADE_MAX_DEPTH

    current = _get_live_folder(db, folder_uuid, user_id)
    if current is None:
        raise FolderNotFound(folder_uuid)
    if include_self:
        yield current

    visited = {current.uuid}
    depth = 0
    parent_uuid = current.parent_uuid

    while parent_uuid is not None:
        if parent_uuid in visited:
            logger.warning(f"Folder cycle detected at {parent_uuid} walking up from {folder_uuid}")
            return
        depth += 1
        if depth > max_depth:
            raise CascadeLimitExceeded(folder_uuid, "max_depth", max_depth)

        parent = _get_live_folder(db, parent_uuid, user_id)
        if parent is None:
            return
        visited.add(parent.uuid)
        yield parent
        parent_uuid = parent.parent_uuid


def iter_descendants(
    db: Session,
    folder_uuid: str,
    user_id: str,
    max_depth: Optional[int] = None,
) -> Iterator[Folder]:
    """
    Breadth-first walk over the user's non-removed folders under ``folder_uuid``.

    The starting folder itself is not yielded.
    """
    if max_depth is None:
        max_depth = settings.CASCADE_MAX_DEPTH

    visited = {folder_uuid}
    frontier: List[str] = [folder_uuid]
    depth = 0

    while frontier:
        depth += 1
        if depth > max_depth:
            raise CascadeLimitExceeded(folder_uuid, "max_depth", max_depth)

        next_frontier: List[str] = []
        for start in range(0, len(frontier), _IN_CHUNK):
            chunk = frontier[start:start + _IN_CHUNK]
            children = (
                db.query(Folder)
                .filter(
                    Folder.parent_uuid.in_(chunk),
                    Folder.user_id == user_id,
                    Folder.status != FolderStatus.DELETED,
                )
                .order_by(Folder.id)
                .all()
            )
            for child in children:
                if child.uuid in visited:
                    continue
                visited.add(child.uuid)
                next_frontier.append(child.uuid)
                yield child

        frontier = next_frontier


def validate_move(db: Session, folder_uuid: str, destination_uuid: str, user_id: str) -> None:
    """
    Check that moving ``folder_uuid`` under ``destination_uuid`` keeps the tree acyclic.

    Raises:
        FolderNotFound: If the folder does not exist for the user
        InvalidMove: If the destination is the folder itself, one of its
            descendants, or not a live folder of the user
    """
    folder = _get_live_folder(db, folder_uuid, user_id)
    if folder is None:
        raise FolderNotFound(folder_uuid)

    if destination_uuid == folder_uuid:
        raise InvalidMove(f"Folder {folder_uuid} cannot be moved into itself")

    destination = _get_live_folder(db, destination_uuid, user_id)
    if destination is None:
        raise InvalidMove(f"Destination folder {destination_uuid} does not exist or is removed")

    for ancestor in iter_ancestors(db, destination_uuid, user_id):
        if ancestor.uuid == folder_uuid:
            raise InvalidMove(
                f"Folder {folder_uuid} cannot be moved into its descendant {destination_uuid}"
            )
