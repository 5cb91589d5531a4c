"""
Unit tests for folder removal cascade and tree traversal.
Tests app/lifecycle/cascade.py
"""
import pytest

from app.core.config import settings
from app.core.exceptions import CascadeLimitExceeded, FolderNotFound, InvalidMove
from app.lifecycle import (
    CascadePropagator,
    LifecycleService,
    iter_ancestors,
    iter_descendants,
    validate_move,
)
from app.models import (
    DeletedFile,
    DeletedFolder,
    File,
    FileStatus,
    Folder,
    FolderStatus,
)

USER_ID = "7c1e2f3a-0000-4000-8000-000000000001"


@pytest.mark.unit
class TestRemovalCascade:
    """Test LifecycleService.transition_folder_removed over subtrees."""

    @pytest.mark.parametrize("depth", [1, 5, 12])
    def test_every_descendant_is_removed(self, db, folder_tree, depth):
        folders, files = folder_tree(depth=depth)

        report = LifecycleService(db).transition_folder_removed(folders[0].uuid)

        db.expire_all()
        assert all(f.status == FolderStatus.DELETED for f in db.query(Folder).all())
        assert all(f.removed_at is not None for f in db.query(Folder).all())
        assert all(f.status == FileStatus.DELETED for f in db.query(File).all())
        assert report.folders_removed == depth + 1
        assert report.files_removed == depth + 1
        assert report.max_depth == depth
        assert db.query(DeletedFolder).count() == depth + 1
        assert db.query(DeletedFile).count() == depth + 1

    def test_wide_tree(self, db, make_folder, make_file):
        root = make_folder()
        children = [make_folder(root) for _ in range(4)]
        for child in children:
            make_folder(child)
            make_file(child, size=5)

        report = LifecycleService(db).transition_folder_removed(root.uuid)

        assert report.folders_removed == 9
        assert report.files_removed == 4
        assert db.query(Folder).filter(Folder.status != FolderStatus.DELETED).count() == 0

    def test_siblings_and_parent_untouched(self, db, make_folder, make_file):
        parent = make_folder()
        target = make_folder(parent)
        sibling = make_folder(parent)
        sibling_file = make_file(sibling)

        LifecycleService(db).transition_folder_removed(target.uuid)

        db.expire_all()
        assert db.get(Folder, parent.id).status == FolderStatus.EXISTS
        assert db.get(Folder, sibling.id).status == FolderStatus.EXISTS
        assert db.get(File, sibling_file.id).status == FileStatus.EXISTS

    def test_trashed_descendants_become_deleted(self, db, make_folder, make_file):
        root = make_folder()
        trashed_child = make_folder(root, status=FolderStatus.TRASHED)
        trashed_file = make_file(trashed_child, status=FileStatus.TRASHED)

        LifecycleService(db).transition_folder_removed(root.uuid)

        db.expire_all()
        assert db.get(Folder, trashed_child.id).status == FolderStatus.DELETED
        assert db.get(File, trashed_file.id).status == FileStatus.DELETED
        assert db.query(DeletedFile).filter(DeletedFile.file_id == trashed_file.uuid).count() == 1

    def test_already_removed_descendants_are_skipped(self, db, make_folder, make_file):
        root = make_folder()
        removed_child = make_folder(root, status=FolderStatus.DELETED)
        make_file(removed_child, status=FileStatus.DELETED)

        report = LifecycleService(db).transition_folder_removed(root.uuid)

        assert report.folders_removed == 1
        assert report.files_removed == 0
        assert db.query(DeletedFolder).count() == 1

    def test_zero_size_files_have_no_record(self, db, make_folder, make_file):
        root = make_folder()
        empty = make_file(root, size=0)
        full = make_file(root, size=10)

        report = LifecycleService(db).transition_folder_removed(root.uuid)

        db.expire_all()
        assert db.get(File, empty.id).status == FileStatus.DELETED
        assert [r.file_id for r in db.query(DeletedFile).all()] == [full.uuid]
        assert report.reclamation_records == 2  # one folder, one file

    def test_depth_guard_rolls_back(self, db, folder_tree, monkeypatch):
        folders, _ = folder_tree(depth=4)
        monkeypatch.setattr(settings, "CASCADE_MAX_DEPTH", 2)

        with pytest.raises(CascadeLimitExceeded) as exc_info:
            LifecycleService(db).transition_folder_removed(folders[0].uuid)

        assert exc_info.value.limit == "max_depth"
        db.expire_all()
        assert db.query(Folder).filter(Folder.status == FolderStatus.DELETED).count() == 0
        assert db.query(File).filter(File.status == FileStatus.DELETED).count() == 0
        assert db.query(DeletedFolder).count() == 0
        assert db.query(DeletedFile).count() == 0

    def test_node_guard_rolls_back(self, db, make_folder, make_file):
        root = make_folder()
        for _ in range(5):
            make_file(root)

        with pytest.raises(CascadeLimitExceeded) as exc_info:
            CascadePropagator(db, max_nodes=3).remove(root)
        db.rollback()

        assert exc_info.value.limit == "max_nodes"
        assert db.query(DeletedFolder).count() == 0
        assert db.get(Folder, root.id).status == FolderStatus.EXISTS

    def test_zero_depth_limit_removes_only_the_folder_itself(self, db, make_folder, make_file):
        lone = make_folder()
        make_file(lone)
        parent = make_folder()
        make_folder(parent)

        report = CascadePropagator(db, max_depth=0).remove(lone)
        db.commit()
        assert report.files_removed == 1

        with pytest.raises(CascadeLimitExceeded) as exc_info:
            CascadePropagator(db, max_depth=0).remove(parent)
        db.rollback()

        assert exc_info.value.limit == "max_depth"
        assert db.get(Folder, parent.id).status == FolderStatus.EXISTS

    def test_zero_node_limit_is_not_replaced_by_default(self, db, make_folder):
        root = make_folder()

        with pytest.raises(CascadeLimitExceeded) as exc_info:
            CascadePropagator(db, max_nodes=0).remove(root)
        db.rollback()

        assert exc_info.value.limit == "max_nodes"

    def test_cycle_terminates(self, db, make_folder):
        a = make_folder()
        b = make_folder(a)
        a.parent_uuid = b.uuid
        db.commit()

        report = LifecycleService(db).transition_folder_removed(a.uuid)

        assert report.folders_removed == 2
        db.expire_all()
        assert db.get(Folder, b.id).status == FolderStatus.DELETED


@pytest.mark.unit
class TestAncestors:
    """Test iter_ancestors."""

    def test_nearest_parent_first(self, db, folder_tree):
        folders, _ = folder_tree(depth=3)

        ancestors = list(iter_ancestors(db, folders[-1].uuid, USER_ID))

        assert [f.uuid for f in ancestors] == [f.uuid for f in reversed(folders[:-1])]

    def test_include_self(self, db, folder_tree):
        folders, _ = folder_tree(depth=1)

        ancestors = list(iter_ancestors(db, folders[-1].uuid, USER_ID, include_self=True))

        assert [f.uuid for f in ancestors] == [folders[1].uuid, folders[0].uuid]

    def test_root_has_no_ancestors(self, db, make_folder):
        root = make_folder()
        assert list(iter_ancestors(db, root.uuid, USER_ID)) == []

    def test_walk_stops_at_removed_parent(self, db, make_folder):
        top = make_folder()
        removed = make_folder(top, status=FolderStatus.DELETED)
        leaf = make_folder(removed)

        assert list(iter_ancestors(db, leaf.uuid, USER_ID)) == []

    def test_trashed_parent_is_followed(self, db, make_folder):
        top = make_folder()
        trashed = make_folder(top, status=FolderStatus.TRASHED)
        leaf = make_folder(trashed)

        ancestors = list(iter_ancestors(db, leaf.uuid, USER_ID))

        assert [f.uuid for f in ancestors] == [trashed.uuid, top.uuid]

    def test_other_users_folders_not_followed(self, db, make_folder):
        foreign = make_folder(user_id="someone-else")
        leaf = make_folder(foreign)

        assert list(iter_ancestors(db, leaf.uuid, USER_ID)) == []

    def test_unknown_folder(self, db):
        with pytest.raises(FolderNotFound):
            list(iter_ancestors(db, "missing", USER_ID))

    def test_depth_guard(self, db, folder_tree):
        folders, _ = folder_tree(depth=5)

        with pytest.raises(CascadeLimitExceeded):
            list(iter_ancestors(db, folders[-1].uuid, USER_ID, max_depth=2))

    def test_zero_depth_limit_stops_at_first_parent(self, db, folder_tree):
        folders, _ = folder_tree(depth=1)

        with pytest.raises(CascadeLimitExceeded):
            list(iter_ancestors(db, folders[-1].uuid, USER_ID, max_depth=0))
        assert list(iter_ancestors(db, folders[0].uuid, USER_ID, max_depth=0)) == []


@pytest.mark.unit
class TestDescendants:
    """Test iter_descendants."""

    def test_breadth_first(self, db, make_folder):
        root = make_folder()
        a = make_folder(root)
        b = make_folder(root)
        a1 = make_folder(a)

        descendants = [f.uuid for f in iter_descendants(db, root.uuid, USER_ID)]

        assert descendants == [a.uuid, b.uuid, a1.uuid]

    def test_removed_subtrees_excluded(self, db, make_folder):
        root = make_folder()
        removed = make_folder(root, status=FolderStatus.DELETED)
        make_folder(removed)
        live = make_folder(root)

        assert [f.uuid for f in iter_descendants(db, root.uuid, USER_ID)] == [live.uuid]


@pytest.mark.unit
class TestValidateMove:
    """Test validate_move."""

    def test_move_to_sibling_is_valid(self, db, make_folder):
        root = make_folder()
        a = make_folder(root)
        b = make_folder(root)

        validate_move(db, a.uuid, b.uuid, USER_ID)

    def test_move_into_itself(self, db, make_folder):
        a = make_folder()

        with pytest.raises(InvalidMove):
            validate_move(db, a.uuid, a.uuid, USER_ID)

    def test_move_into_descendant(self, db, folder_tree):
        folders, _ = folder_tree(depth=3)

        with pytest.raises(InvalidMove):
            validate_move(db, folders[1].uuid, folders[3].uuid, USER_ID)

    def test_move_into_removed_folder(self, db, make_folder):
        a = make_folder()
        removed = make_folder(status=FolderStatus.DELETED)

        with pytest.raises(InvalidMove):
            validate_move(db, a.uuid, removed.uuid, USER_ID)

    def test_unknown_source(self, db, make_folder):
        b = make_folder()

        with pytest.raises(FolderNotFound):
            validate_move(db, "missing", b.uuid, USER_ID)
