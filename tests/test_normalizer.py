"""Tests for path normalizer module."""

import os
from pathlib import Path

import pytest

from dirty_tracker.models import EventKind, WatchItem
from dirty_tracker.normalizer import PathNormalizer


class TestPathNormalizer:
    """Tests for PathNormalizer class."""

    def test_requires_absolute_root(self):
        with pytest.raises(ValueError):
            PathNormalizer(Path("relative/root"))

    def test_created(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.CREATED, src_path=str(tmp_path / "file.txt"))

        assert normalizer.normalize(item) == [tmp_path / "file.txt"]

    def test_nested(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.MODIFIED, src_path=str(tmp_path / "a" / "b" / "c.txt"))

        assert normalizer.normalize(item) == [tmp_path / "a" / "b" / "c.txt"]

    def test_rename_yields_both_paths(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(
            EventKind.RENAMED,
            src_path=str(tmp_path / "old.txt"),
            dest_path=str(tmp_path / "new.txt"),
        )

        assert normalizer.normalize(item) == [tmp_path / "old.txt", tmp_path / "new.txt"]

    def test_rename_out_of_root_keeps_source(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        normalizer = PathNormalizer(root)
        item = WatchItem(
            EventKind.RENAMED,
            src_path=str(root / "file.txt"),
            dest_path=str(tmp_path / "elsewhere.txt"),
        )

        assert normalizer.normalize(item) == [root / "file.txt"]

    def test_rename_with_missing_destination(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.RENAMED, src_path=str(tmp_path / "gone.txt"), dest_path="")

        assert normalizer.normalize(item) == [tmp_path / "gone.txt"]

    def test_relative_path_joined_to_root(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.CREATED, src_path="sub/file.txt")

        assert normalizer.normalize(item) == [tmp_path / "sub" / "file.txt"]

    def test_lexical_normalization(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        raw = str(tmp_path) + os.sep + "sub" + os.sep + ".." + os.sep + "file.txt"
        item = WatchItem(EventKind.CREATED, src_path=raw)

        assert normalizer.normalize(item) == [tmp_path / "file.txt"]

    def test_bytes_path(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.CREATED, src_path=os.fsencode(str(tmp_path / "file.txt")))

        assert normalizer.normalize(item) == [tmp_path / "file.txt"]

    def test_path_object(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.REMOVED, src_path=tmp_path / "file.txt")

        assert normalizer.normalize(item) == [tmp_path / "file.txt"]

    def test_root_itself(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        item = WatchItem(EventKind.REMOVED, src_path=str(tmp_path))

        assert normalizer.normalize(item) == [tmp_path]

    def test_outside_root_dropped(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        normalizer = PathNormalizer(root)

        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path=str(tmp_path / "other.txt"))) == []
        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path=str(tmp_path / "root2" / "x"))) == []
        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path="../escape.txt")) == []

    def test_empty_path_dropped(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path="")) == []

    def test_nul_path_dropped(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path="bad\x00name")) == []

    def test_unsupported_type_dropped(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        assert normalizer.normalize(WatchItem(EventKind.CREATED, src_path=42)) == []

    def test_non_change_items_ignored(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        assert normalizer.normalize(WatchItem.overflow()) == []
        assert normalizer.normalize(WatchItem.failure(OSError("boom"))) == []

    def test_duplicate_rename_paths_collapsed(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        path = str(tmp_path / "same.txt")
        item = WatchItem(EventKind.RENAMED, src_path=path, dest_path=path)

        assert normalizer.normalize(item) == [tmp_path / "same.txt"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_rebases_resolved_root(self, tmp_path):
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        try:
            link.symlink_to(real, target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks")

        normalizer = PathNormalizer(link)
        item = WatchItem(EventKind.CREATED, src_path=str(real.resolve() / "file.txt"))

        assert normalizer.root == link
        assert normalizer.normalize(item) == [link / "file.txt"]

    def test_contains(self, tmp_path):
        normalizer = PathNormalizer(tmp_path / "root")
        assert normalizer.contains(tmp_path / "root")
        assert normalizer.contains(tmp_path / "root" / "x")
        assert not normalizer.contains(tmp_path)
        assert not normalizer.contains(tmp_path / "rootx")

    def test_relative(self, tmp_path):
        normalizer = PathNormalizer(tmp_path)
        assert normalizer.relative(tmp_path / "a" / "b.txt") == Path("a") / "b.txt"

    def test_relative_outside_root(self, tmp_path):
        normalizer = PathNormalizer(tmp_path / "root")
        with pytest.raises(ValueError):
            normalizer.relative(tmp_path / "other")
