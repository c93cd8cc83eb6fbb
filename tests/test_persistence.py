"""Tests for persistence stores.

Each store is tested for:
  1. load() on a missing file
  2. persist() then load() round-trips
  3. unreadable/unwritable files raise StoreIOError
  4. Store-specific features
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from fp_alias.errors import StoreIOError
from fp_alias.persistence import AliasEntry, AliasStore, SkipSet
from fp_alias.persistence._base import TextStore
from fp_alias.persistence.skips import HEADER
from tests.fakes import alias_line


# ---------------------------------------------------------------------------
# Base TextStore
# ---------------------------------------------------------------------------


class TestTextStore:
    def test_read_missing_returns_none(self, tmp_path):
        assert TextStore(tmp_path / "nope").read_text() is None

    def test_write_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "deep" / "nested" / "file"
        store = TextStore(path)
        store.write_text("hello\n")
        assert path.read_text() == "hello\n"

    def test_write_leaves_no_temp_files(self, tmp_path):
        store = TextStore(tmp_path / "file")
        store.write_text("a\n")
        store.write_text("b\n")
        assert os.listdir(tmp_path) == ["file"]

    def test_failed_replace_keeps_old_content(self, tmp_path):
        path = tmp_path / "file"
        path.write_text("old\n")
        store = TextStore(path)
        with patch("fp_alias.persistence._base.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreIOError, match="file"):
                store.write_text("new\n")
        assert path.read_text() == "old\n"
        assert os.listdir(tmp_path) == ["file"]

    def test_write_preserves_mode(self, tmp_path):
        path = tmp_path / "file"
        path.write_text("old\n")
        path.chmod(0o640)
        TextStore(path).write_text("new\n")
        assert path.stat().st_mode & 0o777 == 0o640

    def test_line_endings_untranslated(self, tmp_path):
        path = tmp_path / "file"
        store = TextStore(path)
        store.write_text("a\r\nb\n")
        assert path.read_bytes() == b"a\r\nb\n"
        assert store.read_text() == "a\r\nb\n"

    def test_unreadable_raises(self, tmp_path):
        # A directory cannot be read as text.
        with pytest.raises(StoreIOError, match=str(tmp_path)):
            TextStore(tmp_path).read_text()

    def test_ensure_exists(self, tmp_path):
        path = tmp_path / "a" / "b"
        TextStore(path).ensure_exists()
        assert path.exists()
        assert path.read_text() == ""


# ---------------------------------------------------------------------------
# AliasEntry
# ---------------------------------------------------------------------------


class TestAliasEntry:
    def test_parse_and_format(self):
        line = alias_line("firefox", "org.mozilla.firefox")
        entry = AliasEntry.parse(line)
        assert entry == AliasEntry("firefox", "org.mozilla.firefox")
        assert entry.to_line() == line

    @pytest.mark.parametrize(
        "line",
        [
            'alias ff="flatpak  run org.mozilla.firefox"',
            "alias ff='flatpak run org.mozilla.firefox'",
            'alias ff="flatpak run org.mozilla.firefox --new-window"',
            ' alias ff="flatpak run org.mozilla.firefox"',
            'alias ll="ls -la"',
            "# alias ff=\"flatpak run org.mozilla.firefox\"",
            "",
        ],
    )
    def test_non_entries_are_passengers(self, line):
        assert AliasEntry.parse(line) is None


# ---------------------------------------------------------------------------
# AliasStore
# ---------------------------------------------------------------------------


class TestAliasStore:
    def test_load_missing_creates_empty_file(self, alias_path):
        store = AliasStore.load(alias_path)
        assert store.entries == []
        assert alias_path.exists()
        assert store.serialize() == ""

    def test_load_unreadable_raises(self, tmp_path):
        with pytest.raises(StoreIOError):
            AliasStore.load(tmp_path)

    def test_parse_entries_and_passengers(self, alias_path):
        alias_path.parent.mkdir(parents=True)
        alias_path.write_text(
            "# managed by add-fp-alias\n"
            + alias_line("firefox", "org.mozilla.firefox")
            + "\n"
            + 'alias ll="ls -la"\n'
            + alias_line("gimp", "org.gimp.GIMP")
            + "\n"
        )
        store = AliasStore.load(alias_path)
        assert [e.alias_name for e in store.entries] == ["firefox", "gimp"]
        assert store.passengers == ["# managed by add-fp-alias", 'alias ll="ls -la"']

    def test_round_trip_is_verbatim(self, alias_path):
        text = (
            "# header\n"
            "\n"
            + alias_line("a", "org.a.A")
            + "\n"
            + "export FOO=1\n"
            + 'alias ff="flatpak  run org.mozilla.firefox"\n'
            + alias_line("b", "org.b.B")
            + "\n"
        )
        alias_path.parent.mkdir(parents=True)
        alias_path.write_text(text)
        store = AliasStore.load(alias_path)
        assert store.serialize() == text
        store.persist()
        assert AliasStore.load(alias_path).serialize() == text

    def test_odd_line_breaks_survive_mutation(self, alias_path):
        text = (
            "# note\x0cpage\n"
            "export X=1\r\n"
            "# sep still one line\n"
            + alias_line("a", "org.a.A")
            + "\n"
        )
        alias_path.parent.mkdir(parents=True)
        alias_path.write_bytes(text.encode("utf-8"))

        store = AliasStore.load(alias_path)
        assert len(store.passengers) == 3
        store.upsert("org.b.B", "b")
        store.persist()

        expected = text + alias_line("b", "org.b.B") + "\n"
        assert alias_path.read_bytes() == expected.encode("utf-8")

    def test_missing_final_newline(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"# no newline")
        store = AliasStore.load(path)
        assert store.passengers == ["# no newline"]
        assert store.serialize() == "# no newline\n"

    def test_find_first_match(self, tmp_path):
        store = AliasStore(
            tmp_path / "f",
            [
                AliasEntry("fx", "org.mozilla.firefox"),
                AliasEntry("firefox", "org.mozilla.firefox"),
            ],
        )
        assert store.find_by_app_id("org.mozilla.firefox").alias_name == "fx"
        assert store.find_by_alias_name("firefox").app_id == "org.mozilla.firefox"
        assert store.find_by_app_id("org.gimp.GIMP") is None
        assert store.find_by_alias_name("gimp") is None

    def test_upsert_uniqueness(self, alias_path):
        store = AliasStore.load(alias_path)
        store.upsert("org.mozilla.firefox", "fx")
        store.upsert("org.mozilla.firefox", "firefox")
        store.upsert("com.example.Other", "firefox")
        store.persist()

        reloaded = AliasStore.load(alias_path)
        assert reloaded.entries == [AliasEntry("firefox", "com.example.Other")]
        assert reloaded.find_by_app_id("org.mozilla.firefox") is None

    def test_upsert_removes_both_sides(self, tmp_path):
        store = AliasStore(
            tmp_path / "f",
            [
                "# keep me",
                AliasEntry("fx", "org.mozilla.firefox"),
                AliasEntry("gimp", "org.gimp.GIMP"),
                AliasEntry("firefox", "org.other.App"),
            ],
        )
        store.upsert("org.mozilla.firefox", "firefox")
        assert store.entries == [
            AliasEntry("gimp", "org.gimp.GIMP"),
            AliasEntry("firefox", "org.mozilla.firefox"),
        ]
        assert store.passengers == ["# keep me"]

    def test_upsert_idempotent(self, alias_path, tmp_path):
        alias_path.parent.mkdir(parents=True)
        alias_path.write_text("# header\n" + alias_line("gimp", "org.gimp.GIMP") + "\n")

        once = AliasStore.load(alias_path)
        once.upsert("org.mozilla.firefox", "firefox")
        once.persist(tmp_path / "once")

        twice = AliasStore.load(alias_path)
        twice.upsert("org.mozilla.firefox", "firefox")
        twice.upsert("org.mozilla.firefox", "firefox")
        twice.persist(tmp_path / "twice")

        assert (tmp_path / "once").read_bytes() == (tmp_path / "twice").read_bytes()

    def test_upsert_appends_at_end(self, tmp_path):
        store = AliasStore(tmp_path / "f", [AliasEntry("a", "org.a.A"), "# trailing"])
        store.upsert("org.b.B", "b")
        assert store.serialize().splitlines()[-1] == alias_line("b", "org.b.B")

    def test_remove_by_either_key(self, tmp_path):
        entries = [
            AliasEntry("fx", "org.mozilla.firefox"),
            AliasEntry("firefox", "org.mozilla.firefox"),
            AliasEntry("gimp", "org.gimp.GIMP"),
        ]
        by_id = AliasStore(tmp_path / "f", list(entries))
        assert len(by_id.remove("org.mozilla.firefox")) == 2
        assert by_id.entries == [AliasEntry("gimp", "org.gimp.GIMP")]

        by_name = AliasStore(tmp_path / "f", list(entries))
        assert by_name.remove("gimp") == [AliasEntry("gimp", "org.gimp.GIMP")]
        assert len(by_name) == 2

    def test_remove_entry_takes_one_line(self, alias_path):
        line = alias_line("b", "org.b.B")
        alias_path.parent.mkdir(parents=True)
        alias_path.write_text(f"{line}\n# mid\n{line}\n")
        store = AliasStore.load(alias_path)
        second = store.entries[1]
        assert store.remove_entry(second) == [second]
        assert store.serialize() == f"{line}\n# mid\n"

    def test_remove_missing_is_empty(self, tmp_path):
        store = AliasStore(tmp_path / "f", [AliasEntry("a", "org.a.A")])
        assert store.remove("nope") == []
        assert len(store) == 1

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_purge_keeps_passengers(self, tmp_path, count):
        lines = ["# top", 'alias ll="ls -la"']
        lines += [AliasEntry(f"a{i}", f"org.app.A{i}") for i in range(count)]
        lines.append("# bottom")
        store = AliasStore(tmp_path / "f", lines)
        assert store.purge() == count
        assert store.serialize() == '# top\nalias ll="ls -la"\n# bottom\n'

    def test_app_ids_distinct_in_order(self, tmp_path):
        store = AliasStore(
            tmp_path / "f",
            [AliasEntry("b", "org.b.B"), AliasEntry("a", "org.a.A"), AliasEntry("bb", "org.b.B")],
        )
        assert store.app_ids == ["org.b.B", "org.a.A"]

    def test_snapshot(self, alias_path, tmp_path):
        alias_path.parent.mkdir(parents=True)
        alias_path.write_text(alias_line("a", "org.a.A") + "\n")
        store = AliasStore.load(alias_path)
        target = store.snapshot(tmp_path / "backup" / "aliases.sh")
        assert target.read_text() == alias_path.read_text()

    def test_snapshot_missing_source(self, tmp_path):
        store = AliasStore(tmp_path / "missing")
        with pytest.raises(StoreIOError, match="missing"):
            store.snapshot(tmp_path / "backup.sh")


# ---------------------------------------------------------------------------
# SkipSet
# ---------------------------------------------------------------------------


class TestSkipSet:
    def test_load_missing_is_empty(self, skip_path):
        skips = SkipSet.load(skip_path)
        assert len(skips) == 0
        assert not skip_path.exists()

    def test_load_ignores_comments_and_blanks(self, skip_path):
        skip_path.parent.mkdir(parents=True)
        skip_path.write_text("# comment\n\norg.gimp.GIMP\n  org.mozilla.firefox  \n")
        skips = SkipSet.load(skip_path)
        assert skips.ids == ["org.gimp.GIMP", "org.mozilla.firefox"]
        assert skips.contains("org.gimp.GIMP")
        assert "org.mozilla.firefox" in skips

    def test_add_remove_idempotent(self, skip_path):
        skips = SkipSet.load(skip_path)
        assert skips.add("org.gimp.GIMP") is True
        assert skips.add("org.gimp.GIMP") is False
        assert skips.remove("org.gimp.GIMP") is True
        assert skips.remove("org.gimp.GIMP") is False
        assert len(skips) == 0

    def test_persist_header_and_sorted(self, skip_path):
        skips = SkipSet.load(skip_path)
        for app_id in ("org.z.Z", "com.a.A", "org.m.M"):
            skips.add(app_id)
        skips.persist()
        assert skip_path.read_text() == HEADER + "com.a.A\norg.m.M\norg.z.Z\n"
        assert SkipSet.load(skip_path).ids == ["com.a.A", "org.m.M", "org.z.Z"]

    def test_persist_empty_writes_header(self, skip_path):
        SkipSet.load(skip_path).persist()
        assert skip_path.read_text() == HEADER
