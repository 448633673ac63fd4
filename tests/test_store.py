import hashlib
import json
import os
import tempfile
import unittest
from unittest import mock

import lumina_core.store as store_mod

from game import (
    Difficulty,
    ProgressStore,
    STORE_VERSION,
    find_store_document,
    image_id_from_bytes,
    image_id_from_file,
)


class TestProgressStore(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._td.name, "progress.json")
        self.store = ProgressStore(self.path)

    def tearDown(self):
        self.store.close()
        self._td.cleanup()

    def _cells(self, value, n=64):
        return [value] * n

    def _write_raw(self, doc_text):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(doc_text)

    def test_given_set_with_progress_when_get_then_difficulty_locked_and_cells_returned(self):
        cells = self._cells(0.5)
        self.store.set("img1", Difficulty.HARD, 8, 8, cells, 0.5)
        entry = self.store.get("img1")
        self.assertIsNotNone(entry)
        assert entry is not None
        self.assertEqual(entry.locked_difficulty, Difficulty.HARD)
        self.assertEqual(entry.progress01, 0.5)
        self.assertEqual((entry.grid_x, entry.grid_y), (8, 8))
        self.assertEqual(entry.cells, cells)
        self.assertGreater(entry.last_updated, 0)

    def test_given_later_set_with_progress_when_get_then_difficulty_restamped(self):
        self.store.set("img1", Difficulty.HARD, 8, 8, self._cells(0.5), 0.5)
        self.store.set("img1", Difficulty.EASY, 8, 8, self._cells(0.7), 0.7)
        entry = self.store.get("img1")
        assert entry is not None
        # Every positive-progress save re-stamps the locked difficulty
        self.assertEqual(entry.locked_difficulty, Difficulty.EASY)
        self.assertAlmostEqual(entry.progress01, 0.7)

    def test_given_later_set_with_zero_progress_when_get_then_difficulty_kept(self):
        self.store.set("img1", Difficulty.HARD, 8, 8, self._cells(0.5), 0.5)
        self.store.set("img1", Difficulty.EASY, 8, 8, self._cells(0.0), 0.0)
        entry = self.store.get("img1")
        assert entry is not None
        self.assertEqual(entry.locked_difficulty, Difficulty.HARD)
        self.assertEqual(entry.progress01, 0.0)

    def test_given_first_set_with_zero_progress_when_get_then_entry_created_with_given_difficulty(self):
        self.store.set("img2", Difficulty.MEDIUM, 12, 12, self._cells(0.0, 144), 0.0)
        entry = self.store.get("img2")
        assert entry is not None
        self.assertEqual(entry.locked_difficulty, Difficulty.MEDIUM)

    def test_given_entry_when_reset_then_not_found_and_file_updated(self):
        self.store.set("img1", Difficulty.HARD, 8, 8, self._cells(0.5), 0.5)
        self.store.reset("img1")
        self.assertIsNone(self.store.get("img1"))
        with open(self.path, encoding="utf-8") as f:
            doc = json.load(f)
        self.assertEqual(doc["entries"], [])

    def test_given_absent_entry_when_reset_then_noop_without_writing(self):
        self.store.reset("nope")
        self.assertFalse(os.path.exists(self.path))
        self.store.set("", Difficulty.EASY, 8, 8, [], 0.5)
        self.assertFalse(os.path.exists(self.path))
        self.assertIsNone(self.store.get(""))

    def test_given_saved_store_when_reopened_then_entries_persist_in_document_format(self):
        cells = [0.0] * 63 + [1.0]
        self.store.set("img1", Difficulty.MEDIUM, 8, 8, cells, 1 / 64)
        with open(self.path, encoding="utf-8") as f:
            doc = json.load(f)
        self.assertEqual(doc["version"], STORE_VERSION)
        rec = doc["entries"][0]
        self.assertEqual(
            set(rec.keys()),
            {"imageId", "lockedDifficulty", "progress01", "gridX", "gridY", "cells", "lastUpdated"},
        )
        self.assertEqual(rec["lockedDifficulty"], 1)
        self.assertIsInstance(rec["lastUpdated"], int)

        with ProgressStore(self.path) as other:
            entry = other.get("img1")
        assert entry is not None
        self.assertEqual(entry.cells, cells)
        self.assertEqual(entry.locked_difficulty, Difficulty.MEDIUM)

    def test_given_caller_lists_when_mutated_then_store_keeps_defensive_copies(self):
        cells = self._cells(0.25)
        self.store.set("img1", Difficulty.EASY, 8, 8, cells, 0.25)
        cells[0] = 1.0
        got = self.store.get("img1")
        assert got is not None
        self.assertEqual(got.cells[0], 0.25)
        got.cells[1] = 1.0
        got.progress01 = 1.0
        again = self.store.get("img1")
        assert again is not None
        self.assertEqual(again.cells[1], 0.25)
        self.assertEqual(again.progress01, 0.25)

    def test_given_out_of_range_inputs_when_set_then_sanitized(self):
        self.store.set("img1", Difficulty.HARD, 0, -5, None, 3.0)
        entry = self.store.get("img1")
        assert entry is not None
        self.assertEqual(entry.progress01, 1.0)
        self.assertEqual((entry.grid_x, entry.grid_y), (1, 1))
        self.assertEqual(entry.cells, [])

    def test_given_unsanitized_document_when_loaded_then_get_returns_clamped_copy(self):
        self._write_raw(json.dumps({
            "version": 1,
            "entries": [
                {"imageId": "bad", "lockedDifficulty": 9, "progress01": 1.7,
                 "gridX": 0, "gridY": -2, "cells": None, "lastUpdated": 5},
                {"imageId": "neg", "lockedDifficulty": -3, "progress01": -0.5,
                 "gridX": "x", "gridY": 4, "cells": [0.5, "junk"]},
                {"lockedDifficulty": 1, "progress01": 0.5},
                "not-an-object",
            ],
        }))
        bad = self.store.get("bad")
        assert bad is not None
        self.assertEqual(bad.locked_difficulty, Difficulty.HARD)
        self.assertEqual(bad.progress01, 1.0)
        self.assertEqual((bad.grid_x, bad.grid_y), (1, 1))
        self.assertEqual(bad.cells, [])
        neg = self.store.get("neg")
        assert neg is not None
        self.assertEqual(neg.locked_difficulty, Difficulty.EASY)
        self.assertEqual(neg.progress01, 0.0)
        self.assertEqual((neg.grid_x, neg.grid_y), (1, 4))
        self.assertEqual(neg.cells, [0.5, 0.0])
        self.assertEqual(sorted(self.store.image_ids()), ["bad", "neg"])

    def test_given_corrupt_document_when_loaded_then_empty_store_logged_and_file_kept(self):
        self._write_raw("{not json")
        with self.assertLogs("lumina_core", level="ERROR"):
            self.assertIsNone(self.store.get("img1"))
        with open(self.path, encoding="utf-8") as f:
            self.assertEqual(f.read(), "{not json")
        # Next successful write replaces the corrupt file
        self.store.set("img1", Difficulty.EASY, 8, 8, self._cells(0.1), 0.1)
        with open(self.path, encoding="utf-8") as f:
            doc = json.load(f)
        self.assertEqual([e["imageId"] for e in doc["entries"]], ["img1"])

    def test_given_wrong_shape_document_when_loaded_then_empty_store(self):
        self._write_raw("[1, 2, 3]")
        with self.assertLogs("lumina_core", level="ERROR"):
            self.assertEqual(self.store.entries(), [])

    def test_given_unwritable_target_when_saving_then_error_logged_not_raised(self):
        target = os.path.join(self._td.name, "is_a_dir")
        os.makedirs(target)
        store = ProgressStore(target)
        with self.assertLogs("lumina_core", level="ERROR"):
            store.set("img1", Difficulty.EASY, 8, 8, self._cells(0.1), 0.1)
        # In-memory state still reflects the call
        self.assertIsNotNone(store.get("img1"))

    def test_given_nested_path_when_saving_then_directories_created(self):
        nested = os.path.join(self._td.name, "deep", "nest", "progress.json")
        store = ProgressStore(nested)
        store.set("img1", Difficulty.EASY, 8, 8, self._cells(0.1), 0.1)
        self.assertTrue(os.path.isfile(nested))

    def test_given_store_lifecycle_when_closed_and_reopened_then_reloads_from_disk(self):
        self.assertFalse(self.store.is_open)
        with self.store as s:
            self.assertTrue(s.is_open)
            s.set("img1", Difficulty.EASY, 8, 8, self._cells(0.1), 0.1)
        self.assertFalse(self.store.is_open)
        # Another writer replaces the document while closed
        self._write_raw(json.dumps({"version": 1, "entries": []}))
        self.store.open()
        self.assertIsNone(self.store.get("img1"))


class TestReadOnlyLocation(unittest.TestCase):
    """Store documents living in a directory the process cannot write to."""

    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.ro_dir = os.path.join(self._td.name, "readonly")
        self.fallback_dir = os.path.join(self._td.name, "fallback")
        os.makedirs(self.ro_dir)
        self.path = os.path.join(self.ro_dir, "progress.json")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"version": 1, "entries": [{
                "imageId": "img1", "lockedDifficulty": 2, "progress01": 0.5,
                "gridX": 2, "gridY": 1, "cells": [1.0, 0.0], "lastUpdated": 1,
            }]}, f)
        # Older than anything written during the test
        os.utime(self.path, (1, 1))

        real_is_writable = store_mod._is_writable_dir
        ro_dir = os.path.abspath(self.ro_dir)
        self.write_checks = []

        def is_writable(directory):
            self.write_checks.append(directory)
            return os.path.abspath(directory) != ro_dir and real_is_writable(directory)

        self._patches = [
            mock.patch.object(store_mod, "_can_write", lambda d: os.path.abspath(d) != ro_dir),
            mock.patch.object(store_mod, "_is_writable_dir", is_writable),
            mock.patch.dict(os.environ, {"LUMINA_SAVE_DIR": self.fallback_dir}),
            mock.patch.object(store_mod.tempfile, "gettempdir", lambda: self.fallback_dir),
        ]
        for p in self._patches:
            p.start()

    def tearDown(self):
        for p in reversed(self._patches):
            p.stop()
        self._td.cleanup()

    def test_given_document_in_readonly_dir_when_get_then_saved_entry_returned_without_write_checks(self):
        store = ProgressStore(self.path)
        entry = store.get("img1")
        assert entry is not None
        self.assertEqual(entry.locked_difficulty, Difficulty.HARD)
        self.assertEqual(entry.cells, [1.0, 0.0])
        self.assertEqual(self.write_checks, [])
        self.assertFalse(os.path.exists(self.fallback_dir))

    def test_given_readonly_dir_when_saving_then_fallback_written_and_read_back_later(self):
        store = ProgressStore(self.path)
        store.set("img2", Difficulty.EASY, 2, 1, [1.0, 1.0], 1.0)
        fallback = os.path.join(self.fallback_dir, "progress.json")
        self.assertEqual(store.file_path, fallback)
        with open(fallback, "r", encoding="utf-8") as f:
            ids = [e["imageId"] for e in json.load(f)["entries"]]
        self.assertEqual(sorted(ids), ["img1", "img2"])

        self.assertEqual(find_store_document(self.path), fallback)
        again = ProgressStore(self.path)
        self.assertIsNotNone(again.get("img1"))
        self.assertIsNotNone(again.get("img2"))


class TestContentIdentity(unittest.TestCase):
    def test_given_bytes_when_hashing_then_sha1_hex(self):
        data = b"\x89PNG fake image bytes"
        self.assertEqual(image_id_from_bytes(data), hashlib.sha1(data).hexdigest())

    def test_given_same_content_at_two_paths_when_hashing_then_same_id(self):
        with tempfile.TemporaryDirectory() as td:
            a = os.path.join(td, "a.png")
            b = os.path.join(td, "renamed", "b.png")
            os.makedirs(os.path.dirname(b))
            for p in (a, b):
                with open(p, "wb") as f:
                    f.write(b"same pixels" * 10000)
            self.assertEqual(image_id_from_file(a), image_id_from_file(b))
            with open(b, "ab") as f:
                f.write(b"edit")
            self.assertNotEqual(image_id_from_file(a), image_id_from_file(b))


if __name__ == '__main__':
    unittest.main(verbosity=2)
