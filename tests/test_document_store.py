# =============================================================================
# Unit Tests — Document Store
# =============================================================================
#
# Stores uploads in a pytest tmp_path; no services needed.
# =============================================================================

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from pdfmate.errors import DocumentNotFoundError, InputError
from pdfmate.services.storage import DocumentStore, sanitise_filename


class TestSanitiseFilename:
    def test_keeps_safe_names(self):
        assert sanitise_filename("report-2024_v2.pdf") == "report-2024_v2.pdf"

    def test_strips_directories(self):
        assert sanitise_filename("../../etc/passwd") == "passwd"
        assert sanitise_filename("C:\\Users\\me\\notes.pdf") == "notes.pdf"

    def test_replaces_unsafe_characters(self):
        assert sanitise_filename("my report (final).pdf") == "my_report_final_.pdf"

    def test_falls_back_for_empty_names(self):
        assert sanitise_filename("") == "document.pdf"
        assert sanitise_filename("...") == "document.pdf"

    def test_truncates_long_names(self):
        assert len(sanitise_filename("a" * 500 + ".pdf")) == 200


class TestDocumentStore:
    def test_save_writes_bytes(self, tmp_path):
        store = DocumentStore(tmp_path / "uploads")
        stored = store.save(b"%PDF-1.4 data", "notes.pdf")

        assert stored.storage_path.read_bytes() == b"%PDF-1.4 data"
        assert stored.storage_path.parent == tmp_path / "uploads"
        assert stored.id.endswith("-notes.pdf")
        assert stored.original_name == "notes.pdf"
        assert stored.size_bytes == len(b"%PDF-1.4 data")

    def test_empty_upload_rejected(self, tmp_path):
        store = DocumentStore(tmp_path)
        with pytest.raises(InputError):
            store.save(b"", "empty.pdf")

    def test_same_name_gets_distinct_ids(self, tmp_path):
        store = DocumentStore(tmp_path)
        first = store.save(b"one", "same.pdf")
        second = store.save(b"two", "same.pdf")

        assert first.id != second.id
        assert first.storage_path.read_bytes() == b"one"
        assert second.storage_path.read_bytes() == b"two"

    def test_concurrent_uploads_never_collide(self, tmp_path):
        store = DocumentStore(tmp_path)

        def _save(i: int):
            return store.save(f"payload {i}".encode(), "same.pdf")

        with ThreadPoolExecutor(max_workers=8) as pool:
            stored = list(pool.map(_save, range(50)))

        assert len({s.id for s in stored}) == 50
        for i, s in enumerate(stored):
            assert s.storage_path.read_bytes() == f"payload {i}".encode()

    def test_collision_regenerates_id(self, tmp_path):
        store = DocumentStore(tmp_path)
        (tmp_path / "taken-a.pdf").write_bytes(b"existing")

        with patch.object(DocumentStore, "_generate_id", side_effect=["taken-a.pdf", "fresh-a.pdf"]):
            stored = store.save(b"new", "a.pdf")

        assert stored.id == "fresh-a.pdf"
        assert (tmp_path / "taken-a.pdf").read_bytes() == b"existing"

    def test_gives_up_after_repeated_collisions(self, tmp_path):
        store = DocumentStore(tmp_path)
        (tmp_path / "taken-a.pdf").write_bytes(b"existing")

        with patch.object(DocumentStore, "_generate_id", return_value="taken-a.pdf"):
            with pytest.raises(FileExistsError):
                store.save(b"new", "a.pdf")

    def test_resolve_returns_stored_path(self, tmp_path):
        store = DocumentStore(tmp_path)
        stored = store.save(b"data", "a.pdf")
        assert store.resolve(stored.id) == stored.storage_path

    @pytest.mark.parametrize("file_id", ["", ".", "..", "../secret.pdf", "a/b.pdf", "a\\b.pdf"])
    def test_resolve_rejects_malformed_ids(self, tmp_path, file_id):
        store = DocumentStore(tmp_path)
        with pytest.raises(DocumentNotFoundError):
            store.resolve(file_id)

    def test_resolve_unknown_id(self, tmp_path):
        store = DocumentStore(tmp_path)
        with pytest.raises(DocumentNotFoundError):
            store.resolve("123-abc-missing.pdf")
