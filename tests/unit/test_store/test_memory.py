"""Unit tests for the in-memory progress store."""

import threading

from branchfeed.store.memory import MemoryProgressStore
from branchfeed.store.protocols import ProgressStore
from tests.helpers.builders import path_of
from tests.helpers.time import FIXED_NOW


class TestMemoryProgressStore:
    """Tests for MemoryProgressStore."""

    def test_satisfies_protocol(self) -> None:
        """Test the store can stand in for the primary store."""
        store: ProgressStore = MemoryProgressStore()
        assert store.load_progress("r", "s") is None

    def test_save_and_replace(self) -> None:
        """Test saves upsert per (reader, story)."""
        store = MemoryProgressStore()
        store.save_progress("r", "s", path_of("A"), FIXED_NOW)
        saved = store.save_progress(
            "r", "s", path_of("AB"), FIXED_NOW, last_node_id="n", completed=True
        )

        loaded = store.load_progress("r", "s")

        assert loaded == saved
        assert loaded is not None
        assert loaded.current_depth == 2
        assert loaded.completed
        assert len(store) == 1

    def test_concurrent_writers(self) -> None:
        """Test parallel saves for different readers are all kept."""
        store = MemoryProgressStore()

        def save(reader: str) -> None:
            store.save_progress(reader, "s", path_of("B"), FIXED_NOW)

        threads = [threading.Thread(target=save, args=(f"r{i}",)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 20
