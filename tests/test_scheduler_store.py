from __future__ import annotations

import os
import shutil
import sqlite3
import tempfile
import unittest

from db.migrate import apply_sqlite_migrations
from scheduler.store import KEEP_ALARM
from scheduler.store import MEMOS_FIELD
from scheduler.store import QUEUE_FIELD
from scheduler.store import commit_batch_sync
from scheduler.store import get_alarm_sync
from scheduler.store import get_field_sync
from scheduler.store import list_due_alarms_sync
from scheduler.store import next_alarm_at_sync


MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


class MigrationTests(unittest.TestCase):
    def test_migrations_apply_once(self):
        conn = sqlite3.connect(":memory:")
        try:
            first = apply_sqlite_migrations(conn, MIGRATIONS_DIR)
            second = apply_sqlite_migrations(conn, MIGRATIONS_DIR)
            self.assertIn("0001", first)
            self.assertEqual(second, [])
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
            self.assertTrue({"actor_fields", "actor_alarms", "schema_migrations"} <= tables)
        finally:
            conn.close()

    def test_changed_migration_content_is_refused(self):
        tmp = tempfile.mkdtemp()
        try:
            path = os.path.join(tmp, "0001_demo.sql")
            with open(path, "w", encoding="utf-8") as f:
                f.write("CREATE TABLE demo (id INTEGER);\n")
            conn = sqlite3.connect(":memory:")
            try:
                self.assertEqual(apply_sqlite_migrations(conn, tmp), ["0001"])
                with open(path, "a", encoding="utf-8") as f:
                    f.write("-- edited\n")
                with self.assertRaises(RuntimeError):
                    apply_sqlite_migrations(conn, tmp)
            finally:
                conn.close()
        finally:
            shutil.rmtree(tmp)

    def test_missing_directory_is_an_error(self):
        conn = sqlite3.connect(":memory:")
        try:
            with self.assertRaises(RuntimeError):
                apply_sqlite_migrations(conn, os.path.join(MIGRATIONS_DIR, "does-not-exist"))
        finally:
            conn.close()


class CommitBatchTests(unittest.TestCase):
    def setUp(self):
        self.conn = sqlite3.connect(":memory:")
        apply_sqlite_migrations(self.conn, MIGRATIONS_DIR)

    def tearDown(self):
        self.conn.close()

    def test_put_and_arm_together(self):
        commit_batch_sync(self.conn, "1:2", put={QUEUE_FIELD: [{"a": 1}], MEMOS_FIELD: []}, alarm_at=1000)

        self.assertEqual(get_field_sync(self.conn, "1:2", QUEUE_FIELD), [{"a": 1}])
        self.assertEqual(get_field_sync(self.conn, "1:2", MEMOS_FIELD), [])
        self.assertEqual(get_alarm_sync(self.conn, "1:2"), 1000)

    def test_arming_replaces_previous_deadline(self):
        commit_batch_sync(self.conn, "1:2", alarm_at=5000)
        commit_batch_sync(self.conn, "1:2", alarm_at=2000)

        self.assertEqual(get_alarm_sync(self.conn, "1:2"), 2000)
        count = self.conn.execute("SELECT COUNT(*) FROM actor_alarms").fetchone()[0]
        self.assertEqual(count, 1)

    def test_keep_alarm_and_cancel(self):
        commit_batch_sync(self.conn, "1:2", alarm_at=5000)
        commit_batch_sync(self.conn, "1:2", put={MEMOS_FIELD: ["x"]}, alarm_at=KEEP_ALARM)
        self.assertEqual(get_alarm_sync(self.conn, "1:2"), 5000)

        commit_batch_sync(self.conn, "1:2", alarm_at=None)
        self.assertIsNone(get_alarm_sync(self.conn, "1:2"))

    def test_delete_field(self):
        commit_batch_sync(self.conn, "1:2", put={MEMOS_FIELD: [{"text": "x"}]})
        commit_batch_sync(self.conn, "1:2", delete=[MEMOS_FIELD])
        self.assertIsNone(get_field_sync(self.conn, "1:2", MEMOS_FIELD))

    def test_failed_batch_rolls_back(self):
        commit_batch_sync(self.conn, "1:2", put={QUEUE_FIELD: ["before"]}, alarm_at=100)
        self.conn.execute("DROP TABLE actor_alarms")

        with self.assertRaises(sqlite3.Error):
            commit_batch_sync(self.conn, "1:2", put={QUEUE_FIELD: ["after"]}, alarm_at=200)
        self.assertEqual(get_field_sync(self.conn, "1:2", QUEUE_FIELD), ["before"])

    def test_due_alarms_in_deadline_order(self):
        commit_batch_sync(self.conn, "1:a", alarm_at=300)
        commit_batch_sync(self.conn, "1:b", alarm_at=100)
        commit_batch_sync(self.conn, "1:c", alarm_at=900)

        self.assertEqual(list_due_alarms_sync(self.conn, 300), [("1:b", 100), ("1:a", 300)])
        self.assertEqual(list_due_alarms_sync(self.conn, 300, limit=1), [("1:b", 100)])
        self.assertEqual(next_alarm_at_sync(self.conn), 100)

    def test_next_alarm_when_none_armed(self):
        self.assertIsNone(next_alarm_at_sync(self.conn))
        self.assertEqual(list_due_alarms_sync(self.conn, 10**15), [])


if __name__ == "__main__":
    unittest.main()
