import os
import sqlite3
import tempfile
import unittest

from workout_engine.audit_log import AuditDB, AuditLog, AuditRecord


def _record(request_id, user_id="user-1", outcome="success", cost=0.01, from_cache=False):
    return AuditRecord(
        request_id=request_id,
        timestamp="2026-03-01T10:00:00+00:00",
        user_id=user_id,
        request_type="workout",
        model="claude-sonnet-4-5",
        request_hash="a" * 64,
        response_hash="b" * 64,
        from_cache=from_cache,
        outcome=outcome,
        error_code="",
        attempts=1,
        input_tokens=1200,
        output_tokens=800,
        cost_usd=cost,
        latency_ms=950,
    )


class AuditLogTests(unittest.TestCase):
    def test_memory_log_is_bounded_and_summarized(self):
        log = AuditLog(max_records=2)
        log.append(_record("r1", outcome="success"))
        log.append(_record("r2", outcome="cache_hit", cost=0.0, from_cache=True))
        log.append(_record("r3", user_id="user-2", outcome="error"))

        self.assertEqual(len(log), 2)
        self.assertEqual([r.request_id for r in log.records()], ["r2", "r3"])
        self.assertEqual([r.request_id for r in log.records("user-2")], ["r3"])

        summary = log.summary()
        self.assertEqual(summary["outcomes"], {"cache_hit": 1, "error": 1})
        self.assertEqual(summary["cache_hits"], 1)
        self.assertAlmostEqual(summary["cost_usd"], 0.01)

    def test_records_persist_to_sqlite(self):
        with tempfile.TemporaryDirectory() as tmp:
            db = AuditDB(os.path.join(tmp, "nested", "audit.db"))
            try:
                db.init_schema()
                log = AuditLog(db=db)
                log.append(_record("r1", cost=0.02))
                log.append(_record("r2", user_id="user-2", cost=0.03, from_cache=True))

                rows = db.fetch_records()
                self.assertEqual([r.request_id for r in rows], ["r2", "r1"])
                self.assertTrue(rows[0].from_cache)
                self.assertEqual(rows[1], _record("r1", cost=0.02))

                self.assertAlmostEqual(db.total_cost(), 0.05)
                self.assertAlmostEqual(db.total_cost("user-2"), 0.03)
                self.assertEqual(len(db.fetch_records(user_id="user-1")), 1)
            finally:
                db.close()

    def test_duplicate_request_id_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            db = AuditDB(os.path.join(tmp, "audit.db"))
            try:
                db.init_schema()
                db.insert_record(_record("r1"))
                with self.assertRaises(sqlite3.IntegrityError):
                    db.insert_record(_record("r1"))
                self.assertEqual(len(db.fetch_records()), 1)
            finally:
                db.close()


if __name__ == "__main__":
    unittest.main()
