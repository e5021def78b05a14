# Overview: Threaded writers against one register on a file-backed database.

import gc
import os
import tempfile
import threading
import unittest

from cashbox import create_app
from cashbox.extensions import db
from cashbox.models import CashMovement, CashRegister
from cashbox.services import audit_service, movement_service, register_service, summary_service
from cashbox.services import concurrency
from cashbox.validation import RegisterClosedError

TENANT = "acme"
BRANCH = "centro"


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "CASH_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()
            register = register_service.open_register(TENANT, BRANCH, "opener", 10000)
            self.register_id = register.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count):
        errors = []

        def wrapper(index):
            with self.app.app_context():
                try:
                    target(index)
                except Exception as exc:
                    errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=wrapper, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_concurrent_appends_keep_balance_and_sequence(self):
        def append(index):
            movement_service.append_movement(
                TENANT, BRANCH, f"cashier-{index}", self.register_id, "SALE", 100,
            )

        errors = self._run_threads(append, 20)
        self.assertEqual(errors, [])

        with self.app.app_context():
            register = db.session.get(CashRegister, self.register_id)
            self.assertEqual(register.current_balance_cents, 10000 + 20 * 100)
            self.assertEqual(register.movement_sequence, 20)

            sequences = sorted(
                m.sequence for m in db.session.query(CashMovement).filter_by(register_id=self.register_id)
            )
            self.assertEqual(sequences, list(range(1, 21)))
            self.assertTrue(
                summary_service.check_ledger_integrity(TENANT, BRANCH, self.register_id).is_consistent
            )

    def test_audit_interleaved_with_appends(self):
        def work(index):
            if index == 0:
                audit_service.perform_audit(TENANT, BRANCH, "supervisor", self.register_id, 0)
            else:
                movement_service.append_movement(
                    TENANT, BRANCH, "cashier", self.register_id, "INCOME", 50,
                )

        errors = self._run_threads(work, 10)
        self.assertEqual(errors, [])

        with self.app.app_context():
            check = summary_service.check_ledger_integrity(TENANT, BRANCH, self.register_id)
            self.assertTrue(check.is_consistent)
            self.assertEqual(check.movement_count, db.session.query(CashMovement).count())

    def test_lock_registry_releases_idle_locks(self):
        def append(index):
            movement_service.append_movement(
                TENANT, BRANCH, "cashier", self.register_id, "SALE", 100,
            )

        errors = self._run_threads(append, 5)
        self.assertEqual(errors, [])

        gc.collect()
        self.assertNotIn(self.register_id, concurrency._register_locks)
        self.assertNotIn((TENANT, BRANCH), concurrency._register_locks)

    def test_close_races_with_appends(self):
        def work(index):
            if index == 0:
                register_service.close_register(TENANT, BRANCH, self.register_id, "closer")
            else:
                try:
                    movement_service.append_movement(
                        TENANT, BRANCH, "cashier", self.register_id, "SALE", 100,
                    )
                except RegisterClosedError:
                    pass

        errors = self._run_threads(work, 10)
        self.assertEqual(errors, [])

        with self.app.app_context():
            register = db.session.get(CashRegister, self.register_id)
            self.assertEqual(register.status, "CLOSED")
            appended = db.session.query(CashMovement).filter_by(register_id=self.register_id).count()
            self.assertEqual(register.current_balance_cents, 10000 + appended * 100)
            # Nothing lands after the close
            late = db.session.query(CashMovement).filter(
                CashMovement.register_id == self.register_id,
                CashMovement.created_at > register.closed_at,
            ).count()
            self.assertEqual(late, 0)


if __name__ == "__main__":
    unittest.main()
