# Overview: Multi-threaded checks for stock, numbering and void safeguards on a file database.

"""
Concurrency tests.

Each test runs against its own SQLite file so that worker threads get
separate connections and really contend for the write lock.
"""
import os
import tempfile
import threading
import unittest

from app import create_app
from app.config import TestConfig
from app.errors import AlreadyVoidError, InsufficientStockError
from app.extensions import db
from app.models import Product, Sale, Supplier, User
from app.services import inventory_service, sales_service


def _file_config(db_path: str):
    return type(
        "ConcurrencyConfig",
        (TestConfig,),
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"timeout": 30, "check_same_thread": False},
            },
        },
    )


class ConcurrencyTests(unittest.TestCase):
    WORKERS = 10

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app(_file_config(db_path))

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            supplier = Supplier(company_name="Concurrency Supplies")
            db.session.add(supplier)
            db.session.flush()

            user = User(username="concurrent_user", email="concurrent@example.com", role="staff")
            db.session.add(user)

            product = Product(
                sku="CONCUR-1",
                name="Concurrent Product",
                price_cents=1000,
                stock_quantity=5,
                supplier_id=supplier.id,
            )
            db.session.add(product)
            db.session.commit()
            self.user_id = user.id
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_workers(self, target, count):
        results = []
        errors = []
        lock = threading.Lock()
        barrier = threading.Barrier(count)

        def worker(index):
            with self.app.app_context():
                try:
                    barrier.wait()
                    outcome = target(index)
                    with lock:
                        results.append(outcome)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def _buy_one(self, _index):
        sale = sales_service.create_sale(
            [{"product_id": self.product_id, "quantity": 1}],
            payment_method="cash",
            actor_id=self.user_id,
        )
        return sale.sale_number

    def test_sale_numbers_unique_under_contention(self):
        with self.app.app_context():
            inventory_service.adjust_stock(self.product_id, 100, "set")

        numbers, errors = self._run_workers(self._buy_one, self.WORKERS)

        self.assertFalse(errors)
        self.assertEqual(len(numbers), self.WORKERS)
        self.assertEqual(len(set(numbers)), self.WORKERS)
        sequences = sorted(int(n.rsplit("-", 1)[1]) for n in numbers)
        self.assertEqual(sequences, list(range(1, self.WORKERS + 1)))

        with self.app.app_context():
            self.assertEqual(inventory_service.get_stock(self.product_id), 100 - self.WORKERS)

    def test_concurrent_sales_never_oversell(self):
        numbers, errors = self._run_workers(self._buy_one, self.WORKERS)

        self.assertEqual(len(numbers), 5)
        self.assertEqual(len(errors), self.WORKERS - 5)
        self.assertTrue(all(isinstance(e, InsufficientStockError) for e in errors))

        with self.app.app_context():
            self.assertEqual(inventory_service.get_stock(self.product_id), 0)
            self.assertEqual(db.session.query(Sale).count(), 5)

    def test_concurrent_voids_restore_once(self):
        with self.app.app_context():
            sale = sales_service.create_sale(
                [{"product_id": self.product_id, "quantity": 3}],
                payment_method="cash",
                actor_id=self.user_id,
            )
            sale_id = sale.id
            self.assertEqual(inventory_service.get_stock(self.product_id), 2)

        def void(_index):
            return sales_service.void_sale(sale_id, self.user_id).id

        voided, errors = self._run_workers(void, 5)

        self.assertEqual(voided, [sale_id])
        self.assertEqual(len(errors), 4)
        self.assertTrue(all(isinstance(e, AlreadyVoidError) for e in errors))

        with self.app.app_context():
            self.assertEqual(inventory_service.get_stock(self.product_id), 5)
            self.assertTrue(db.session.get(Sale, sale_id).is_void)


if __name__ == "__main__":
    unittest.main()
