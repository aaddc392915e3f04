from datetime import timezone

import pytest
from sqlalchemy.exc import OperationalError

from stockroom.exceptions import StockConflictError
from stockroom.models.product import Product
from stockroom.schemas.service import MovementErrorCode
from stockroom.services.catalog import InMemoryProductCatalog, SqlProductCatalog
from stockroom.services.executor import execute_movement, movement_deltas

from conftest import make_movement


@pytest.fixture
def memory_catalog():
    return InMemoryProductCatalog(
        [
            Product(id="p1", name="Flour", quantity=10, unit="kg"),
            Product(id="p2", name="Sugar", quantity=4, unit="kg"),
        ]
    )


class TestDeltas:
    def test_signs(self):
        stock_in = make_movement("stock_in", lines=[("p1", 3)])
        distribution = make_movement("distribution", lines=[("p1", 3)])

        assert movement_deltas(stock_in)[0].delta == 3
        assert movement_deltas(distribution)[0].delta == -3


class TestInMemoryCatalog:
    def test_stock_in_adds(self, memory_catalog):
        result = execute_movement(
            make_movement("stock_in", lines=[("p1", 5)]), memory_catalog
        )

        assert result.success
        line = result.lines[0]
        assert (line.old_quantity, line.new_quantity) == (10, 15)
        assert memory_catalog.get("p1").quantity == 15

    def test_failed_line_does_not_stop_the_rest(self, memory_catalog):
        movement = make_movement(
            "distribution", lines=[("p1", 2), ("ghost", 1), ("p2", 1)]
        )

        result = execute_movement(movement, memory_catalog)

        assert not result.success
        assert [line.success for line in result.lines] == [True, False, True]
        assert result.lines[1].error == MovementErrorCode.PRODUCT_NOT_FOUND
        assert memory_catalog.get("p1").quantity == 8
        assert memory_catalog.get("p2").quantity == 3

    def test_stock_changed_since_validation(self, memory_catalog):
        movement = make_movement("distribution", lines=[("p2", 4)])
        # Otro movimiento consume stock entre la validación y la aplicación
        memory_catalog.apply_delta("p2", -2)

        result = execute_movement(movement, memory_catalog)

        assert result.lines[0].error == MovementErrorCode.CONCURRENT_MODIFICATION
        assert memory_catalog.get("p2").quantity == 2

    def test_quantity_never_goes_negative(self, memory_catalog):
        with pytest.raises(StockConflictError):
            memory_catalog.apply_delta("p2", -5)

        assert memory_catalog.get("p2").quantity == 4

    def test_repeated_product_is_checked_in_order(self, memory_catalog):
        movement = make_movement("distribution", lines=[("p2", 3), ("p2", 3)])

        result = execute_movement(movement, memory_catalog)

        assert [line.success for line in result.lines] == [True, False]
        assert result.lines[1].error == MovementErrorCode.CONCURRENT_MODIFICATION
        assert memory_catalog.get("p2").quantity == 1

    def test_apply_batch_applies_line_by_line(self, memory_catalog):
        deltas = movement_deltas(
            make_movement("distribution", lines=[("p1", 1), ("ghost", 1)])
        )

        results = memory_catalog.apply_batch(deltas)

        assert [line.success for line in results] == [True, False]
        assert memory_catalog.get("p1").quantity == 9

    def test_updated_at_is_utc(self, memory_catalog):
        memory_catalog.apply_delta("p1", 1)

        assert memory_catalog.get("p1").updated_at.tzinfo is timezone.utc

    def test_unavailable_catalog_fails_every_line(self, memory_catalog):
        memory_catalog.available = False

        result = execute_movement(
            make_movement("stock_in", lines=[("p1", 1), ("p2", 1)]), memory_catalog
        )

        assert result.catalog_unavailable
        assert len(result.failed) == 2


class TestSqlCatalog:
    def test_batch_commits_the_lines_that_apply(self, db, add_products):
        add_products(("p1", "Flour", 10), ("p2", "Sugar", 4))
        movement = make_movement(
            "distribution", lines=[("p1", 2), ("ghost", 1), ("p2", 9)]
        )

        result = execute_movement(movement, SqlProductCatalog(db))

        assert [line.success for line in result.lines] == [True, False, False]
        assert result.lines[1].error == MovementErrorCode.PRODUCT_NOT_FOUND
        assert result.lines[2].error == MovementErrorCode.CONCURRENT_MODIFICATION
        db.expire_all()
        assert db.get(Product, "p1").quantity == 8
        assert db.get(Product, "p2").quantity == 4

    def test_stock_in_is_committed_with_timestamp(self, db, add_products):
        add_products(("p1", "Flour", 5))

        result = execute_movement(
            make_movement("stock_in", lines=[("p1", 10)]), SqlProductCatalog(db)
        )

        assert result.success, [line.message for line in result.failed]
        db.expire_all()
        product = db.get(Product, "p1")
        assert product.quantity == 15
        assert product.updated_at is not None

    def test_line_results_keep_the_product_name(self, db, add_products):
        add_products(("p1", "Flour", 10))

        result = execute_movement(
            make_movement("stock_in", lines=[("p1", 1)]), SqlProductCatalog(db)
        )

        assert result.lines[0].product_name == "Flour"

    def test_snapshot_skips_unknown_products(self, db, add_products):
        add_products(("p1", "Flour", 10))

        snapshot = SqlProductCatalog(db).read_snapshot(["p1", "ghost", "p1"])

        assert snapshot == {"p1": 10}

    def test_commit_failure_fails_every_line(self, db, add_products, monkeypatch):
        add_products(("p1", "Flour", 10))

        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("database is down"))

        monkeypatch.setattr(db, "commit", broken_commit)

        result = execute_movement(
            make_movement("stock_in", lines=[("p1", 1)]), SqlProductCatalog(db)
        )

        assert result.catalog_unavailable
        monkeypatch.undo()
        db.expire_all()
        assert db.get(Product, "p1").quantity == 10
