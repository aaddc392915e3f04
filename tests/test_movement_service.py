import pytest
from sqlmodel import select

from stockroom.models.movement import Movement
from stockroom.models.movement_line import MovementLine
from stockroom.models.movement_request import MovementRequest
from stockroom.models.product import Product
from stockroom.schemas.service import EXECUTION_ERROR, VALIDATION_ERROR, MovementErrorCode
from stockroom.services.catalog import InMemoryProductCatalog, SqlProductCatalog
from stockroom.services.movements import StockMovementService, movement_total_value

from conftest import make_movement


class SpyCatalog(InMemoryProductCatalog):
    """Catálogo en memoria que cuenta las lecturas y escrituras."""

    def __init__(self, products=None):
        super().__init__(products)
        self.reads = 0
        self.writes = 0

    def read_snapshot(self, product_ids):
        self.reads += 1
        return super().read_snapshot(product_ids)

    def apply_delta(self, product_id, delta):
        self.writes += 1
        return super().apply_delta(product_id, delta)


@pytest.fixture
def catalog():
    return SpyCatalog([Product(id="p1", name="Flour", quantity=5, unit="kg")])


@pytest.fixture
def service(db, catalog, notifier):
    return StockMovementService(db, catalog, notifier)


class TestSubmitMovement:
    def test_stock_in_is_applied_and_recorded(self, db, service, catalog):
        response = service.submit_movement(
            make_movement("stock_in", lines=[("p1", 10)])
        )

        assert response.success
        assert catalog.get("p1").quantity == 15
        record = response.data
        assert record.total_items == 1
        assert record.supplier == "Acme"
        assert record.department is None
        assert record.lines[0].old_quantity == 5
        assert record.lines[0].new_quantity == 15

        stored = db.exec(select(Movement)).all()
        assert [movement.id for movement in stored] == [record.id]
        assert len(db.exec(select(MovementLine)).all()) == 1

    def test_insufficient_stock_changes_nothing(self, db, service, catalog):
        response = service.submit_movement(
            make_movement("distribution", lines=[("p1", 10)])
        )

        assert not response.success
        assert response.code == VALIDATION_ERROR
        assert response.details[0].code == MovementErrorCode.INSUFFICIENT_STOCK
        assert response.details[0].available == 5
        assert response.details[0].requested == 10
        assert catalog.writes == 0
        assert catalog.get("p1").quantity == 5
        assert db.exec(select(Movement)).all() == []

    def test_empty_batch_does_not_read_the_catalog(self, service, catalog):
        response = service.submit_movement(make_movement("distribution", lines=[]))

        assert not response.success
        assert response.details[0].code == MovementErrorCode.EMPTY_BATCH
        assert catalog.reads == 0
        assert catalog.writes == 0

    def test_all_validation_errors_are_returned(self, service):
        response = service.submit_movement(
            make_movement("stock_in", lines=[("p1", 0), ("", 1)], supplier="")
        )

        assert len(response.errors) == 3
        assert [issue.code for issue in response.details] == [
            MovementErrorCode.INVALID_LINE,
            MovementErrorCode.INVALID_LINE,
            MovementErrorCode.MISSING_SUPPLIER,
        ]

    def test_partial_failure_is_reported_per_line(self, db, service, catalog):
        response = service.submit_movement(
            make_movement("stock_in", lines=[("p1", 1), ("ghost", 1)])
        )

        assert not response.success
        assert response.code == EXECUTION_ERROR
        assert [line.success for line in response.results] == [True, False]
        assert response.results[1].error == MovementErrorCode.PRODUCT_NOT_FOUND
        assert catalog.get("p1").quantity == 6
        # Sin registro de auditoría para un movimiento incompleto
        assert db.exec(select(Movement)).all() == []

    def test_unavailable_catalog(self, service, catalog):
        catalog.available = False

        response = service.submit_movement(
            make_movement("distribution", lines=[("p1", 1)])
        )

        assert not response.success
        assert response.code == MovementErrorCode.CATALOG_UNAVAILABLE.value

    def test_department_is_not_stored_on_stock_in(self, service):
        response = service.submit_movement(
            make_movement("stock_in", lines=[("p1", 1)], department="kitchen")
        )

        assert response.data.department is None


class TestNotifications:
    def test_movement_notification(self, service, notifier):
        service.submit_movement(make_movement("stock_in", lines=[("p1", 10)]))

        assert [n.type for n in notifier.history] == ["movement"]
        assert notifier.history[0].title == "Stock In Completed"

    def test_low_stock_alert_after_distribution(self, service, notifier):
        service.submit_movement(make_movement("distribution", lines=[("p1", 2)]))

        assert [n.type for n in notifier.history] == ["movement", "low_stock"]

    def test_out_of_stock_alert(self, service, notifier):
        service.submit_movement(make_movement("distribution", lines=[("p1", 5)]))

        assert notifier.history[-1].type == "out_of_stock"

    def test_no_notification_on_failure(self, service, notifier):
        service.submit_movement(make_movement("distribution", lines=[("p1", 50)]))

        assert notifier.history == []

    def test_works_without_notifier(self, db, catalog):
        service = StockMovementService(db, catalog)

        response = service.submit_movement(make_movement("stock_in", lines=[("p1", 1)]))

        assert response.success


class TestRequestId:
    def test_retried_partial_failure_is_not_applied_again(self, service, catalog):
        movement = make_movement(
            "stock_in", lines=[("p1", 1), ("ghost", 1)], request_id="req-1"
        )

        first = service.submit_movement(movement)
        second = service.submit_movement(movement)

        assert first.code == second.code == EXECUTION_ERROR
        assert [line.success for line in second.results] == [True, False]
        assert catalog.get("p1").quantity == 6
        assert catalog.writes == 2

    def test_retried_success_returns_the_same_record(self, db, service, catalog):
        movement = make_movement("stock_in", lines=[("p1", 10)], request_id="req-2")

        first = service.submit_movement(movement)
        second = service.submit_movement(movement)

        assert second.success
        assert second.data.id == first.data.id
        assert catalog.get("p1").quantity == 15
        assert len(db.exec(select(Movement)).all()) == 1
        assert db.get(MovementRequest, "req-2").movement_id == first.data.id

    def test_rejected_request_id_can_be_sent_again(self, service, catalog):
        rejected = make_movement("distribution", lines=[("p1", 50)], request_id="req-3")
        fixed = make_movement("distribution", lines=[("p1", 2)], request_id="req-3")

        assert service.submit_movement(rejected).code == VALIDATION_ERROR
        assert service.submit_movement(fixed).success
        assert catalog.get("p1").quantity == 3

    def test_catalog_outage_does_not_keep_the_request_id(self, db, service, catalog):
        movement = make_movement("stock_in", lines=[("p1", 1)], request_id="req-5")
        catalog.available = False

        assert service.submit_movement(movement).code == (
            MovementErrorCode.CATALOG_UNAVAILABLE.value
        )
        assert db.get(MovementRequest, "req-5") is None

        catalog.available = True
        assert service.submit_movement(movement).success
        assert catalog.get("p1").quantity == 6

    def test_request_in_progress(self, db, service, catalog):
        db.add(MovementRequest(request_id="req-4"))
        db.commit()

        response = service.submit_movement(
            make_movement("stock_in", lines=[("p1", 1)], request_id="req-4")
        )

        assert response.code == MovementErrorCode.DUPLICATE_REQUEST.value
        assert catalog.writes == 0


class TestWithSqlCatalog:
    def test_stock_in(self, db, add_products):
        add_products(("p1", "Flour", 5))
        service = StockMovementService(db, SqlProductCatalog(db))

        response = service.submit_movement(make_movement("stock_in", lines=[("p1", 10)]))

        assert response.success, response.errors
        assert response.data.lines[0].new_quantity == 15
        assert response.data.timestamp is not None
        db.expire_all()
        assert db.get(Product, "p1").quantity == 15

    def test_distribution(self, db, add_products):
        add_products(("p1", "Flour", 8))
        service = StockMovementService(db, SqlProductCatalog(db))

        response = service.submit_movement(
            make_movement("distribution", lines=[("p1", 3)], department="bakery")
        )

        assert response.success
        assert response.data.department == "bakery"
        assert response.data.supplier is None
        assert db.get(Product, "p1").quantity == 5


def test_total_value():
    movement = make_movement("stock_in", lines=[("p1", 2), ("p2", 3)])
    movement.lines[0].unit_price = 1.5
    movement.lines[1].unit_price = 2.25

    assert movement_total_value(movement) == 9.75


def test_total_value_without_prices():
    assert movement_total_value(make_movement("stock_in", lines=[("p1", 2)])) is None
