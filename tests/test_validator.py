from stockroom.schemas.movement import MovementCreate
from stockroom.schemas.service import MovementErrorCode
from stockroom.services.validator import snapshot_product_ids, validate_movement

from conftest import make_movement


def codes(issues):
    return [issue.code for issue in issues]


class TestStructure:
    def test_empty_batch_is_the_only_issue(self):
        movement = make_movement("distribution", lines=[], department=None)

        issues = validate_movement(movement, {})

        assert codes(issues) == [MovementErrorCode.EMPTY_BATCH]

    def test_every_invalid_line_is_reported(self):
        movement = make_movement(
            "stock_in", lines=[("p1", 0), ("p2", 3), ("", 2), ("p4", -1)]
        )

        issues = validate_movement(movement)

        assert codes(issues) == [MovementErrorCode.INVALID_LINE] * 3
        assert [issue.line for issue in issues] == [1, 3, 4]

    def test_missing_quantity_is_reported_with_the_other_lines(self):
        movement = MovementCreate.model_validate(
            {
                "type": "stock_in",
                "supplier": "Acme",
                "lines": [{"productId": "", "quantity": 2}, {"productId": "p2"}],
            }
        )

        issues = validate_movement(movement)

        assert codes(issues) == [MovementErrorCode.INVALID_LINE] * 2
        assert [issue.line for issue in issues] == [1, 2]
        assert issues[1].product_id == "p2"

    def test_blank_product_id_is_invalid(self):
        movement = make_movement("stock_in", lines=[("   ", 2)])

        issues = validate_movement(movement)

        assert codes(issues) == [MovementErrorCode.INVALID_LINE]

    def test_valid_stock_in(self):
        movement = make_movement("stock_in", lines=[("p1", 10)])

        assert validate_movement(movement) == []


class TestContext:
    def test_stock_in_requires_supplier(self):
        movement = make_movement("stock_in", lines=[("p1", 10)], supplier="  ")

        issues = validate_movement(movement)

        assert codes(issues) == [MovementErrorCode.MISSING_SUPPLIER]

    def test_distribution_requires_department(self):
        movement = make_movement("distribution", lines=[("p1", 1)], department="")

        issues = validate_movement(movement, {"p1": 5})

        assert codes(issues) == [MovementErrorCode.MISSING_DEPARTMENT]

    def test_department_object_is_accepted(self):
        movement = MovementCreate.model_validate(
            {
                "type": "distribution",
                "department": {"id": "pastry", "name": "Pastry"},
                "stockManager": "Ana",
                "lines": [{"productId": "p1", "quantity": 1}],
            }
        )

        assert movement.department == "pastry"
        assert validate_movement(movement, {"p1": 5}) == []

    def test_all_problems_are_collected_together(self):
        movement = make_movement("stock_in", lines=[("p1", 0)], supplier=None)

        issues = validate_movement(movement)

        assert codes(issues) == [
            MovementErrorCode.INVALID_LINE,
            MovementErrorCode.MISSING_SUPPLIER,
        ]


class TestStock:
    def test_insufficient_stock(self):
        movement = make_movement("distribution", lines=[("p1", 10)])

        issues = validate_movement(movement, {"p1": 5})

        assert codes(issues) == [MovementErrorCode.INSUFFICIENT_STOCK]
        issue = issues[0]
        assert issue.line == 1
        assert issue.product_id == "p1"
        assert issue.available == 5
        assert issue.requested == 10

    def test_exact_stock_is_enough(self):
        movement = make_movement("distribution", lines=[("p1", 5)])

        assert validate_movement(movement, {"p1": 5}) == []

    def test_stock_in_has_no_ceiling(self):
        movement = make_movement("stock_in", lines=[("p1", 1000)])

        assert validate_movement(movement, {"p1": 0}) == []

    def test_unknown_product_is_left_to_the_executor(self):
        movement = make_movement("distribution", lines=[("ghost", 3)])

        assert validate_movement(movement, {}) == []

    def test_without_snapshot_stock_is_not_checked(self):
        movement = make_movement("distribution", lines=[("p1", 10)])

        assert validate_movement(movement) == []

    def test_each_line_is_checked_separately(self):
        movement = make_movement("distribution", lines=[("p1", 3), ("p1", 3)])

        assert validate_movement(movement, {"p1": 5}) == []


class TestSnapshotIds:
    def test_distribution_ids_without_duplicates(self):
        movement = make_movement(
            "distribution", lines=[("p1", 1), ("p2", 1), ("p1", 2), ("", 1)]
        )

        assert snapshot_product_ids(movement) == ["p1", "p2"]

    def test_stock_in_needs_no_snapshot(self):
        movement = make_movement("stock_in", lines=[("p1", 1)])

        assert snapshot_product_ids(movement) == []

    def test_issue_text(self):
        movement = make_movement("distribution", lines=[("p1", 10)])

        issue = validate_movement(movement, {"p1": 5})[0]

        assert str(issue).startswith("INSUFFICIENT_STOCK: ")
