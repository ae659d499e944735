import pytest
from catalog.models import ProductVariant
from catalog.tests.factories import ProductVariantFactory
from common.exceptions import InsufficientStock, InvalidQuantity, NotFound, TransactionAborted
from django.db.models.query import QuerySet
from inventory.models import LedgerImmutable, StockMovement
from inventory.selectors import ledger_balance, ledger_mismatches, verify_ledger
from inventory.services import (
    add_stock,
    adjust_stock,
    bulk_stock_update,
    record_damage_movement,
    record_return_movement,
    record_sale_movement,
    set_stock_level,
)
from inventory.tests.factories import stocked_variant


@pytest.mark.django_db
def test_add_stock_records_addition_with_before_and_after():
    variant = ProductVariantFactory()

    movement = add_stock(variant_id=variant.id, quantity=7, reason="Delivery")

    variant.refresh_from_db()
    assert variant.stock == 7
    assert movement.movement_type == StockMovement.TYPE_ADDITION
    assert (movement.previous_stock, movement.new_stock, movement.quantity) == (0, 7, 7)
    assert movement.sku == variant.sku


@pytest.mark.django_db
def test_adjust_stock_picks_type_by_sign():
    variant = stocked_variant(stock=10)

    up = adjust_stock(variant_id=variant.id, quantity=2)
    down = adjust_stock(variant_id=variant.id, quantity=-5)

    assert up.movement_type == StockMovement.TYPE_ADJUSTMENT
    assert down.movement_type == StockMovement.TYPE_CORRECTION
    assert down.quantity == -5
    variant.refresh_from_db()
    assert variant.stock == 7


@pytest.mark.django_db
def test_zero_or_negative_quantities_are_rejected():
    variant = stocked_variant(stock=5)

    with pytest.raises(InvalidQuantity):
        add_stock(variant_id=variant.id, quantity=0)
    with pytest.raises(InvalidQuantity):
        add_stock(variant_id=variant.id, quantity=-1)
    with pytest.raises(InvalidQuantity):
        adjust_stock(variant_id=variant.id, quantity=0)
    with pytest.raises(InvalidQuantity):
        record_sale_movement(variant_id=variant.id, quantity=0, order_id=1)

    assert StockMovement.objects.filter(variant=variant).count() == 1


@pytest.mark.django_db
def test_unknown_variant_raises_not_found():
    with pytest.raises(NotFound):
        add_stock(variant_id=999999, quantity=1)


@pytest.mark.django_db
def test_decrement_beyond_stock_fails_and_leaves_stock_unchanged():
    variant = stocked_variant(stock=3)

    with pytest.raises(InsufficientStock) as exc:
        record_sale_movement(variant_id=variant.id, quantity=4, order_id=1)
    with pytest.raises(InsufficientStock):
        adjust_stock(variant_id=variant.id, quantity=-4)
    with pytest.raises(InsufficientStock):
        record_damage_movement(variant_id=variant.id, quantity=10)

    assert exc.value.available == 3
    assert exc.value.requested == 4
    assert variant.sku in exc.value.detail
    variant.refresh_from_db()
    assert variant.stock == 3
    assert StockMovement.objects.filter(variant=variant).count() == 1


@pytest.mark.django_db
def test_sale_and_return_reference_the_order():
    variant = stocked_variant(stock=10)

    sale = record_sale_movement(variant_id=variant.id, quantity=4, order_id=42)
    ret = record_return_movement(variant_id=variant.id, quantity=1, order_id=42)

    assert sale.movement_type == StockMovement.TYPE_SALE
    assert sale.quantity == -4
    assert (sale.reference_type, sale.reference_id) == ("order", 42)
    assert ret.movement_type == StockMovement.TYPE_RETURN
    assert ret.quantity == 1
    assert (ret.previous_stock, ret.new_stock) == (6, 7)


@pytest.mark.django_db
def test_ledger_reconciles_after_mixed_operations():
    variant = stocked_variant(stock=20)

    record_sale_movement(variant_id=variant.id, quantity=5, order_id=1)
    record_return_movement(variant_id=variant.id, quantity=2, order_id=1)
    record_damage_movement(variant_id=variant.id, quantity=1)
    adjust_stock(variant_id=variant.id, quantity=-3)
    add_stock(variant_id=variant.id, quantity=4)
    with pytest.raises(InsufficientStock):
        record_sale_movement(variant_id=variant.id, quantity=100, order_id=2)

    variant.refresh_from_db()
    assert variant.stock == 17
    assert ledger_balance(variant_id=variant.id) == 17
    assert verify_ledger(variant_id=variant.id)["ok"] is True
    assert ledger_mismatches() == []
    for movement in StockMovement.objects.filter(variant=variant):
        assert movement.new_stock == movement.previous_stock + movement.quantity


@pytest.mark.django_db
def test_movements_are_append_only():
    variant = stocked_variant(stock=5)
    movement = StockMovement.objects.get(variant=variant)

    movement.reason = "edited"
    with pytest.raises(LedgerImmutable):
        movement.save()
    with pytest.raises(LedgerImmutable):
        movement.delete()

    movement.refresh_from_db()
    assert movement.reason == "Opening stock"


@pytest.mark.django_db
def test_set_stock_level_records_delta_or_nothing():
    variant = stocked_variant(stock=8)

    assert set_stock_level(variant_id=variant.id, target=8) is None
    movement = set_stock_level(variant_id=variant.id, target=5, reference_type="stock_take", reference_id=3)

    assert movement.movement_type == StockMovement.TYPE_CORRECTION
    assert movement.quantity == -3
    assert movement.reference_id == 3
    with pytest.raises(InvalidQuantity):
        set_stock_level(variant_id=variant.id, target=-1)


@pytest.mark.django_db
def test_bulk_update_reports_errors_without_blocking_other_rows():
    good = stocked_variant(stock=1)
    short = stocked_variant(stock=1)

    result = bulk_stock_update(
        updates=[
            {"variant_id": good.id, "quantity": 5},
            {"variant_id": short.id, "quantity": -2},
            {"variant_id": good.id, "quantity": 1, "type": "damage"},
            {"variant_id": 999999, "quantity": 1},
            {"variant_id": good.id, "quantity": 1, "type": "teleport"},
        ]
    )

    assert [r["index"] for r in result["results"]] == [0, 2]
    assert [e["index"] for e in result["errors"]] == [1, 3, 4]
    good.refresh_from_db()
    short.refresh_from_db()
    assert good.stock == 5
    assert short.stock == 1


def _lose_stock_writes(monkeypatch, times):
    """Make the conditional stock write report no rows ``times`` times."""
    real_update = QuerySet.update
    lost = []

    def update(self, **kwargs):
        if self.model is ProductVariant and "stock" in kwargs and len(lost) < times:
            lost.append(kwargs["stock"])
            return 0
        return real_update(self, **kwargs)

    monkeypatch.setattr(QuerySet, "update", update)
    return lost


@pytest.mark.django_db
def test_conflicting_stock_write_is_retried(monkeypatch):
    variant = stocked_variant(stock=10)
    lost = _lose_stock_writes(monkeypatch, times=1)

    movement = record_sale_movement(variant_id=variant.id, quantity=4, order_id=7)

    variant.refresh_from_db()
    assert lost == [6]
    assert variant.stock == 6
    assert (movement.previous_stock, movement.new_stock, movement.quantity) == (10, 6, -4)
    assert StockMovement.objects.filter(variant=variant, movement_type=StockMovement.TYPE_SALE).count() == 1
    assert verify_ledger(variant_id=variant.id)["ok"] is True


@pytest.mark.django_db
def test_write_that_keeps_conflicting_aborts_without_trace(monkeypatch, settings):
    settings.INVENTORY_MAX_CAS_RETRIES = 3
    variant = stocked_variant(stock=10)
    lost = _lose_stock_writes(monkeypatch, times=100)

    with pytest.raises(TransactionAborted):
        record_sale_movement(variant_id=variant.id, quantity=4, order_id=7)

    assert len(lost) == 3
    variant.refresh_from_db()
    assert variant.stock == 10
    assert list(StockMovement.objects.filter(variant=variant).values_list("movement_type", flat=True)) == [
        StockMovement.TYPE_ADDITION
    ]
