import pytest
from catalog.models import Product, ProductVariant
from catalog.selectors import get_product, get_variant
from catalog.tests.factories import ProductFactory, ProductVariantFactory
from common.exceptions import NotFound
from django.core.management import call_command
from inventory.models import StockMovement
from inventory.tests.factories import stocked_variant


@pytest.mark.django_db
def test_product_list_shows_published_products_with_active_variants(api_client):
    variant = stocked_variant(stock=3)
    ProductVariantFactory(product=variant.product, status=ProductVariant.STATUS_INACTIVE)
    ProductFactory(status=Product.STATUS_DRAFT)

    resp = api_client.get("/api/v1/catalog/products/")

    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [p["id"] for p in results] == [variant.product_id]
    assert [(v["id"], v["stock"]) for v in results[0]["variants"]] == [(variant.id, 3)]


@pytest.mark.django_db
def test_product_search_by_sku(api_client):
    target = ProductVariantFactory(sku="FIND-ME")
    ProductVariantFactory()

    resp = api_client.get("/api/v1/catalog/products/?q=find-me")

    assert [p["id"] for p in resp.json()["results"]] == [target.product_id]


@pytest.mark.django_db
def test_draft_product_detail_is_404(api_client):
    draft = ProductFactory(status=Product.STATUS_DRAFT)
    assert api_client.get(f"/api/v1/catalog/products/{draft.id}/").status_code == 404


@pytest.mark.django_db
def test_selectors_raise_not_found():
    with pytest.raises(NotFound):
        get_product(987654)
    with pytest.raises(NotFound):
        get_variant(987654)


@pytest.mark.django_db
def test_seed_catalog_books_opening_stock_once():
    call_command("seed_catalog")
    call_command("seed_catalog")

    variant = ProductVariant.objects.get(sku="LS-M")
    assert variant.stock == 20
    assert StockMovement.objects.filter(variant=variant).count() == 1
    assert not StockMovement.objects.filter(sku="DJ-BLK").exists()
