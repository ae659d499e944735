"""Read-only catalog endpoints used by the storefront and cart."""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import viewsets

from . import selectors
from .serializers import ProductSerializer


@extend_schema_view(
    list=extend_schema(
        summary="List products",
        description="Returns published products with their active variants, live price and stock.",
        tags=["Catalog Endpoints"],
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, location="query", description="Search by title or exact SKU"),
        ],
        examples=[
            OpenApiExample(
                "Product list",
                value={
                    "count": 1,
                    "next": None,
                    "previous": None,
                    "results": [
                        {
                            "id": 1,
                            "title": "Linen Dress",
                            "slug": "linen-dress",
                            "description": "",
                            "status": "published",
                            "variants": [
                                {
                                    "id": 7,
                                    "sku": "LD-M",
                                    "name": "Size",
                                    "value": "M",
                                    "price": "45.00",
                                    "stock": 12,
                                    "status": "active",
                                }
                            ],
                        }
                    ],
                },
                response_only=True,
            )
        ],
    ),
    retrieve=extend_schema(
        summary="Get product",
        description="Returns a single published product by id",
        tags=["Catalog Endpoints"],
    ),
)
class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProductSerializer
    throttle_scope = "catalog"

    def get_queryset(self):
        return selectors.list_products(search=self.request.query_params.get("q"))
