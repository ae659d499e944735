from django.urls import path

from .views import (
    ActiveAlertListView,
    AlertHistoryView,
    AlertStatsView,
    BulkStockUpdateView,
    LedgerCheckView,
    LowStockListView,
    MovementListView,
    StockAddView,
    StockAdjustView,
    StockAlertResolveView,
    StockAlertView,
    StockDamageView,
    StockTakeActionView,
    StockTakeDetailView,
    StockTakeListCreateView,
)

urlpatterns = [
    path("movements/", MovementListView.as_view(), name="movement-list"),
    path("bulk/", BulkStockUpdateView.as_view(), name="stock-bulk"),
    path("variants/<int:variant_id>/add/", StockAddView.as_view(), name="stock-add"),
    path("variants/<int:variant_id>/adjust/", StockAdjustView.as_view(), name="stock-adjust"),
    path("variants/<int:variant_id>/damage/", StockDamageView.as_view(), name="stock-damage"),
    path("variants/<int:variant_id>/ledger/", LedgerCheckView.as_view(), name="stock-ledger"),
    path("variants/<int:variant_id>/alert/", StockAlertView.as_view(), name="stock-alert"),
    path("variants/<int:variant_id>/alert/resolve/", StockAlertResolveView.as_view(), name="stock-alert-resolve"),
    path("alerts/", ActiveAlertListView.as_view(), name="alert-list"),
    path("alerts/history/", AlertHistoryView.as_view(), name="alert-history"),
    path("alerts/stats/", AlertStatsView.as_view(), name="alert-stats"),
    path("low-stock/", LowStockListView.as_view(), name="low-stock"),
    path("stock-takes/", StockTakeListCreateView.as_view(), name="stock-take-list"),
    path("stock-takes/<int:stock_take_id>/", StockTakeDetailView.as_view(), name="stock-take-detail"),
    path(
        "stock-takes/<int:stock_take_id>/<slug:action>/",
        StockTakeActionView.as_view(),
        name="stock-take-action",
    ),
]

# EOF
