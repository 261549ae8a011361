from rest_framework.routers import DefaultRouter

from inventory.views import InventoryViewSet, StockItemViewSet, TransferViewSet

router = DefaultRouter()
router.register(r"inventories", InventoryViewSet, basename="inventory")
router.register(r"stock-items", StockItemViewSet, basename="stock-item")
router.register(r"transfers", TransferViewSet, basename="transfer")

urlpatterns = router.urls
