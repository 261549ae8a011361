from rest_framework.routers import DefaultRouter

from sales.views import ClientViewSet, CustodyViewSet, OrderViewSet, PaymentViewSet

router = DefaultRouter()
router.register(r"clients", ClientViewSet, basename="client")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"payments", PaymentViewSet, basename="payment")
router.register(r"custodies", CustodyViewSet, basename="custody")

urlpatterns = router.urls
