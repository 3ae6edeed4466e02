from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("accounts/", include("django.contrib.auth.urls")),
    path("orders/", include("orders.urls", namespace="orders")),
    path("parties/", include("parties.urls", namespace="parties")),
    path("items/", include("catalog.urls", namespace="catalog")),
    path("", RedirectView.as_view(url="/orders/", permanent=False)),
]
