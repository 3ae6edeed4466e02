# orders/urls.py
from django.urls import path

from . import api

app_name = "orders"

urlpatterns = [
    path("", api.order_list_api, name="list"),
    path("new/", api.order_create_api, name="create"),
    path("sales/", api.sales_api, name="sales"),
    path("<int:pk>/", api.order_detail_api, name="detail"),
    path("<int:pk>/dispatch/", api.order_dispatch_api, name="dispatch"),
    path("<int:pk>/status/", api.order_status_api, name="status"),
    path("<int:pk>/remarks/", api.order_remarks_api, name="remarks"),
    path("<int:pk>/expected-date/", api.order_expected_date_api, name="expected_date"),
    path("<int:pk>/lines/", api.order_line_add_api, name="line_add"),
    path("<int:pk>/lines/<int:line_id>/delete/", api.order_line_delete_api, name="line_delete"),
]
