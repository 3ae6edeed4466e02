# catalog/urls.py
from django.urls import path

from . import api

app_name = "catalog"

urlpatterns = [
    path("", api.item_list_api, name="list"),
    path("<int:pk>/", api.item_update_api, name="update"),
    path("<int:pk>/toggle/", api.item_toggle_api, name="toggle"),
]
