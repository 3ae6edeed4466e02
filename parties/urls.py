# parties/urls.py
from django.urls import path

from . import api

app_name = "parties"

urlpatterns = [
    path("", api.party_list_api, name="list"),
    path("<int:pk>/", api.party_update_api, name="update"),
    path("<int:pk>/toggle/", api.party_toggle_api, name="toggle"),
]
