import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from catalog.forms import ItemForm, ItemUpdateForm
from catalog.models import Item
from core.models import PortalSettings


class ItemFormTests(TestCase):
    def test_defaults_for_unit_and_company(self):
        form = ItemForm(data={"name": "Mini Jeep", "dealer_rate": "450"})
        self.assertTrue(form.is_valid(), form.errors)
        item = form.save()

        self.assertEqual(item.unit, "pcs")
        self.assertEqual(item.company, PortalSettings.get_solo().brand_company)
        self.assertIsNone(item.category)
        self.assertEqual(item.dealer_rate, Decimal("450.00"))

    def test_rate_accepts_currency_formatting(self):
        form = ItemForm(data={"name": "Mini Jeep", "dealer_rate": "₹1,250.50"})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["dealer_rate"], Decimal("1250.50"))

    def test_name_and_rate_required(self):
        form = ItemForm(data={"name": "", "dealer_rate": ""})
        self.assertFalse(form.is_valid())
        self.assertIn("Item name is required.", form.errors["name"])
        self.assertIn("Dealer rate is required.", form.errors["dealer_rate"])

    def test_invalid_rate(self):
        form = ItemForm(data={"name": "Mini Jeep", "dealer_rate": "1.2.3"})
        self.assertFalse(form.is_valid())
        self.assertIn("Please enter a valid dealer rate.", form.errors["dealer_rate"])

    def test_update_form_only_touches_rate_and_category(self):
        item = Item.objects.create(name="Mini Jeep", company="Tycoon", dealer_rate=Decimal("100"))
        form = ItemUpdateForm(
            data={"dealer_rate": "120", "category": "  "},
            instance=item,
        )
        self.assertTrue(form.is_valid(), form.errors)
        item = form.save()
        self.assertEqual(item.dealer_rate, Decimal("120"))
        self.assertIsNone(item.category)
        self.assertEqual(item.name, "Mini Jeep")


class ItemQuerySetTests(TestCase):
    def test_category_options_are_distinct_and_sorted(self):
        Item.objects.create(name="A", category="jeep")
        Item.objects.create(name="B", category="Bike")
        Item.objects.create(name="C", category="jeep")
        Item.objects.create(name="D", category="")
        Item.objects.create(name="E", category=None)

        self.assertEqual(Item.objects.category_options(), ["Bike", "jeep"])

    def test_category_label(self):
        self.assertEqual(Item(name="X", category=" ").category_label, "Uncategorised")
        self.assertEqual(Item(name="X", category="car").category_label, "car")


class ItemApiTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="staff",
            password="secret",
        )
        self.client.force_login(self.user)

    def test_create_list_update_toggle(self):
        response = self.client.post(
            reverse("catalog:list"),
            data=json.dumps({"name": "Mini Jeep", "category": "jeep", "dealer_rate": "450"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        item_id = response.json()["id"]

        listing = self.client.get(reverse("catalog:list")).json()
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["categories"], ["jeep"])

        response = self.client.post(
            reverse("catalog:update", args=[item_id]),
            data={"dealer_rate": "475.50", "category": "jeep"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["dealer_rate"], "475.50")

        response = self.client.post(reverse("catalog:toggle", args=[item_id]))
        self.assertFalse(response.json()["is_active"])
        listing = self.client.get(reverse("catalog:list"), {"active": "1"}).json()
        self.assertEqual(listing["count"], 0)

    def test_create_without_rate_returns_400(self):
        response = self.client.post(
            reverse("catalog:list"),
            data=json.dumps({"name": "Mini Jeep"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Dealer rate is required.")
