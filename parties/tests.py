import json

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from parties.forms import PartyForm
from parties.models import Party


class PartyFormTests(TestCase):
    def test_blank_optional_fields_are_stored_as_null(self):
        form = PartyForm(
            data={
                "name": "  Shree Toys  ",
                "city": "   ",
                "gstin": "",
                "contact_person": "",
                "phone": " 98765 ",
                "credit_days": "",
            }
        )
        self.assertTrue(form.is_valid(), form.errors)
        party = form.save()

        self.assertEqual(party.name, "Shree Toys")
        self.assertIsNone(party.city)
        self.assertIsNone(party.gstin)
        self.assertEqual(party.phone, "98765")
        self.assertIsNone(party.credit_days)

    def test_name_is_required(self):
        form = PartyForm(data={"name": "   "})
        self.assertFalse(form.is_valid())
        self.assertIn("Party name is required.", form.errors["name"])

    def test_negative_credit_days_rejected(self):
        form = PartyForm(data={"name": "Shree Toys", "credit_days": "-3"})
        self.assertFalse(form.is_valid())
        self.assertIn(
            "Please enter a valid credit days value (or leave blank).",
            form.errors["credit_days"],
        )

    def test_non_numeric_credit_days_rejected(self):
        form = PartyForm(data={"name": "Shree Toys", "credit_days": "thirty"})
        self.assertFalse(form.is_valid())
        self.assertIn("credit_days", form.errors)


class PartyQuerySetTests(TestCase):
    def setUp(self):
        self.active = Party.objects.create(name="Balaji Traders", city="Pune")
        self.inactive = Party.objects.create(
            name="Old Dealer",
            city="Nagpur",
            is_active=False,
        )

    def test_active_and_inactive(self):
        self.assertEqual(list(Party.objects.active()), [self.active])
        self.assertEqual(list(Party.objects.get_queryset().inactive()), [self.inactive])

    def test_search_matches_city(self):
        self.assertEqual(list(Party.objects.search("nag")), [self.inactive])

    def test_str_includes_city(self):
        self.assertEqual(str(self.active), "Balaji Traders · Pune")


class PartyApiTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="staff",
            password="secret",
        )
        self.client.force_login(self.user)

    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse("parties:list"))
        self.assertEqual(response.status_code, 302)

    def test_create_and_list(self):
        response = self.client.post(
            reverse("parties:list"),
            data=json.dumps({"name": "Balaji Traders", "credit_days": "30"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["credit_days"], 30)

        listing = self.client.get(reverse("parties:list")).json()
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["results"][0]["name"], "Balaji Traders")

    def test_create_invalid_returns_400(self):
        response = self.client.post(
            reverse("parties:list"),
            data=json.dumps({"name": ""}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["detail"], "Party name is required.")
        self.assertIn("name", body["errors"])

    def test_malformed_json_returns_400(self):
        response = self.client.post(
            reverse("parties:list"),
            data="{not json",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_update_and_toggle(self):
        party = Party.objects.create(name="Balaji Traders")

        response = self.client.post(
            reverse("parties:update", args=[party.pk]),
            data={"name": "Balaji Traders", "city": "Pune", "credit_days": ""},
        )
        self.assertEqual(response.status_code, 200)
        party.refresh_from_db()
        self.assertEqual(party.city, "Pune")

        response = self.client.post(reverse("parties:toggle", args=[party.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["is_active"])

        response = self.client.get(reverse("parties:list"), {"active": "1"})
        self.assertEqual(response.json()["count"], 0)
