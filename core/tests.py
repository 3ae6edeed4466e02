from dataclasses import dataclass
from datetime import date

from django.core.exceptions import ValidationError
from django.test import RequestFactory, SimpleTestCase, TestCase

from core.domain.dispatcher import DomainEventDispatcher
from core.domain.events import DomainEvent
from core.http import read_payload, validation_error_response
from core.models import NumberSequence, PortalSettings
from core.services.numbering import next_order_code


@dataclass(frozen=True)
class SomethingHappened(DomainEvent):
    value: int


class NumberingTests(TestCase):
    def test_order_codes_increment_per_year(self):
        first = next_order_code(date(2025, 3, 1))
        second = next_order_code(date(2025, 7, 9))
        other_year = next_order_code(date(2026, 1, 2))

        self.assertEqual(first, "TY-2025-0001")
        self.assertEqual(second, "TY-2025-0002")
        self.assertEqual(other_year, "TY-2026-0001")
        self.assertEqual(NumberSequence.objects.get(period="2025").last_value, 2)

    def test_prefix_comes_from_portal_settings(self):
        portal = PortalSettings.get_solo()
        portal.order_code_prefix = "TC"
        portal.save()

        self.assertEqual(next_order_code(date(2025, 1, 1)), "TC-2025-0001")

    def test_blank_prefix_leaves_year_and_sequence(self):
        portal = PortalSettings.get_solo()
        portal.order_code_prefix = "  "
        portal.save()

        self.assertEqual(next_order_code(date(2025, 1, 1)), "2025-0001")


class PortalSettingsTests(TestCase):
    def test_spare_category_set_is_normalized(self):
        portal = PortalSettings.get_solo()
        portal.spare_categories = " Spare, SPARES ,, spare part "
        portal.save()

        self.assertEqual(
            PortalSettings.get_solo().spare_category_set,
            frozenset({"spare", "spares", "spare part"}),
        )

    def test_defaults(self):
        portal = PortalSettings.get_solo()
        self.assertEqual(portal.brand_company, "Tycoon")
        self.assertEqual(portal.activity_log_limit, 50)
        self.assertIn("spare parts", portal.spare_category_set)


class DomainEventDispatcherTests(SimpleTestCase):
    def setUp(self):
        self.dispatcher = DomainEventDispatcher()
        self.seen = []

    def test_registered_handler_receives_event(self):
        @self.dispatcher.register_handler(SomethingHappened)
        def handler(event):
            self.seen.append(event.value)

        self.dispatcher.emit(SomethingHappened(value=3))
        self.assertEqual(self.seen, [3])

    def test_registering_twice_is_a_noop(self):
        def handler(event):
            self.seen.append(event.value)

        self.dispatcher.register_handler(SomethingHappened)(handler)
        self.dispatcher.register_handler(SomethingHappened)(handler)

        self.assertEqual(len(self.dispatcher.handlers_for(SomethingHappened)), 1)

    def test_failing_handler_does_not_stop_others(self):
        def broken(event):
            raise RuntimeError("boom")

        def working(event):
            self.seen.append(event.value)

        self.dispatcher.register_handler(SomethingHappened)(broken)
        self.dispatcher.register_handler(SomethingHappened)(working)

        with self.assertLogs("core.domain.dispatcher", level="ERROR"):
            self.dispatcher.emit(SomethingHappened(value=7))
        self.assertEqual(self.seen, [7])

    def test_unregister(self):
        def handler(event):
            self.seen.append(event.value)

        self.dispatcher.register_handler(SomethingHappened)(handler)
        self.dispatcher.unregister_handler(SomethingHappened, handler)
        self.dispatcher.emit(SomethingHappened(value=1))
        self.assertEqual(self.seen, [])


class HttpHelperTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_json_body(self):
        request = self.factory.post("/x/", data='{"a": 1}', content_type="application/json")
        self.assertEqual(read_payload(request), {"a": 1})

    def test_form_body(self):
        request = self.factory.post("/x/", data={"a": "1"})
        self.assertEqual(read_payload(request), {"a": "1"})

    def test_malformed_json_raises(self):
        request = self.factory.post("/x/", data="[1, 2", content_type="application/json")
        with self.assertRaises(ValidationError):
            read_payload(request)

    def test_non_object_json_raises(self):
        request = self.factory.post("/x/", data="[1, 2]", content_type="application/json")
        with self.assertRaises(ValidationError):
            read_payload(request)

    def test_validation_error_response_with_fields(self):
        response = validation_error_response(ValidationError({"qty": ["Too many."]}))
        self.assertEqual(response.status_code, 400)
        self.assertIn(b"Too many.", response.content)


class DomainEventTests(SimpleTestCase):
    def test_name_and_payload(self):
        event = SomethingHappened(value=4, metadata={"source": "test"})
        self.assertEqual(event.name, "SomethingHappened")
        self.assertEqual(event.payload(), {"value": 4})
        self.assertIsNotNone(event.occurred_at.tzinfo)
