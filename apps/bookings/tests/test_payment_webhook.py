"""Integration tests for the payment webhook endpoint."""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import Client, TestCase, override_settings
from django.urls import reverse

from apps.bookings.models import Booking, ProcessedPaymentEvent
from apps.holds.application.command_handlers import CreateHoldCommand, build_handlers
from apps.holds.models import Hold
from apps.inventory.models import InventoryDay

User = get_user_model()

WEBHOOK_SECRET = "test_webhook_secret"


@override_settings(PAYMENT_WEBHOOK_SECRET=WEBHOOK_SECRET)
class PaymentWebhookTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(username="webhookuser", password="password")
        self.room_id = uuid.uuid4()
        check_in = date.today() + timedelta(days=20)
        for offset in range(2):
            InventoryDay.objects.create(
                room_id=self.room_id,
                date=check_in + timedelta(days=offset),
                total_rooms=1,
                price_per_night=Decimal("99.50"),
            )
        self.hold = build_handlers()["create"].handle(
            CreateHoldCommand(
                user_id=self.user.id,
                hotel_id=uuid.uuid4(),
                check_in=check_in,
                check_out=check_in + timedelta(days=2),
                rooms=[{"room_id": self.room_id, "quantity": 1}],
            )
        )
        self.webhook_url = reverse("payment_webhook")

    def _event(self, event_id="evt_test_1", event_type="payment_intent.succeeded", amount=19900, **data):
        payload = {
            "id": event_id,
            "type": event_type,
            "data": {
                "id": "pi_test_1",
                "amount": amount,
                "currency": "usd",
                "latest_charge": "ch_test_1",
                "metadata": {"hold_id": str(self.hold.id)},
            },
        }
        payload["data"].update(data)
        return payload

    def _signature_headers(self, body: bytes):
        digest = hmac.new(WEBHOOK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return {"HTTP_X_PAYMENT_SIGNATURE": f"sha256={digest}"}

    def _post_with_signature(self, payload):
        if isinstance(payload, (bytes, bytearray)):
            body = bytes(payload)
        else:
            body = json.dumps(payload).encode("utf-8")

        return self.client.post(
            self.webhook_url,
            data=body,
            content_type="application/json",
            **self._signature_headers(body),
        )

    def test_payment_succeeded_converts_hold(self):
        response = self._post_with_signature(self._event())

        self.assertEqual(response.status_code, 200, response.content)
        body = response.json()
        self.assertTrue(body["received"])
        self.assertFalse(body["already_processed"])

        self.hold.refresh_from_db()
        self.assertEqual(self.hold.status, Hold.Status.CONVERTED)
        booking = Booking.objects.get(hold=self.hold)
        self.assertEqual(booking.booking_code, body["booking_code"])
        self.assertEqual(booking.charge_id, "ch_test_1")
        self.assertEqual(
            list(InventoryDay.objects.filter(room_id=self.room_id).values_list("booked_rooms", "held_rooms")),
            [(1, 0), (1, 0)],
        )

    def test_redelivered_event_is_acknowledged_once(self):
        first = self._post_with_signature(self._event())
        second = self._post_with_signature(self._event())

        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()["already_processed"])
        self.assertEqual(second.json()["booking_code"], first.json()["booking_code"])
        self.assertEqual(Booking.objects.count(), 1)
        self.assertEqual(ProcessedPaymentEvent.objects.count(), 1)

    def test_invalid_signature(self):
        body = json.dumps(self._event()).encode("utf-8")

        response = self.client.post(
            self.webhook_url,
            data=body,
            content_type="application/json",
            HTTP_X_PAYMENT_SIGNATURE="sha256=" + "0" * 64,
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "INVALID_SIGNATURE")
        self.assertFalse(Booking.objects.exists())

    def test_missing_signature(self):
        response = self.client.post(self.webhook_url, data=self._event(), content_type="application/json")

        self.assertEqual(response.status_code, 403)

    def test_invalid_json(self):
        response = self._post_with_signature(b"not json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["message"], "Invalid JSON")

    def test_missing_hold_reference(self):
        response = self._post_with_signature(self._event(metadata={}))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "INVALID_PAYLOAD")

    def test_amount_mismatch(self):
        response = self._post_with_signature(self._event(amount=100))

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "PAYMENT_MISMATCH")
        self.hold.refresh_from_db()
        self.assertEqual(self.hold.status, Hold.Status.ACTIVE)

    def test_other_event_types_are_acknowledged(self):
        response = self._post_with_signature(self._event(event_type="charge.refunded"))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["received"])
        self.assertFalse(ProcessedPaymentEvent.objects.exists())
        self.hold.refresh_from_db()
        self.assertEqual(self.hold.status, Hold.Status.ACTIVE)

    def test_webhook_method_not_allowed(self):
        response = self.client.get(self.webhook_url)

        self.assertEqual(response.status_code, 405)
