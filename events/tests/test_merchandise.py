from decimal import Decimal

from django.test import TestCase

from events.exceptions import InsufficientStock, InvalidState, NotFound, ValidationError
from events.models import Registration, RegistrationOrder
from events.services import lifecycle
from events.services import registration as registrations
from events.services.ledger import release_stock, reserve_stock
from .helpers import TSHIRT_ORDER, make_event, make_merch_event, make_user, tshirt_stock


class MerchandiseOrderTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        self.event = make_merch_event(self.organizer, stock=5)

    def _paid_order(self, user, quantity):
        order = dict(TSHIRT_ORDER, quantity=quantity)
        reg = registrations.register_merchandise(self.event.id, user, order=order)
        registrations.upload_payment_proof(reg.id, user, f"payments/{user.username}.png")
        return reg

    def test_order_is_pending_and_stock_untouched(self):
        reg = registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, quantity=2))

        self.assertEqual(reg.status, Registration.STATUS_PENDING)
        self.assertEqual(reg.registration_type, "MERCH")
        order = reg.order
        self.assertEqual(order.sku, "TSHIRT")
        self.assertEqual(order.quantity, 2)
        self.assertEqual(order.amount_paid, Decimal("600.00"))
        self.assertEqual(tshirt_stock(self.event), 5)

    def test_registration_fee_is_added_to_total(self):
        self.event.fee = Decimal("50.00")
        self.event.save()

        reg = registrations.register_merchandise(self.event.id, self.alice, order=TSHIRT_ORDER)
        self.assertEqual(reg.order.amount_paid, Decimal("350.00"))

    def test_approval_decrements_stock(self):
        reg = self._paid_order(self.alice, 2)

        registrations.approve_payment(reg.id, self.organizer)

        self.assertEqual(tshirt_stock(self.event), 3)

    def test_cancel_after_approval_restores_stock(self):
        reg = self._paid_order(self.alice, 2)
        registrations.approve_payment(reg.id, self.organizer)

        # Participants cannot undo an approved merchandise order themselves
        with self.assertRaises(InvalidState):
            registrations.cancel(reg.id, self.alice)
        self.assertEqual(tshirt_stock(self.event), 3)

        reg = registrations.cancel(reg.id, self.organizer)
        self.assertEqual(reg.status, Registration.STATUS_CANCELLED)
        self.assertEqual(tshirt_stock(self.event), 5)

    def test_cancel_pending_order_leaves_stock(self):
        reg = self._paid_order(self.alice, 2)

        registrations.cancel(reg.id, self.alice)
        self.assertEqual(tshirt_stock(self.event), 5)

    def test_quantity_above_stock_is_refused_at_registration(self):
        self.event.items.update(purchase_limit_per_user=None)

        with self.assertRaises(InsufficientStock):
            registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, quantity=6))
        self.assertFalse(Registration.objects.filter(event=self.event).exists())

    def test_approval_fails_when_stock_ran_out(self):
        self.event.items.update(purchase_limit_per_user=None)
        first = self._paid_order(self.alice, 3)
        second = self._paid_order(self.bob, 3)

        registrations.approve_payment(first.id, self.organizer)
        with self.assertRaises(InsufficientStock):
            registrations.approve_payment(second.id, self.organizer)

        second.refresh_from_db()
        self.assertEqual(second.status, Registration.STATUS_PENDING)
        self.assertEqual(second.order.payment_status, RegistrationOrder.PAYMENT_PENDING)
        self.assertEqual(tshirt_stock(self.event), 2)

    def test_unknown_item_or_variant(self):
        with self.assertRaises(ValidationError):
            registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, sku="MUG"))
        with self.assertRaises(ValidationError):
            registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, size="XXL"))

    def test_variant_given_as_object(self):
        order = {"sku": "TSHIRT", "variant": {"size": "M", "color": "Black"}, "quantity": 1}
        reg = registrations.register_merchandise(self.event.id, self.alice, order=order)
        self.assertEqual(reg.order.size, "M")

    def test_purchase_limit(self):
        with self.assertRaises(ValidationError):
            registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, quantity=4))

    def test_zero_quantity(self):
        with self.assertRaises(ValidationError):
            registrations.register_merchandise(self.event.id, self.alice, order=dict(TSHIRT_ORDER, quantity=0))

    def test_free_merchandise_keeps_the_claimed_line(self):
        free = make_merch_event(self.organizer, title="Free stickers", merchandise_fee="0")

        reg = registrations.register_merchandise(free.id, self.alice, order=dict(TSHIRT_ORDER, quantity=2))

        self.assertEqual(reg.status, Registration.STATUS_CONFIRMED)
        self.assertTrue(reg.qr_payload)
        order = RegistrationOrder.objects.get(registration=reg)
        self.assertEqual((order.sku, order.size, order.color, order.quantity), ("TSHIRT", "M", "Black", 2))
        self.assertEqual(order.amount_paid, Decimal("0"))
        self.assertEqual(order.payment_status, RegistrationOrder.PAYMENT_NOT_REQUIRED)
        self.assertEqual(tshirt_stock(free), 5)

    def test_free_claim_stays_out_of_payment_review(self):
        free = make_merch_event(self.organizer, title="Free stickers", merchandise_fee="0")
        reg = registrations.register_merchandise(free.id, self.alice, order=TSHIRT_ORDER)

        with self.assertRaises(InvalidState):
            registrations.upload_payment_proof(reg.id, self.alice, "payments/free.png")
        with self.assertRaises(InvalidState):
            registrations.approve_payment(reg.id, self.organizer)
        with self.assertRaises(InvalidState):
            registrations.reject_payment(reg.id, self.organizer)
        self.assertFalse(lifecycle.payment_approvals(free.id, self.organizer).exists())

        registrations.cancel(reg.id, self.alice)
        self.assertEqual(tshirt_stock(free), 5)

    def test_registration_fee_only_order(self):
        self.event.fee = Decimal("50.00")
        self.event.save()

        reg = registrations.register_merchandise(self.event.id, self.alice)
        self.assertEqual(reg.order.sku, RegistrationOrder.SKU_REGISTRATION_FEE)
        self.assertFalse(reg.order.is_merchandise)

        registrations.upload_payment_proof(reg.id, self.alice, "payments/fee.png")
        registrations.approve_payment(reg.id, self.organizer)
        self.assertEqual(tshirt_stock(self.event), 5)

    def test_lifecycle_routes_by_event_type(self):
        reg = lifecycle.register(self.event.id, self.alice, order=TSHIRT_ORDER)
        self.assertEqual(reg.registration_type, "MERCH")

        normal = make_event(self.organizer, title="Talk")
        with self.assertRaises(ValidationError):
            lifecycle.register(normal.id, self.bob, order=TSHIRT_ORDER)

    def test_normal_flow_refuses_merch_event(self):
        with self.assertRaises(InvalidState):
            registrations.register_individual(self.event.id, self.alice)


class StockLedgerTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.event = make_merch_event(self.organizer, stock=2)

    def test_reserve_and_release(self):
        reserve_stock(self.event, "TSHIRT", "M", "Black", 2)
        self.assertEqual(tshirt_stock(self.event), 0)

        with self.assertRaises(InsufficientStock):
            reserve_stock(self.event, "TSHIRT", "M", "Black", 1)
        self.assertEqual(tshirt_stock(self.event), 0)

        release_stock(self.event, "TSHIRT", "M", "Black", 2)
        self.assertEqual(tshirt_stock(self.event), 2)

    def test_unknown_variant(self):
        with self.assertRaises(NotFound):
            reserve_stock(self.event, "TSHIRT", "S", "White", 1)
