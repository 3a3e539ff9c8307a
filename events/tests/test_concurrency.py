"""
Races against the real database. On PostgreSQL the event row lock
serializes writers; on SQLite the IMMEDIATE transaction mode does.
"""
import threading
from unittest import mock

from django.db import connection
from django.test import TransactionTestCase

from events.exceptions import APIException, CapacityExceeded, InsufficientStock
from events.models import Registration, RegistrationOrder, Team
from events.services import registration as registrations
from events.services import team as teams
from .helpers import TSHIRT_ORDER, make_event, make_merch_event, make_team_event, make_user, tshirt_stock


def run_concurrently(func, args_list):
    """Start one thread per argument tuple behind a barrier; collect results and errors."""
    barrier = threading.Barrier(len(args_list))
    results, errors = [], []
    lock = threading.Lock()

    def worker(args):
        try:
            barrier.wait()
            result = func(*args)
            with lock:
                results.append(result)
        except APIException as e:
            with lock:
                errors.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(args,)) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


class ConcurrencyTests(TransactionTestCase):
    def setUp(self):
        patcher = mock.patch("events.tasks.send_ticket_email_task.delay")
        self.queue_ticket_email = patcher.start()
        self.addCleanup(patcher.stop)
        self.organizer = make_user("organizer", role="organizer")

    def test_last_seat(self):
        event = make_event(self.organizer, max_participants=5)
        users = [make_user(f"racer{i}") for i in range(20)]

        results, errors = run_concurrently(
            registrations.register_individual,
            [(event.id, user) for user in users],
        )

        self.assertEqual(len(results), 5)
        self.assertEqual(len(errors), 15)
        self.assertTrue(all(isinstance(e, CapacityExceeded) for e in errors))
        self.assertEqual(Registration.objects.filter(event=event).count(), 5)

    def test_double_submit_creates_one_registration(self):
        event = make_event(self.organizer)
        alice = make_user("alice")

        results, errors = run_concurrently(
            registrations.register_individual,
            [(event.id, alice) for _ in range(5)],
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(Registration.objects.filter(event=event, participant=alice).count(), 1)

    def test_stock_is_never_oversold(self):
        event = make_merch_event(self.organizer, stock=5)
        regs = []
        for i in range(4):
            user = make_user(f"buyer{i}")
            reg = registrations.register_merchandise(event.id, user, order=dict(TSHIRT_ORDER, quantity=2))
            registrations.upload_payment_proof(reg.id, user, f"payments/{i}.png")
            regs.append(reg)

        results, errors = run_concurrently(
            registrations.approve_payment,
            [(reg.id, self.organizer) for reg in regs],
        )

        self.assertEqual(len(results), 2)
        self.assertTrue(all(isinstance(e, InsufficientStock) for e in errors))
        self.assertEqual(tshirt_stock(event), 1)
        self.assertEqual(
            RegistrationOrder.objects.filter(
                registration__event=event,
                payment_status=RegistrationOrder.PAYMENT_APPROVED,
            ).count(),
            2,
        )

    def test_last_team_slot(self):
        event = make_team_event(self.organizer)
        leader = make_user("leader")
        team = teams.create_team(event.id, leader, "Race Condition", 2)
        joiners = [make_user(f"joiner{i}") for i in range(5)]

        results, errors = run_concurrently(
            teams.join_team,
            [(team.invite_code, user) for user in joiners],
        )

        self.assertEqual(len(results), 1)
        self.assertTrue(all(isinstance(e, CapacityExceeded) for e in errors))
        team.refresh_from_db()
        self.assertEqual(team.status, Team.STATUS_REGISTERED)
        self.assertEqual(Registration.objects.filter(team=team).count(), 2)
