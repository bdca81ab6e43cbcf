from datetime import datetime, timezone

import ydb
import pytest

from tripwatch_storage.errors import ExecutionError
from tripwatch_storage.models import NOTIFICATION_STATUS_SENT, Notification, TripInfo


def make_trip(trip_id="trip-99"):
    return TripInfo(
        id=trip_id,
        from_place_name="Paris",
        to_place_name="Lyon",
        departure_time="08:30",
        arrival_time="13:10",
        duration="4h40",
        price="29,50 €",
        seats_available=3,
        deep_link="https://www.blablacar.fr/trip?source=CARPOOLING&id=trip-99",
        driver_name="Camille",
        driver_rating=4.8,
    )


class TestNotificationRepository:

    def test_find_then_create(self, db):
        assert db.notifications.find_by_trip(12345, "sub-1", "trip-99") is None

        created = db.notifications.create(Notification(
            chat_id=12345, subscription_id="sub-1", trip_id="trip-99", message_id=7,
        ))

        found = db.notifications.find_by_trip(12345, "sub-1", "trip-99")
        assert found == created
        assert found.message_id == 7

    def test_create_forces_id_status_and_time(self, db):
        stale = datetime(2020, 1, 1, tzinfo=timezone.utc)
        created = db.notifications.create(Notification(
            chat_id=12345, subscription_id="sub-1", trip_id="trip-1",
            status="edited", created_at=stale,
        ))
        assert created.id
        assert created.status == NOTIFICATION_STATUS_SENT
        assert created.created_at > stale

    def test_triple_must_match_exactly(self, db):
        db.notifications.create(Notification(chat_id=12345, subscription_id="sub-1", trip_id="trip-1"))

        assert db.notifications.find_by_trip(12345, "sub-2", "trip-1") is None
        assert db.notifications.find_by_trip(12345, "sub-1", "trip-2") is None
        assert db.notifications.find_by_trip(1, "sub-1", "trip-1") is None

    def test_for_trip(self, db):
        record = Notification.for_trip(12345, "sub-1", make_trip(), message_id=11)
        created = db.notifications.create(record)

        assert created.trip_id == "trip-99"
        assert db.notifications.find_by_trip(12345, "sub-1", "trip-99").message_id == 11

    def test_update_message_id(self, db):
        created = db.notifications.create(Notification(
            chat_id=12345, subscription_id="sub-1", trip_id="trip-99", message_id=7,
        ))

        db.notifications.update_message_id(created.id, 8)

        found = db.notifications.find_by_trip(12345, "sub-1", "trip-99")
        assert found.message_id == 8
        assert found.id == created.id
        assert found.created_at == created.created_at

    def test_lookup_failure_is_not_a_miss(self, db, executor):
        executor.fail_with = ydb.issues.Unavailable("unavailable")
        with pytest.raises(ExecutionError):
            db.notifications.find_by_trip(12345, "sub-1", "trip-99")

    def test_find_by_trip_reads_base_table(self, db, executor):
        db.notifications.find_by_trip(12345, "sub-1", "trip-99")

        statement = executor.statements[-1]
        assert statement.name == "notifications.find_by_trip"
        assert "VIEW" not in statement.text
        assert "FROM notifications\nWHERE telegram_chat_id" in statement.text
