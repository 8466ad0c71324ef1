"""Unit tests for the shared persistence primitives.

Uses concrete test models created via Django's SchemaEditor so we can
exercise the abstract classes against a real database.

Covers:
- UUIDv7 primary keys and timestamps (``BaseModel``).
- Soft delete and the ``alive()``/``dead()`` querysets.
- ``VersionedModel`` starts at version 0.
- Outbox rows default to PENDING and track publish/failure.
"""

from __future__ import annotations

import uuid

import pytest
from django.db import connection, models
from django.utils import timezone
from freezegun import freeze_time

from modules.core.models import (
    BaseModel,
    EventStatus,
    OutboxEvent,
    SoftDeleteManager,
    SoftDeleteModel,
    SoftDeleteQuerySet,
    VersionedModel,
)

pytestmark = pytest.mark.unit


class Parcel(BaseModel):
    label = models.CharField(max_length=100)

    class Meta(BaseModel.Meta):
        app_label = "core"
        db_table = "test_parcel"


class Voucher(VersionedModel):
    code = models.CharField(max_length=100)

    class Meta(VersionedModel.Meta):
        app_label = "core"
        db_table = "test_voucher"


@pytest.fixture(scope="session")
def _test_tables(django_db_setup, django_db_blocker):
    """Create DB tables for the concrete test models."""
    with django_db_blocker.unblock():
        existing = connection.introspection.table_names()
        with connection.schema_editor() as editor:
            for model in (Parcel, Voucher):
                if model._meta.db_table not in existing:
                    editor.create_model(model)


@pytest.fixture(autouse=True)
def _use_test_tables(_test_tables):
    """Ensure test tables exist for every test in this module."""


class TestBaseModel:
    def test_id_is_uuid_version_7(self):
        obj = Parcel.objects.create(label="a")
        assert isinstance(obj.id, uuid.UUID)
        assert obj.id.version == 7

    def test_ids_are_time_ordered(self):
        a = Parcel.objects.create(label="first")
        b = Parcel.objects.create(label="second")
        assert str(a.id) < str(b.id)

    def test_save_with_update_fields_refreshes_updated_at(self):
        with freeze_time("2026-01-01 10:00:00"):
            obj = Parcel.objects.create(label="original")
        with freeze_time("2026-01-01 11:00:00"):
            obj.label = "changed"
            obj.save(update_fields=["label"])
        obj.refresh_from_db()
        assert obj.updated_at > obj.created_at

    def test_id_is_not_editable(self):
        assert Parcel._meta.get_field("id").editable is False


class TestSoftDelete:
    def test_new_instance_is_alive(self):
        obj = Voucher.objects.create(code="A")
        assert obj.is_deleted is False

    @freeze_time("2026-03-01 09:30:00")
    def test_delete_stamps_deleted_at(self):
        obj = Voucher.objects.create(code="A")
        assert obj.delete() == (1, {"core.Voucher": 1})
        obj.refresh_from_db()
        assert obj.deleted_at == timezone.now()

    def test_delete_twice_is_noop(self):
        obj = Voucher.objects.create(code="A")
        obj.delete()
        assert obj.delete() == (0, {})

    def test_row_survives_delete(self):
        obj = Voucher.objects.create(code="A")
        obj.delete()
        assert Voucher.objects.filter(pk=obj.pk).exists()

    def test_alive_and_dead_partition_rows(self):
        alive = Voucher.objects.create(code="alive")
        dead = Voucher.objects.create(code="dead")
        dead.delete()
        assert list(Voucher.objects.alive().filter(pk__in=[alive.pk, dead.pk])) == [alive]
        assert list(Voucher.objects.dead().filter(pk__in=[alive.pk, dead.pk])) == [dead]

    def test_bulk_delete_skips_already_deleted(self):
        a = Voucher.objects.create(code="a")
        b = Voucher.objects.create(code="b")
        a.delete()
        count, _ = Voucher.objects.filter(pk__in=[a.pk, b.pk]).delete()
        assert count == 1

    def test_manager_types(self):
        assert isinstance(Voucher.objects, SoftDeleteManager)
        assert isinstance(Voucher.objects.all(), SoftDeleteQuerySet)


class TestVersionedModel:
    def test_version_starts_at_zero(self):
        assert Voucher.objects.create(code="A").version == 0


class TestOutboxEvent:
    def _event(self) -> OutboxEvent:
        return OutboxEvent.objects.create(
            event_type="RefundCreated",
            payload={"aggregate_id": "r-1", "total_amount": "18.00"},
            aggregate_id="r-1",
            topic="refunds",
        )

    def test_defaults(self):
        event = self._event()
        event.refresh_from_db()
        assert event.status == EventStatus.PENDING
        assert event.retry_count == 0
        assert event.payload["total_amount"] == "18.00"

    def test_mark_as_published(self):
        event = self._event()
        event.mark_as_published()
        event.refresh_from_db()
        assert event.status == EventStatus.PUBLISHED
        assert event.processed_at is not None

    def test_mark_as_failed_counts_retries(self):
        event = self._event()
        event.mark_as_failed("broker down")
        event.mark_as_failed("broker still down")
        event.refresh_from_db()
        assert event.status == EventStatus.FAILED
        assert event.retry_count == 2
        assert event.error_message == "broker still down"

    def test_str(self):
        assert str(self._event()) == "RefundCreated [PENDING] (r-1)"
