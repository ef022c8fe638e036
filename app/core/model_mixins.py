"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Integer version column for optimistic concurrency
    MetadataMixin: Flexible JSON metadata storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class VendorAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        provider_account_id = models.CharField(max_length=255, unique=True)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Record ids are handed to API clients, so they must not reveal
    record counts or be guessable.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic locking via an integer version column.

    Every save() of an existing row bumps the version atomically in the
    database. Conditional writes go through
    payments.stores.RecordStore.compare_and_swap, which only updates the
    row while the stored version still matches the caller's copy.

    Fields:
        version: Incremented on every update
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args: Any, **kwargs: Any) -> None:
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            # Resolve the F() expression to the stored value
            self.refresh_from_db(fields=["version"])


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Holds caller-supplied context (order references, vendor business
    details) that the engine carries but never interprets.
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata",
    )

    class Meta:
        abstract = True
