"""
Record store over the Django ORM.

Services never call Model.save() for an existing record directly. They
read a record, change it in memory, and write it back through
compare_and_swap, which only succeeds while the stored version is still
the version that was read. A lost race raises StaleRecordError instead of
silently overwriting the other writer.

Usage:
    from payments.stores import RecordStore

    store = RecordStore(PaymentIntentRecord)
    record = store.get_by(provider_transaction_id="pi_123")
    expected = record.version
    record.succeed()
    store.compare_and_swap(record, expected, fields=["status", "succeeded_at"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import connection, models, transaction
from django.utils import timezone

from payments.exceptions import PaymentNotFoundError, StaleRecordError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


class RecordStore(Generic[M]):
    """
    get / put / compare_and_swap for one versioned model.

    Args:
        model: Model class with an integer ``version`` field
    """

    def __init__(self, model: type[M]) -> None:
        self.model = model

    @property
    def _name(self) -> str:
        return self.model.__name__

    def get(self, pk: Any) -> M:
        """Fetch by primary key or raise PaymentNotFoundError."""
        return self.get_by(pk=pk)

    def get_by(self, **lookup: Any) -> M:
        """Fetch by a unique lookup or raise PaymentNotFoundError."""
        try:
            return self.model.objects.get(**lookup)
        except self.model.DoesNotExist:
            raise PaymentNotFoundError(
                f"{self._name} not found",
                error_code=f"{self._name.upper()}_NOT_FOUND",
                details={key: str(value) for key, value in lookup.items()},
            ) from None

    def find(self, **lookup: Any) -> M | None:
        return self.model.objects.filter(**lookup).first()

    def put(self, instance: M) -> M:
        """Insert a new record."""
        instance.save(force_insert=True)
        return instance

    def compare_and_swap(
        self,
        instance: M,
        expected_version: int,
        fields: Iterable[str],
    ) -> M:
        """
        Write ``fields`` only if the stored version is still ``expected_version``.

        The write and the version bump happen in one UPDATE statement; on
        databases that support it the row is also locked first.

        Raises:
            StaleRecordError: Another writer changed the record
        """
        values = {name: getattr(instance, name) for name in fields}
        values["version"] = expected_version + 1
        values["updated_at"] = timezone.now()

        with transaction.atomic():
            queryset = self.model.objects.filter(
                pk=instance.pk, version=expected_version
            )
            if connection.features.has_select_for_update:
                list(queryset.select_for_update().values_list("pk", flat=True))
            updated = queryset.update(**values)

        if updated == 0:
            current = (
                self.model.objects.filter(pk=instance.pk)
                .values_list("version", flat=True)
                .first()
            )
            if current is None:
                raise PaymentNotFoundError(
                    f"{self._name} {instance.pk} not found",
                    error_code=f"{self._name.upper()}_NOT_FOUND",
                    details={"pk": str(instance.pk)},
                )
            logger.warning(
                "Stale record write rejected",
                extra={
                    "model": self._name,
                    "pk": str(instance.pk),
                    "expected_version": expected_version,
                    "current_version": current,
                },
            )
            raise StaleRecordError(
                f"{self._name} {instance.pk} has been modified "
                f"(expected version {expected_version}, current {current})",
                details={
                    "pk": str(instance.pk),
                    "expected_version": expected_version,
                    "current_version": current,
                },
            )

        instance.version = expected_version + 1
        instance.updated_at = values["updated_at"]
        return instance


__all__ = ["RecordStore"]
