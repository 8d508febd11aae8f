"""Shared abstract models."""
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base adding creation and modification timestamps."""

    created_at = models.DateTimeField("cree le", auto_now_add=True)
    updated_at = models.DateTimeField("modifie le", auto_now=True)

    class Meta:
        abstract = True


class SoftDeleteQuerySet(models.QuerySet):
    """Queryset helpers for rows carrying a ``deleted_at`` timestamp."""

    def alive(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)
