"""Business lines (workspaces) and sales teams (groups)."""
from __future__ import annotations

from django.db import models

from core.models import SoftDeleteQuerySet, TimeStampedModel


class Workspace(TimeStampedModel):
    """A business line with its own commission ladder, e.g. ``B2B`` or ``VK``."""

    class Department(models.TextChoices):
        COMMERCIAL = "COMMERCIAL", "Commercial"
        PRODUCTION = "PRODUCTION", "Production"
        ADMINISTRATION = "ADMINISTRATION", "Administration"

    title = models.CharField("titre", max_length=120)
    department = models.CharField(
        "departement",
        max_length=20,
        choices=Department.choices,
        default=Department.COMMERCIAL,
        db_index=True,
    )
    deleted_at = models.DateTimeField("supprime le", null=True, blank=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        verbose_name = "espace"
        verbose_name_plural = "espaces"
        ordering = ["id"]

    def __str__(self) -> str:
        return self.title


class Group(TimeStampedModel):
    """Sales team inside a workspace."""

    title = models.CharField("titre", max_length=120)
    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.PROTECT,
        related_name="groups",
        verbose_name="espace",
    )
    deleted_at = models.DateTimeField("supprime le", null=True, blank=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        verbose_name = "equipe"
        verbose_name_plural = "equipes"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.title} ({self.workspace.title})"
