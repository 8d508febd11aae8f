"""Workshop labor records used for cost of goods sold."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class ProductionReport(TimeStampedModel):
    """Piece-rate work done on an order by a workshop employee."""

    class Kind(models.TextChoices):
        ASSEMBLER = "ASSEMBLER", "Assemblage"
        PACKER = "PACKER", "Emballage"
        MILLER = "MILLER", "Fraisage"
        REPAIR = "REPAIR", "Reparation"
        OTHER = "OTHER", "Autre"

    kind = models.CharField(
        "poste",
        max_length=20,
        choices=Kind.choices,
        db_index=True,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="production_reports",
        verbose_name="employe",
        null=True,
        blank=True,
    )
    deal = models.ForeignKey(
        "deals.Deal",
        on_delete=models.SET_NULL,
        related_name="production_reports",
        verbose_name="affaire",
        null=True,
        blank=True,
    )
    date = models.DateField("date", db_index=True)
    cost = models.DecimalField("cout", max_digits=14, decimal_places=2, default=Decimal("0"))
    penalty_cost = models.DecimalField(
        "penalite",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    lighting_cost = models.DecimalField(
        "cout eclairage",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )

    class Meta:
        verbose_name = "rapport de production"
        verbose_name_plural = "rapports de production"
        ordering = ["date", "id"]

    def __str__(self) -> str:
        return f"{self.get_kind_display()} {self.date}: {self.cost}"

    @property
    def net_cost(self) -> Decimal:
        total = self.cost - self.penalty_cost
        if self.kind == self.Kind.ASSEMBLER:
            total += self.lighting_cost
        return total


class LogisticsShift(TimeStampedModel):
    """A paid shift of the logistics crew."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="logistics_shifts",
        verbose_name="employe",
        null=True,
        blank=True,
    )
    shift_date = models.DateField("date du service", db_index=True)
    cost = models.DecimalField("cout", max_digits=14, decimal_places=2, default=Decimal("0"))
    penalty_cost = models.DecimalField(
        "penalite",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )

    class Meta:
        verbose_name = "service logistique"
        verbose_name_plural = "services logistiques"
        ordering = ["shift_date", "id"]

    def __str__(self) -> str:
        return f"Logistique {self.shift_date}: {self.cost}"
