"""Models for the commercial department: daily reports, plans, pay and ad spend."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class ManagerReport(TimeStampedModel):
    """One operational report per salesperson per working day (a shift)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="manager_reports",
        verbose_name="commercial",
    )
    date = models.DateField("date", db_index=True)
    period = models.CharField(
        "periode",
        max_length=7,
        db_index=True,
        help_text="Format YYYY-MM",
    )
    calls = models.PositiveIntegerField("demandes entrantes", default=0)
    makets = models.PositiveIntegerField("maquettes", default=0)
    makets_day_to_day = models.PositiveIntegerField("maquettes du jour", default=0)
    redirect_to_msg = models.PositiveIntegerField("redirections messagerie", default=0)
    is_intern = models.BooleanField("stagiaire", default=False)
    shift_cost = models.DecimalField(
        "cout du service",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )

    class Meta:
        verbose_name = "rapport commercial"
        verbose_name_plural = "rapports commerciaux"
        ordering = ["date", "id"]
        indexes = [
            models.Index(fields=["user", "period"]),
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.date}"

    def save(self, *args, **kwargs):
        if self.date and not self.period:
            self.period = self.date.strftime("%Y-%m")
        super().save(*args, **kwargs)


class ManagerPlan(TimeStampedModel):
    """Sales quota of a user for a period."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="manager_plans",
        verbose_name="commercial",
    )
    period = models.CharField(
        "periode",
        max_length=7,
        db_index=True,
        help_text="Format YYYY-MM",
    )
    plan = models.DecimalField(
        "plan",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    deleted_at = models.DateTimeField("supprime le", null=True, blank=True)

    class Meta:
        verbose_name = "plan commercial"
        verbose_name_plural = "plans commerciaux"
        ordering = ["period", "id"]

    def __str__(self) -> str:
        return f"{self.user} {self.period}: {self.plan}"


class SalaryPay(TimeStampedModel):
    """Amount already disbursed to a user for a period."""

    class Status(models.TextChoices):
        PENDING = "PENDING", "En attente"
        PAID = "PAID", "Paye"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="salary_pays",
        verbose_name="employe",
    )
    period = models.CharField("periode", max_length=7, db_index=True)
    price = models.DecimalField("montant", max_digits=14, decimal_places=2)
    date = models.DateField("date de versement")
    status = models.CharField(
        "statut",
        max_length=10,
        choices=Status.choices,
        default=Status.PAID,
    )

    class Meta:
        verbose_name = "versement de salaire"
        verbose_name_plural = "versements de salaire"
        ordering = ["date", "id"]

    def __str__(self) -> str:
        return f"{self.user} {self.period}: {self.price}"


class SalaryCorrection(TimeStampedModel):
    """Manual adjustment of a user's pay for a period."""

    class Type(models.TextChoices):
        DEDUCTION = "DEDUCTION", "Retenue"
        ADDITION = "ADDITION", "Prime"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="salary_corrections",
        verbose_name="employe",
    )
    period = models.CharField("periode", max_length=7, db_index=True)
    price = models.DecimalField("montant", max_digits=14, decimal_places=2)
    type = models.CharField("type", max_length=10, choices=Type.choices)
    description = models.TextField("description", blank=True, default="")

    class Meta:
        verbose_name = "correction de salaire"
        verbose_name_plural = "corrections de salaire"
        ordering = ["period", "id"]

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.price} ({self.user}, {self.period})"


class AdSource(TimeStampedModel):
    """Advertising channel, e.g. a marketplace or a social network."""

    title = models.CharField("titre", max_length=120)
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="ad_sources",
        verbose_name="espace",
    )

    class Meta:
        verbose_name = "source publicitaire"
        verbose_name_plural = "sources publicitaires"
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title


class AdExpense(TimeStampedModel):
    """Daily advertising spend on a channel."""

    price = models.DecimalField("montant", max_digits=14, decimal_places=2)
    date = models.DateField("date", db_index=True)
    ad_source = models.ForeignKey(
        AdSource,
        on_delete=models.PROTECT,
        related_name="expenses",
        verbose_name="source",
    )
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="ad_expenses",
        verbose_name="espace",
    )
    group = models.ForeignKey(
        "workspaces.Group",
        on_delete=models.PROTECT,
        related_name="ad_expenses",
        verbose_name="equipe",
        null=True,
        blank=True,
    )

    class Meta:
        verbose_name = "depense publicitaire"
        verbose_name_plural = "depenses publicitaires"
        ordering = ["date", "id"]

    def __str__(self) -> str:
        return f"{self.ad_source} {self.date}: {self.price}"
