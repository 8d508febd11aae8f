"""Models for categorized financial postings (bank statement line items)."""
from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from core.models import TimeStampedModel


class ExpenseCategory(TimeStampedModel):
    """Node of the accounting category tree.

    ``code`` is the stable key the P&L line items refer to; postings made
    on a child category count towards every ancestor code.
    """

    class CategoryType(models.TextChoices):
        INCOME = "INCOME", "Recette"
        EXPENSE = "EXPENSE", "Depense"

    name = models.CharField("nom", max_length=120)
    code = models.SlugField("code", max_length=60, unique=True)
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="children",
        verbose_name="categorie parente",
        null=True,
        blank=True,
    )
    type = models.CharField(
        "type",
        max_length=10,
        choices=CategoryType.choices,
        default=CategoryType.EXPENSE,
    )
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "categorie de depense"
        verbose_name_plural = "categories de depenses"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"

    def clean(self):
        node = self.parent
        while node is not None:
            if node.pk == self.pk:
                raise ValidationError("Une categorie ne peut pas etre sa propre parente.")
            node = node.parent


class Project(TimeStampedModel):
    """Cost center a posting can be tagged with (one per business line)."""

    title = models.CharField("titre", max_length=120)
    code = models.SlugField("code", max_length=40, unique=True)

    class Meta:
        verbose_name = "projet"
        verbose_name_plural = "projets"
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title


class OperationPosition(TimeStampedModel):
    """A single categorized line of a bank statement."""

    operation_date = models.DateField("date d'operation", db_index=True)
    amount = models.DecimalField(
        "montant",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    category = models.ForeignKey(
        ExpenseCategory,
        on_delete=models.PROTECT,
        related_name="positions",
        verbose_name="categorie",
    )
    project = models.ForeignKey(
        Project,
        on_delete=models.SET_NULL,
        related_name="positions",
        verbose_name="projet",
        null=True,
        blank=True,
    )
    counterparty = models.CharField("contrepartie", max_length=255, blank=True, default="")
    description = models.TextField("description", blank=True, default="")

    class Meta:
        verbose_name = "operation"
        verbose_name_plural = "operations"
        ordering = ["operation_date", "id"]
        indexes = [
            models.Index(fields=["category", "operation_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.operation_date} {self.category.code}: {self.amount}"
