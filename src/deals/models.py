"""Deals, their participants, add-ons, payments and deliveries.

These rows are written by the sales and production workflow; the
compensation and reporting engines only read them.
"""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import SoftDeleteQuerySet, TimeStampedModel


class Client(TimeStampedModel):
    full_name = models.CharField("nom complet", max_length=255)
    first_contact = models.DateField("premier contact", null=True, blank=True)
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="clients",
        verbose_name="espace",
        null=True,
        blank=True,
    )

    class Meta:
        verbose_name = "client"
        verbose_name_plural = "clients"
        ordering = ["id"]

    def __str__(self) -> str:
        return self.full_name


class DealQuerySet(SoftDeleteQuerySet):
    def countable(self):
        """Deals that count towards revenue and commission."""
        return self.filter(
            reservation=False,
            deleted_at__isnull=True,
        ).exclude(status=Deal.Status.RETURNED)


class Deal(TimeStampedModel):
    """A sale; the unit of revenue."""

    class Status(models.TextChoices):
        CREATED = "CREATED", "Creee"
        IN_PROGRESS = "IN_PROGRESS", "En production"
        DONE = "DONE", "Terminee"
        RETURNED = "RETURNED", "Retour"

    class MaketType(models.TextChoices):
        DESIGNER = "DESIGNER", "Maquette designer"
        TEMPLATE = "TEMPLATE", "Modele"
        PROMOTIONAL = "PROMOTIONAL", "Promo"
        MAILING = "MAILING", "Mailing"
        VISUALIZER = "VISUALIZER", "Visualiseur"

    title = models.CharField("titre", max_length=255)
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name="deals",
        verbose_name="client",
        null=True,
        blank=True,
    )
    price = models.DecimalField(
        "prix",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    sale_date = models.DateField("date de vente", db_index=True)
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.CREATED,
        db_index=True,
    )
    reservation = models.BooleanField("reservation", default=False)
    maket_type = models.CharField(
        "type de maquette",
        max_length=20,
        choices=MaketType.choices,
        default=MaketType.DESIGNER,
    )
    source = models.CharField("source", max_length=120, blank=True, default="")
    ad_tag = models.CharField("tag publicitaire", max_length=120, blank=True, default="")
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="deals",
        verbose_name="espace",
    )
    group = models.ForeignKey(
        "workspaces.Group",
        on_delete=models.PROTECT,
        related_name="deals",
        verbose_name="equipe",
    )
    deleted_at = models.DateTimeField("supprime le", null=True, blank=True)

    objects = DealQuerySet.as_manager()

    class Meta:
        verbose_name = "affaire"
        verbose_name_plural = "affaires"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["workspace", "sale_date"]),
            models.Index(fields=["group", "sale_date"]),
        ]

    def __str__(self) -> str:
        return f"#{self.pk} {self.title}"


class DealParticipant(TimeStampedModel):
    """A salesperson's share of a deal's price."""

    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name="dealers",
        verbose_name="affaire",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="deal_shares",
        verbose_name="commercial",
    )
    price = models.DecimalField(
        "part",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    idx = models.PositiveSmallIntegerField("ordre", default=0)

    class Meta:
        verbose_name = "participant"
        verbose_name_plural = "participants"
        ordering = ["deal_id", "idx", "id"]

    def __str__(self) -> str:
        return f"{self.user} / {self.deal_id}: {self.price}"


class AddOn(TimeStampedModel):
    """Supplementary sale attached to a deal ("dop")."""

    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name="addons",
        verbose_name="affaire",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="addons",
        verbose_name="commercial",
    )
    price = models.DecimalField(
        "prix",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    sale_date = models.DateField("date de vente", db_index=True)
    type = models.CharField("type", max_length=120, blank=True, default="")
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="addons",
        verbose_name="espace",
    )
    group = models.ForeignKey(
        "workspaces.Group",
        on_delete=models.PROTECT,
        related_name="addons",
        verbose_name="equipe",
    )

    class Meta:
        verbose_name = "option"
        verbose_name_plural = "options"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.type or 'Option'} ({self.price})"


class Payment(TimeStampedModel):
    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name="payments",
        verbose_name="affaire",
    )
    price = models.DecimalField("montant", max_digits=14, decimal_places=2)
    date = models.DateField("date", db_index=True)
    method = models.CharField("mode de paiement", max_length=60, blank=True, default="")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="collected_payments",
        verbose_name="encaisse par",
        null=True,
        blank=True,
    )

    class Meta:
        verbose_name = "paiement"
        verbose_name_plural = "paiements"
        ordering = ["date", "id"]

    def __str__(self) -> str:
        return f"{self.date} {self.price} (affaire #{self.deal_id})"


class Delivery(TimeStampedModel):
    class Status(models.TextChoices):
        CREATED = "CREATED", "Creee"
        SHIPPED = "SHIPPED", "Expediee"
        DELIVERED = "DELIVERED", "Livree"
        RETURNED = "RETURNED", "Retournee"

    class Type(models.TextChoices):
        PAID = "PAID", "Payante"
        FREE = "FREE", "Gratuite"

    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name="deliveries",
        verbose_name="affaire",
    )
    price = models.DecimalField(
        "cout",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    date = models.DateField("date d'expedition", null=True, blank=True, db_index=True)
    delivered_date = models.DateField("date de livraison", null=True, blank=True)
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.CREATED,
        db_index=True,
    )
    type = models.CharField(
        "type",
        max_length=10,
        choices=Type.choices,
        default=Type.PAID,
    )

    class Meta:
        verbose_name = "livraison"
        verbose_name_plural = "livraisons"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"Livraison #{self.pk} ({self.get_status_display()})"

    @property
    def is_shipped(self) -> bool:
        return self.status in (self.Status.SHIPPED, self.Status.DELIVERED)
