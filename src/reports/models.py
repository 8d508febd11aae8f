"""Models for the reports app."""
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from core.models import TimeStampedModel


class PnlSnapshot(TimeStampedModel):
    """Cached P&L statement for an anchor period and window.

    Written by ``reports.services.refresh_pnl_snapshot`` (directly or from
    the ``refresh_pnl_snapshot_task`` Celery task) so the finance pages do
    not rebuild the whole waterfall on every request.
    """

    class StatementType(models.TextChoices):
        WATERFALL = "WATERFALL", "Compte de resultat"
        TREND = "TREND", "Tendance revenus / depenses"

    statement_type = models.CharField(
        "type de rapport",
        max_length=20,
        choices=StatementType.choices,
    )
    anchor_period = models.CharField("periode (YYYY-MM)", max_length=7, db_index=True)
    window = models.PositiveSmallIntegerField("nombre de mois", default=4)
    line = models.CharField("ligne d'activite", max_length=10, default="all")
    payload = models.JSONField("donnees", default=dict, encoder=DjangoJSONEncoder)
    version = models.CharField("version des regles", max_length=20, blank=True, default="")
    computed_at = models.DateTimeField("calcule le")

    class Meta:
        verbose_name = "snapshot compte de resultat"
        verbose_name_plural = "snapshots compte de resultat"
        constraints = [
            models.UniqueConstraint(
                fields=["statement_type", "anchor_period", "window", "line"],
                name="uniq_pnl_snapshot",
            ),
        ]
        ordering = ["-anchor_period", "statement_type"]

    def __str__(self) -> str:
        return f"{self.get_statement_type_display()} {self.anchor_period} ({self.window} mois)"
