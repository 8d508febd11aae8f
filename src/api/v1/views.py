"""API views over the compensation, statistics and P&L engines.

Views stay thin: validate the query string, check the actor's scope,
call one engine and return its plain-dict result.
"""
from __future__ import annotations

import logging

from django.utils import timezone
from rest_framework import viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.permissions import (
    CanManagePay,
    SeesFinance,
    can_view_group,
    can_view_user,
    can_view_workspace,
)
from api.v1.serializers import ManagerPlanSerializer, SalaryCorrectionSerializer
from commercial.models import ManagerPlan, SalaryCorrection
from core.numbers import round2
from core.periods import current_period, is_valid_period

logger = logging.getLogger("signcrm")

INVALID_PERIOD = {"detail": "Format de periode invalide (attendu: YYYY-MM)."}


def _requested_period(request):
    """Period from ``?period=``, the current month when absent, ``None`` when malformed."""
    period = request.query_params.get("period") or current_period()
    if not is_valid_period(period):
        return None
    return period


def _requested_window(request):
    """``(window, error)`` from ``?window=``, ``PNL_WINDOW`` when absent."""
    from django.conf import settings

    try:
        window = int(request.query_params.get("window") or settings.PNL_WINDOW)
    except (TypeError, ValueError):
        return None, {"detail": "Parametre window invalide."}
    if not 1 <= window <= 12:
        return None, {"detail": "Le parametre window doit etre entre 1 et 12."}
    return window, None


class ManagerCommissionView(APIView):
    """
    GET /api/v1/commissions/managers/<user_id>/?period=
    Compensation card of one salesperson.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, user_id):
        from accounts.models import User
        from compensation.calculator import CommissionEngine

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)

        try:
            target = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return Response({"detail": "Utilisateur introuvable."}, status=404)
        if not can_view_user(request.user, target):
            return Response({"detail": "Acces refuse a cet utilisateur."}, status=403)

        card = CommissionEngine(period).compute_for_manager(target.pk)
        return Response(card)


class GroupCommissionView(APIView):
    """
    GET /api/v1/commissions/groups/<group_id>/?period=
    Per-member overview of a sales team.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, group_id):
        from compensation.calculator import CommissionEngine
        from workspaces.models import Group

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)

        try:
            group = Group.objects.get(pk=group_id)
        except Group.DoesNotExist:
            return Response({"detail": "Equipe introuvable."}, status=404)
        if not can_view_group(request.user, group):
            return Response({"detail": "Acces refuse a cette equipe."}, status=403)

        engine = CommissionEngine(period)
        context = engine.group_context(group.pk)
        return Response(
            {
                "group": {"id": group.pk, "title": group.title},
                "period": period,
                "plan": context.plan,
                "total_sales": context.total_sales,
                "ad_expenses": context.ad_expenses,
                "calls": context.calls,
                "call_cost": round2(context.call_cost),
                "members": engine.compute_group_summary(group.pk),
            }
        )


class RankingView(APIView):
    """
    GET /api/v1/rankings/<workspace_id>/?period=
    Published top lists and top bonuses of a business line.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, workspace_id):
        from compensation.ranking import rank_business_line
        from workspaces.models import Workspace

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)

        if not Workspace.objects.filter(pk=workspace_id).exists():
            return Response({"detail": "Espace introuvable."}, status=404)
        if not can_view_workspace(request.user, workspace_id):
            return Response({"detail": "Acces refuse a cet espace."}, status=403)

        result = rank_business_line(workspace_id, period)
        return Response({"workspace_id": workspace_id, "period": period, **result.as_dict()})


class StatisticsView(APIView):
    """
    GET /api/v1/statistics/?period=
    Company aggregate plus one aggregate per visible business line.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        from analytics.engine import PeriodAggregationEngine
        from workspaces.models import Workspace

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)

        user = request.user
        workspaces = (
            Workspace.objects.alive()
            .filter(department=Workspace.Department.COMMERCIAL)
            .order_by("id")
        )
        if not user.sees_all_workspaces:
            workspaces = workspaces.filter(pk=user.workspace_id)

        engine = PeriodAggregationEngine(period, today=timezone.localdate())
        company, parts = engine.build_company(list(workspaces))
        return Response(
            {
                "period": period,
                "company": company.as_dict(),
                "workspaces": [part.as_dict() for part in parts],
            }
        )


class PnlView(APIView):
    """
    GET /api/v1/pnl/?period=&window=&type=&line=&refresh=
    Cached P&L statement (waterfall by default).
    """

    permission_classes = [IsAuthenticated, SeesFinance]

    def get(self, request):
        from reports.models import PnlSnapshot
        from reports.pnl import LINE_ALL, LINES
        from reports.services import get_pnl_statement

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)

        statement_type = request.query_params.get("type", PnlSnapshot.StatementType.WATERFALL).upper()
        if statement_type not in PnlSnapshot.StatementType.values:
            return Response({"detail": "Type de rapport inconnu."}, status=400)

        window, error = _requested_window(request)
        if error is not None:
            return Response(error, status=400)

        line = request.query_params.get("line", LINE_ALL)
        if line not in LINES + (LINE_ALL,):
            return Response({"detail": "Ligne d'activite inconnue."}, status=400)
        if statement_type == PnlSnapshot.StatementType.WATERFALL:
            line = LINE_ALL

        refresh = request.query_params.get("refresh") in ("1", "true", "True")
        payload = get_pnl_statement(statement_type, period, window, line=line, refresh=refresh)
        return Response(payload)


class PnlExportView(APIView):
    """
    GET /api/v1/pnl/export/?period=&window=
    Waterfall as an ``.xlsx`` download.
    """

    permission_classes = [IsAuthenticated, SeesFinance]

    def get(self, request):
        from reports.export import export_pnl_to_excel
        from reports.models import PnlSnapshot
        from reports.services import get_pnl_statement

        period = _requested_period(request)
        if period is None:
            return Response(INVALID_PERIOD, status=400)
        window, error = _requested_window(request)
        if error is not None:
            return Response(error, status=400)

        payload = get_pnl_statement(PnlSnapshot.StatementType.WATERFALL, period, window)
        logger.info("P&L export period=%s by user=%s", period, request.user.pk)
        return export_pnl_to_excel(payload)


# ----------------------------------------------------------------------
# Administrative rows
# ----------------------------------------------------------------------

class _ScopedPayRowViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAuthenticated, CanManagePay]
    filterset_fields = ["period", "user"]
    ordering_fields = ["period", "created_at"]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.sees_all_workspaces:
            return qs
        return qs.filter(user__workspace_id=user.workspace_id)

    def _check_target(self, serializer):
        target = serializer.validated_data.get("user")
        if target is not None and not can_view_user(self.request.user, target):
            raise PermissionDenied("Utilisateur hors de votre perimetre.")

    def perform_create(self, serializer):
        self._check_target(serializer)
        serializer.save()

    def perform_update(self, serializer):
        self._check_target(serializer)
        serializer.save()


class ManagerPlanViewSet(_ScopedPayRowViewSet):
    """CRUD for monthly sales plans; deletion is soft."""

    serializer_class = ManagerPlanSerializer
    queryset = ManagerPlan.objects.filter(deleted_at__isnull=True).select_related("user")

    def perform_destroy(self, instance):
        instance.deleted_at = timezone.now()
        instance.save(update_fields=["deleted_at", "updated_at"])


class SalaryCorrectionViewSet(_ScopedPayRowViewSet):
    """CRUD for salary additions and deductions."""

    serializer_class = SalaryCorrectionSerializer
    queryset = SalaryCorrection.objects.select_related("user")
