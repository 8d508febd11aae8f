"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1 import views as v1_views

router = DefaultRouter()
router.register(r"manager-plans", v1_views.ManagerPlanViewSet, basename="manager-plan")
router.register(r"salary-corrections", v1_views.SalaryCorrectionViewSet, basename="salary-correction")


app_name = "api"
urlpatterns = [
    path("", include(router.urls)),

    # Auth endpoints
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),

    # Compensation
    path("commissions/groups/<int:group_id>/", v1_views.GroupCommissionView.as_view(), name="commission-group"),
    path("commissions/managers/<int:user_id>/", v1_views.ManagerCommissionView.as_view(), name="commission-manager"),
    path("rankings/<int:workspace_id>/", v1_views.RankingView.as_view(), name="ranking"),

    # Statistics
    path("statistics/", v1_views.StatisticsView.as_view(), name="statistics"),

    # P&L
    path("pnl/", v1_views.PnlView.as_view(), name="pnl"),
    path("pnl/export/", v1_views.PnlExportView.as_view(), name="pnl-export"),
]
