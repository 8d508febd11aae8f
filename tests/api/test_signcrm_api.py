from datetime import date
from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from accounts.models import User
from commercial.models import ManagerPlan
from reports.export import XLSX_CONTENT_TYPE


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def owner(make_user):
    return make_user(role=User.Role.OWNER, first_name="Owner")


@pytest.mark.django_db
def test_endpoints_require_authentication(api_client):
    response = api_client.get(reverse("api:statistics"))

    assert response.status_code == 401


@pytest.mark.django_db
def test_manager_card(api_client, b2b_manager, b2b_workspace, b2b_group, make_deal):
    make_deal(b2b_workspace, b2b_group, "500000", date(2025, 2, 3), seller=b2b_manager, paid_on=date(2025, 2, 10))
    api_client.force_authenticate(user=b2b_manager)

    response = api_client.get(
        reverse("api:commission-manager", kwargs={"user_id": b2b_manager.id}),
        {"period": "2025-02"},
    )

    assert response.status_code == 200
    assert response.data["deal_pays"] == Decimal("15000.00")
    assert response.data["period"] == "2025-02"


@pytest.mark.django_db
def test_malformed_period_is_rejected(api_client, b2b_manager):
    api_client.force_authenticate(user=b2b_manager)

    response = api_client.get(
        reverse("api:commission-manager", kwargs={"user_id": b2b_manager.id}),
        {"period": "02-2025"},
    )

    assert response.status_code == 400


@pytest.mark.django_db
def test_sales_rep_cannot_read_a_colleague(api_client, b2b_manager, b2b_workspace, b2b_group, make_user):
    colleague = make_user(workspace=b2b_workspace, group=b2b_group)
    api_client.force_authenticate(user=b2b_manager)

    response = api_client.get(reverse("api:commission-manager", kwargs={"user_id": colleague.id}))

    assert response.status_code == 403


@pytest.mark.django_db
def test_team_lead_reads_own_group(api_client, b2b_manager, b2b_workspace, b2b_group, make_user):
    lead = make_user(role=User.Role.TEAM_LEAD, workspace=b2b_workspace, group=b2b_group)
    api_client.force_authenticate(user=lead)

    response = api_client.get(
        reverse("api:commission-group", kwargs={"group_id": b2b_group.id}),
        {"period": "2025-02"},
    )

    assert response.status_code == 200
    assert response.data["group"]["id"] == b2b_group.id
    assert {row["id"] for row in response.data["members"]} == {b2b_manager.id, lead.id}


@pytest.mark.django_db
def test_unknown_user_returns_404(api_client, admin_user):
    api_client.force_authenticate(user=admin_user)

    response = api_client.get(reverse("api:commission-manager", kwargs={"user_id": 999999}))

    assert response.status_code == 404


@pytest.mark.django_db
def test_ranking_scope(api_client, b2b_manager, vk_workspace):
    api_client.force_authenticate(user=b2b_manager)

    own = api_client.get(reverse("api:ranking", kwargs={"workspace_id": 2}), {"period": "2025-02"})
    other = api_client.get(reverse("api:ranking", kwargs={"workspace_id": vk_workspace.id}))
    missing = api_client.get(reverse("api:ranking", kwargs={"workspace_id": 404}))

    assert own.status_code == 200
    assert set(own.data["tops"]) == {"deal_sales", "addon_sales", "average_bill", "conversion"}
    assert other.status_code == 403
    assert missing.status_code == 404


@pytest.mark.django_db
def test_statistics_scoped_to_own_workspace(api_client, b2b_manager, vk_workspace):
    api_client.force_authenticate(user=b2b_manager)

    response = api_client.get(reverse("api:statistics"), {"period": "2025-03"})

    assert response.status_code == 200
    assert [part["title"] for part in response.data["workspaces"]] == ["B2B"]
    assert response.data["company"]["title"] == "Total"


@pytest.mark.django_db
def test_pnl_is_reserved_to_finance(api_client, b2b_manager, owner):
    api_client.force_authenticate(user=b2b_manager)
    assert api_client.get(reverse("api:pnl")).status_code == 403

    api_client.force_authenticate(user=owner)
    response = api_client.get(reverse("api:pnl"), {"period": "2025-03", "window": "2"})

    assert response.status_code == 200
    assert response.data["statement_type"] == "WATERFALL"
    assert response.data["periods"] == ["2025-02", "2025-03"]


@pytest.mark.django_db
@pytest.mark.parametrize(
    "params",
    [
        {"window": "13"},
        {"window": "-2"},
        {"window": "abc"},
        {"type": "BALANCE"},
        {"type": "TREND", "line": "outdoor"},
    ],
)
def test_pnl_rejects_bad_parameters(api_client, owner, params):
    api_client.force_authenticate(user=owner)

    response = api_client.get(reverse("api:pnl"), {"period": "2025-03", **params})

    assert response.status_code == 400


@pytest.mark.django_db
def test_pnl_trend_for_one_line(api_client, owner):
    api_client.force_authenticate(user=owner)

    response = api_client.get(reverse("api:pnl"), {"period": "2025-03", "type": "trend", "line": "book"})

    assert response.status_code == 200
    assert response.data["line"] == "book"


@pytest.mark.django_db
def test_pnl_export_is_an_xlsx_workbook(api_client, owner):
    api_client.force_authenticate(user=owner)

    response = api_client.get(reverse("api:pnl-export"), {"period": "2025-03", "window": "2"})

    assert response.status_code == 200
    assert response["Content-Type"] == XLSX_CONTENT_TYPE
    assert "compte_de_resultat_2025-03.xlsx" in response["Content-Disposition"]
    sheet = openpyxl.load_workbook(BytesIO(response.content)).active
    assert [cell.value for cell in sheet[1]] == ["Indicateur", "2025-02", "2025-03"]
    assert sheet["A2"].value == "Neon"


@pytest.mark.django_db
@pytest.mark.parametrize("window", ["-2", "0", "13", "abc"])
def test_pnl_export_rejects_out_of_range_window(api_client, owner, window):
    api_client.force_authenticate(user=owner)

    response = api_client.get(reverse("api:pnl-export"), {"period": "2025-03", "window": window})

    assert response.status_code == 400


@pytest.mark.django_db
def test_director_manages_plans_of_own_business_line(api_client, b2b_manager, b2b_workspace, vk_workspace, vk_group, make_user):
    director = make_user(role=User.Role.SALES_DIRECTOR, workspace=b2b_workspace)
    outsider = make_user(workspace=vk_workspace, group=vk_group)
    api_client.force_authenticate(user=director)
    url = reverse("api:manager-plan-list")

    created = api_client.post(url, {"user": b2b_manager.id, "period": "2025-03", "plan": "450000"}, format="json")
    refused = api_client.post(url, {"user": outsider.id, "period": "2025-03", "plan": "450000"}, format="json")
    invalid = api_client.post(url, {"user": b2b_manager.id, "period": "2025-3", "plan": "1"}, format="json")

    assert created.status_code == 201
    assert created.data["user_name"] == b2b_manager.get_full_name()
    assert refused.status_code == 403
    assert invalid.status_code == 400


@pytest.mark.django_db
def test_deleting_a_plan_is_soft(api_client, admin_user, b2b_manager):
    plan = ManagerPlan.objects.create(user=b2b_manager, period="2025-03", plan=Decimal("100"))
    api_client.force_authenticate(user=admin_user)

    response = api_client.delete(reverse("api:manager-plan-detail", kwargs={"pk": plan.pk}))

    assert response.status_code == 204
    plan.refresh_from_db()
    assert plan.deleted_at is not None


@pytest.mark.django_db
def test_sales_rep_cannot_edit_pay_rows(api_client, b2b_manager):
    api_client.force_authenticate(user=b2b_manager)

    response = api_client.get(reverse("api:salary-correction-list"))

    assert response.status_code == 403
