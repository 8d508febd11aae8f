"""Serializers for the administrative pay rows."""
from __future__ import annotations

from rest_framework import serializers

from commercial.models import ManagerPlan, SalaryCorrection
from core.periods import is_valid_period


def _validate_period(value: str) -> str:
    if not is_valid_period(value):
        raise serializers.ValidationError("Format de periode invalide (attendu: YYYY-MM).")
    return value


class ManagerPlanSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source="user.get_full_name", read_only=True)

    class Meta:
        model = ManagerPlan
        fields = ["id", "user", "user_name", "period", "plan", "created_at"]
        read_only_fields = ["id", "user_name", "created_at"]

    def validate_period(self, value):
        return _validate_period(value)

    def validate_plan(self, value):
        if value < 0:
            raise serializers.ValidationError("Le plan ne peut pas etre negatif.")
        return value


class SalaryCorrectionSerializer(serializers.ModelSerializer):
    """Manual pay adjustment; the amount is always positive, the type gives the sign."""

    user_name = serializers.CharField(source="user.get_full_name", read_only=True)

    class Meta:
        model = SalaryCorrection
        fields = ["id", "user", "user_name", "period", "price", "type", "description", "created_at"]
        read_only_fields = ["id", "user_name", "created_at"]

    def validate_period(self, value):
        return _validate_period(value)

    def validate_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le montant doit etre positif.")
        return value
