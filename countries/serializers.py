import logging
from typing import List, Sequence, Tuple

from rest_framework import serializers

from .exceptions import ValidationFailed
from .merge import MergedCountryRecord
from .models import Country

logger = logging.getLogger(__name__)

# upper bound of the BigIntegerField column
MAX_POPULATION = 2**63 - 1


class CountrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = [
            'id', 'name', 'capital', 'region', 'population',
            'currency_code', 'exchange_rate', 'estimated_gdp',
            'flag_url', 'last_refreshed_at'
        ]


class RefreshRecordSerializer(serializers.Serializer):
    """
    Presence checks applied to merged records before they are written.
    - name must be present and non-blank
    - population must be present, non-negative and fit the column
    - currency_code must be present ("N/A" counts)
    A missing exchange rate is not a validation failure.
    """
    name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    population = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=MAX_POPULATION)
    currency_code = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate(self, data):
        errors = {}
        if not (data.get("name") or "").strip():
            errors["name"] = "is required"
        if data.get("population") is None:
            errors["population"] = "is required"
        if not data.get("currency_code"):
            errors["currency_code"] = "is required"

        if errors:
            raise serializers.ValidationError({
                "error": "Validation failed",
                "details": errors
            })

        return data


def validate_record(record: MergedCountryRecord) -> MergedCountryRecord:
    serializer = RefreshRecordSerializer(data={
        "name": record.name,
        "population": record.population,
        "currency_code": record.currency_code,
    })
    if not serializer.is_valid():
        raise ValidationFailed(record.name, serializer.errors.get("details", serializer.errors))
    return record


def validate_records(
    records: Sequence[MergedCountryRecord],
) -> Tuple[List[MergedCountryRecord], List[ValidationFailed]]:
    """Split records into (valid, skipped); a failing record never stops the rest."""
    valid, skipped = [], []
    for record in records:
        try:
            valid.append(validate_record(record))
        except ValidationFailed as exc:
            logger.warning("Dropping %r from refresh: %s", record.name, exc.details)
            skipped.append(exc)
    return valid, skipped
