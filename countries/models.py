from django.db import models
from django.db.models.functions import Lower


class Country(models.Model):
    # id — auto-generated surrogate identity, never changed by a refresh
    # name — natural key; stored as received, unique case-insensitively
    name = models.CharField(max_length=200, unique=True)
    capital = models.CharField(max_length=200, null=True, blank=True)
    # region — Title-Case normalized by the merger
    region = models.CharField(max_length=100, null=True, blank=True)
    population = models.BigIntegerField()
    # currency_code — upper-cased; "N/A" when the country reports no currency
    currency_code = models.CharField(max_length=10, null=True, blank=True)
    # exchange_rate — null when the code is missing from the rate snapshot
    exchange_rate = models.FloatField(null=True, blank=True)
    # estimated_gdp — null when there is no usable rate
    estimated_gdp = models.FloatField(null=True, blank=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    last_refreshed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "countries"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(Lower("name"), name="countries_name_ci_unique"),
        ]
        verbose_name_plural = "countries"

    def __str__(self):
        return self.name
