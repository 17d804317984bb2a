"""
The ``estimated_gdp`` figure is a synthetic placeholder, not an economic
model: population times a random multiplier, divided by the USD rate.

The multiplier is the only pluggable part. Anything callable with no
arguments and returning a positive number can stand in for it, either passed
directly to the merger or configured via ``COUNTRIES_GDP_MULTIPLIER``.
"""
import math
import random

from django.conf import settings
from django.utils.module_loading import import_string


def random_multiplier():
    low, high = settings.COUNTRIES_GDP_MULTIPLIER_RANGE
    return random.randint(low, high)


def get_multiplier():
    """Return the multiplier callable named by settings."""
    return import_string(settings.COUNTRIES_GDP_MULTIPLIER)


def estimate_gdp(population, rate, multiplier):
    # a missing rate must never look like a zero GDP
    if population is None or rate is None or rate <= 0:
        return None
    try:
        value = population * multiplier() / rate
    except ArithmeticError:
        # population too large to convert to float
        return None
    if not math.isfinite(value):
        return None
    return value
