import os
import time

from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import persistence, refresh, utils
from .exceptions import InvalidQuery, SourceUnavailable
from .serializers import CountrySerializer

SOURCE_LABELS = {
    "countries": "Countries API",
    "exchange_rates": "Exchange rates API",
}

ALLOWED_FILTERS = {
    "region": "region",
    "currency": "currency",
    "currency_code": "currency",
    "sort": "sort",
}


@api_view(['POST'])
def refresh_countries(request):
    """
    POST /countries/refresh
    Fetch countries and exchange rates, then insert or overwrite cached rows.
    Only the count of rows written is reported; dropped records are logged.
    """
    start_time = time.time()

    try:
        result = refresh.refresh_countries()
    except SourceUnavailable as exc:
        label = SOURCE_LABELS.get(exc.source, exc.source)
        return Response(
            {"error": "External data source unavailable", "details": f"Could not fetch data from {label}"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    body = result.as_response()
    body["duration_seconds"] = round(time.time() - start_time, 2)
    return Response(body, status=status.HTTP_200_OK)


@api_view(['GET'])
def list_countries(request):
    """
    GET /countries
    Filters:
      - region (case-insensitive), currency / currency_code (case-insensitive)
    Sorting:
      - ?sort=gdp_desc, or <field>_asc / <field>_desc
    Default:
      - Ordered by id ascending.
    """
    params = {}
    for key in request.query_params.keys():
        if key not in ALLOWED_FILTERS:
            return Response(
                {"error": "Validation failed", "details": {key: "is not a valid filter"}},
                status=status.HTTP_400_BAD_REQUEST
            )
        value = request.query_params.get(key)
        if value is None or value.strip() == "":
            return Response(
                {"error": "Validation failed", "details": {key: "is required"}},
                status=status.HTTP_400_BAD_REQUEST
            )
        params[ALLOWED_FILTERS[key]] = value

    try:
        qs = persistence.list_countries(**params)
    except InvalidQuery as exc:
        return Response(
            {"error": "Validation failed", "details": exc.details},
            status=status.HTTP_400_BAD_REQUEST,
        )

    serializer = CountrySerializer(qs, many=True)
    return Response(serializer.data)


@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    GET /countries/:name  -> country, or 404 JSON if not found
    DELETE /countries/:name -> the deleted country, or 404
    """
    if request.method == 'GET':
        country = persistence.get_country(name)
    else:
        country = persistence.delete_country(name)

    if country is None:
        return Response({"error": "Country not found"}, status=status.HTTP_404_NOT_FOUND)
    return Response(CountrySerializer(country).data)


@api_view(['GET'])
def get_status(request):
    """
    GET /status -> { totalCountries, lastRefreshedAt }
    lastRefreshedAt is max(last_refreshed_at) across records (or null)
    """
    stats = persistence.refresh_status()
    last = stats["lastRefreshedAt"]
    return Response({
        "totalCountries": stats["totalCountries"],
        "lastRefreshedAt": last.isoformat() if last else None,
    })


@api_view(['GET'])
def get_summary_image(request):
    """
    GET /countries/image
    Serve the most recently generated summary image, or a JSON 404.
    """
    path = utils.get_summary_image_path()
    if not os.path.exists(path):
        return Response({"error": "Summary image not found"}, status=status.HTTP_404_NOT_FOUND)
    return FileResponse(open(path, 'rb'), content_type='image/png')
