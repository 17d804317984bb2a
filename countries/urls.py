from django.urls import path
from . import views


urlpatterns = [
    # GET /status → Store totals and last refresh time
    path('status', views.get_status, name='get_status'),
    # POST /countries/refresh → Fetch both sources and upsert every country
    path('countries/refresh', views.refresh_countries, name='refresh_countries'),

    # GET /countries/image → Latest summary image (must precede <name>)
    path('countries/image', views.get_summary_image, name='get_summary_image'),
    # GET /countries → List countries (optional filters / sort)
    path('countries', views.list_countries, name='list_countries'),
    path('countries/', views.list_countries),

    # GET or DELETE /countries/<name> → Country detail or delete
    path('countries/<str:name>', views.country_detail, name='country_detail'),
]
