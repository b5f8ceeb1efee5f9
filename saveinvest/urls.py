from django.contrib import admin
from django.urls import path, include


def health_check(request):
    from django.http import JsonResponse

    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz", health_check),
    path("api/", include("saveinvest.apps.users.urls")),
    path("api/", include("saveinvest.apps.onboarding.urls")),
    path("api/", include("saveinvest.apps.kyc.urls")),
    path("api/", include("saveinvest.apps.banking.urls")),
    path("api/", include("saveinvest.apps.savings.urls")),
    path("api/", include("saveinvest.apps.investments.urls")),
    path("api/", include("saveinvest.apps.analytics.urls")),
]
