from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path


def health(request):
    return JsonResponse({"ok": True})


urlpatterns = [
    path("admin/", admin.site.urls),
    path("accounts/", include("django.contrib.auth.urls")),

    # API healthcheck
    path("api/health/", health, name="api_health"),

    # Votación (Ronda 1 / Ronda 2 / resultados públicos)
    path("competitions/", include(("mixcore.apps.voting.urls", "voting"), namespace="voting")),

    # Jueceo con rúbrica
    path("judging/", include(("mixcore.apps.judging.urls", "judging"), namespace="judging")),
]
