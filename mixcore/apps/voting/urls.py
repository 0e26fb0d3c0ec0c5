from django.urls import path

from . import views

app_name = "voting"

urlpatterns = [
    # Ronda 1
    path("<slug:slug>/round1/assigned/", views.assigned_submissions, name="assigned_submissions"),
    path("<slug:slug>/round1/ballot/", views.cast_round1_ballot, name="cast_round1_ballot"),
    # Ronda 2
    path("<slug:slug>/round2/", views.round2_ballot, name="round2_ballot"),
    path("<slug:slug>/round2/vote/", views.cast_round2_vote, name="cast_round2_vote"),
    # Resultados
    path("<slug:slug>/results/", views.competition_results, name="results"),
]
