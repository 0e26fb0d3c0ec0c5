from django.urls import path

from . import views

app_name = "judging"

urlpatterns = [
    path("<slug:slug>/rubric/", views.rubric, name="rubric"),
    path("<slug:slug>/submissions/<int:submission_id>/judgment/", views.submit_judgment, name="submit_judgment"),
]
