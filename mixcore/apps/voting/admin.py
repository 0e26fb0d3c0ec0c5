from __future__ import annotations

from django.contrib import admin

from .models import Round1Assignment, SongCreatorPick, SubmissionGroup, SubmissionVote


@admin.register(Round1Assignment)
class Round1AssignmentAdmin(admin.ModelAdmin):
    list_display = ("competition", "voter", "voter_group_number", "assigned_group_number", "has_voted", "voting_completed_date")
    list_filter = ("competition", "has_voted", "assigned_group_number")
    search_fields = ("voter__username",)
    readonly_fields = ("has_voted", "voting_completed_date")


@admin.register(SubmissionGroup)
class SubmissionGroupAdmin(admin.ModelAdmin):
    list_display = (
        "competition", "group_number", "submission", "total_points",
        "first_place_votes", "second_place_votes", "third_place_votes", "rank_in_group",
    )
    list_filter = ("competition", "group_number")
    ordering = ("competition", "group_number", "rank_in_group")


@admin.register(SubmissionVote)
class SubmissionVoteAdmin(admin.ModelAdmin):
    list_display = ("competition", "voting_round", "voter", "submission", "rank", "points", "vote_time")
    list_filter = ("competition", "voting_round")
    search_fields = ("voter__username", "submission__mix_title")

    # Los votos son inmutables
    def has_change_permission(self, request, obj=None):
        return False


@admin.register(SongCreatorPick)
class SongCreatorPickAdmin(admin.ModelAdmin):
    list_display = ("competition", "rank", "submission", "created_at")
    list_filter = ("competition",)
    ordering = ("competition", "rank")
