# events/views/teams.py - Team Formation API Views

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle

from events.serializers import (
    InviteResponseSerializer,
    TeamCreateSerializer,
    TeamInviteSerializer,
    TeamJoinSerializer,
    TeamMemberSerializer,
    TeamPreviewSerializer,
    TeamSerializer,
)
from events.services import lifecycle


class TeamViewSet(viewsets.ViewSet):
    """
    Team formation for team-only events.

    GET  /api/teams/                     my active teams
    POST /api/teams/                     create (caller becomes leader)
    GET  /api/teams/<id>/                members and event organizer only
    POST /api/teams/join/                {"invite_code": "A1B2C3D4"}
    GET  /api/teams/preview/<code>/      before joining
    POST /api/teams/<id>/leave/
    POST /api/teams/<id>/cancel/         leader only
    POST /api/teams/<id>/invite/         leader only, {"user_id" | "username" | "email"}
    POST /api/teams/<id>/respond/        {"accept": true | false}
    """
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def get_throttles(self):
        if self.action in ("join", "respond"):
            self.throttle_scope = "team-join"
            return [ScopedRateThrottle()]
        return super().get_throttles()

    def list(self, request):
        teams = lifecycle.my_teams(request.user)
        return Response(TeamSerializer(teams, many=True).data)

    def create(self, request):
        serializer = TeamCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        team = lifecycle.create_team(
            data["event_id"],
            request.user,
            data["team_name"],
            data["team_size"],
            form_response=data.get("form_response"),
        )
        return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        team = lifecycle.team_for(pk, request.user)
        return Response(TeamSerializer(team).data)

    @action(detail=False, methods=["post"], url_path="join")
    def join(self, request):
        serializer = TeamJoinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        team = lifecycle.join_team(serializer.validated_data["invite_code"], request.user)
        return Response({"message": "Successfully joined team", "team": TeamSerializer(team).data})

    @action(detail=False, methods=["get"], url_path=r"preview/(?P<invite_code>[A-Za-z0-9]+)")
    def preview(self, request, invite_code=None):
        team = lifecycle.team_preview(invite_code)
        return Response(TeamPreviewSerializer(team).data)

    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        lifecycle.leave_team(pk, request.user)
        return Response({"message": "Successfully left team"})

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        team = lifecycle.cancel_team(pk, request.user)
        return Response({"message": "Team cancelled successfully", "team": TeamSerializer(team).data})

    @action(detail=True, methods=["post"])
    def invite(self, request, pk=None):
        serializer = TeamInviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        invitee = lifecycle.resolve_user(**serializer.validated_data)
        membership = lifecycle.invite_member(pk, request.user, invitee)
        return Response(TeamMemberSerializer(membership).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):
        serializer = InviteResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        accept = serializer.validated_data["accept"]
        team = lifecycle.respond_to_invite(pk, request.user, accept)
        return Response({
            "message": "Invite accepted" if accept else "Invite declined",
            "team": TeamSerializer(team).data,
        })
