"""FastAPI frontend for the dogwalk household coordinator.

Each browser session owns a :class:`~dogwalk.service.HouseholdStore`; all of
them share one SQLite-backed record store. Handlers apply changes in memory
and hand the resulting persistence effects to a background task, so the
response never waits on the database.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.sessions import SessionMiddleware

from ..actions import (
    AcceptSwap,
    Action,
    AddMember,
    AddWalk,
    ConfirmWalk,
    EndWalk,
    FlagMissedWalks,
    GrantAchievement,
    MarkAllNotificationsRead,
    MarkNotificationRead,
    QueueReminders,
    ReassignWalk,
    RemoveMember,
    RemoveWalks,
    RequestCover,
    RequestSwap,
    RescheduleWalk,
    StartWalk,
    SwitchUser,
    UpdateDog,
)
from ..exceptions import ErrorKind
from ..models import (
    DogMood,
    DogProfile,
    EnergyLevel,
    HouseholdMember,
    MemberRole,
    Notification,
    Walk,
    WalkActivity,
)
from ..notifications import is_actionable
from ..ops import StructuredLogger
from ..records import LocalSnapshotStore, notification_record, snapshot_document, walk_record
from ..reducer import Outcome
from ..service import HouseholdStore
from .config import REMEMBER_COOKIE_MAX_AGE, SESSION_COOKIE_NAME, WebConfig
from .persistence import SqlRecordStore

ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_AUTHORIZED: 403,
    ErrorKind.SELF_ACCEPT_NOT_ALLOWED: 403,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.ALREADY_ACCEPTED: 409,
    ErrorKind.NO_ACTIVE_WALK: 409,
    ErrorKind.MISSING_START_TIME: 409,
    ErrorKind.PERSISTENCE_UNAVAILABLE: 503,
}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class MemberIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=80)
    role: MemberRole = MemberRole.SECONDARY
    email: Optional[str] = None
    avatar: Optional[str] = None


class DogIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[int] = None
    weight: Optional[float] = None
    energy_level: Optional[EnergyLevel] = None
    special_needs: Optional[str] = None


class RegisterIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    household_name: str = Field(..., min_length=1, max_length=120)
    secret: str = ""
    members: List[MemberIn] = Field(..., min_length=1)
    dog: DogIn = Field(default_factory=DogIn)
    remember: bool = False


class LoginIn(BaseModel):
    household_name: str
    secret: str = ""
    member_id: Optional[str] = None
    remember: bool = False


class SwitchUserIn(BaseModel):
    member_id: str


class EndWalkIn(BaseModel):
    peed: bool = False
    pooped: bool = False
    notes: str = ""
    dog_mood: Optional[DogMood] = None


class NewWalkIn(BaseModel):
    when: datetime
    assigned_to: Optional[str] = None


class WalkEditIn(BaseModel):
    hour: Optional[int] = Field(default=None, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    assigned_to: Optional[str] = None


class RemoveWalksIn(BaseModel):
    walk_ids: List[str] = Field(..., min_length=1)


class AcceptSwapIn(BaseModel):
    walk_id: str


class AchievementIn(BaseModel):
    member_id: str
    label: str = Field(..., min_length=1, max_length=80)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------
def _walk_json(walk: Walk, household: HouseholdStore) -> Dict[str, Any]:
    payload = walk_record(walk, household.state.household_id)
    payload["walker_name"] = household.walker_name(walk.assigned_to)
    return _jsonable(payload)


def _notification_json(notification: Notification, household: HouseholdStore) -> Dict[str, Any]:
    payload = notification_record(notification, household.state.household_id)
    style = household.render(notification)
    payload["style"] = {"icon": style.icon, "tone": style.tone, "link": style.link}
    payload["actionable"] = is_actionable(notification)
    return _jsonable(payload)


def _jsonable(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in payload.items()
    }


def _value_json(value: Any, household: HouseholdStore) -> Any:
    if isinstance(value, Walk):
        return _walk_json(value, household)
    if isinstance(value, Notification):
        return _notification_json(value, household)
    if isinstance(value, HouseholdMember):
        return {
            "id": value.id,
            "name": value.name,
            "role": value.role.value,
            "walk_count": value.walk_count,
            "total_walk_duration": value.total_walk_duration,
            "achievements": list(value.achievements),
        }
    if isinstance(value, (int, bool, str)) or value is None:
        return value
    return None


def _error_response(outcome: Outcome) -> JSONResponse:
    kind = outcome.error_kind or ErrorKind.INVALID_STATE
    return JSONResponse(
        {"ok": False, "error": kind.value, "message": outcome.message},
        status_code=ERROR_STATUS.get(kind, 400),
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    config: Optional[WebConfig] = None,
    *,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    settings = config or WebConfig.from_env()
    app = FastAPI(title="Dog Walk")
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        same_site="lax",
        max_age=REMEMBER_COOKIE_MAX_AGE,
    )
    record_store = SqlRecordStore.from_file(settings.sqlite_file)
    logger = StructuredLogger(path=settings.log_file)
    sessions: Dict[str, HouseholdStore] = {}
    app.state.config = settings
    app.state.record_store = record_store
    app.state.sessions = sessions
    app.state.logger = logger
    app.state.clock = clock

    def now_local() -> datetime:
        return app.state.clock()

    def snapshot_path(session_id: str) -> Path:
        return settings.snapshot_dir / f"{session_id}.json"

    def open_household(session_id: str) -> HouseholdStore:
        snapshots = LocalSnapshotStore(snapshot_path(session_id)) if settings.snapshot_dir else None
        household = HouseholdStore(
            store=record_store,
            snapshots=snapshots,
            settings=settings.settings,
            logger=logger,
        )
        household.bootstrap()
        return household

    def household_for(request: Request, *, create: bool = False) -> Optional[HouseholdStore]:
        """Return the household bound to this browser session.

        Only register and login open a new session; other requests get a
        session back from memory or from its remember-me snapshot.
        """

        session_id = request.session.get("sid")
        if session_id and session_id in sessions:
            return sessions[session_id]
        if create:
            if not session_id:
                session_id = uuid4().hex
                request.session["sid"] = session_id
            household = open_household(session_id)
        elif session_id and settings.snapshot_dir and snapshot_path(session_id).exists():
            household = open_household(session_id)
            if not household.state.is_registered:
                return None
        else:
            return None
        household.subscribe()
        sessions[session_id] = household
        return household

    def discard(request: Request, household: HouseholdStore) -> None:
        if household.state.is_registered:
            return
        household.unsubscribe()
        sessions.pop(request.session.get("sid", ""), None)

    def viewer_for(request: Request) -> HouseholdStore:
        return household_for(request) or HouseholdStore(settings=settings.settings, logger=logger)

    def respond(
        household: HouseholdStore,
        outcome: Outcome,
        background: BackgroundTasks,
        *,
        status_code: int = 200,
    ) -> JSONResponse:
        if not outcome.ok:
            return _error_response(outcome)
        background.add_task(household.sync)
        return JSONResponse(
            {
                "ok": True,
                "event": outcome.event,
                "value": _value_json(outcome.value, household),
                "notifications": [_notification_json(item, household) for item in outcome.notifications],
            },
            status_code=status_code,
        )

    def perform(request: Request, background: BackgroundTasks, action: Action) -> JSONResponse:
        household = household_for(request)
        if household is None or not household.state.is_registered:
            return JSONResponse({"ok": False, "error": "NotLoggedIn", "message": "Log in first."}, status_code=401)
        return respond(household, household.dispatch(action, at=now_local()), background)

    # -- session ------------------------------------------------------------
    @app.post("/api/register")
    async def register(payload: RegisterIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        household = household_for(request, create=True)
        dog = DogProfile(**{key: value for key, value in payload.dog.model_dump().items() if value is not None})
        outcome = household.register(
            payload.household_name,
            [AddMember(name=m.name, role=m.role, email=m.email, avatar=m.avatar) for m in payload.members],
            secret=payload.secret,
            dog=dog,
            remember=payload.remember,
            at=now_local(),
        )
        if not outcome.ok:
            discard(request, household)
            return _error_response(outcome)
        household.subscribe()
        background.add_task(household.sync)
        state = household.state
        return JSONResponse(
            {"ok": True, "household_id": state.household_id, "current_user": state.current_user},
            status_code=201,
        )

    @app.post("/api/login")
    async def login(payload: LoginIn, request: Request) -> JSONResponse:
        household = household_for(request, create=True)
        outcome = await household.login(
            payload.household_name,
            payload.secret,
            payload.member_id,
            remember=payload.remember,
            at=now_local(),
        )
        if not outcome.ok:
            discard(request, household)
            return _error_response(outcome)
        household.subscribe()
        state = household.state
        return JSONResponse({"ok": True, "household_id": state.household_id, "current_user": state.current_user})

    @app.post("/api/logout")
    async def logout(request: Request) -> JSONResponse:
        household = household_for(request)
        if household is not None:
            household.logout(at=now_local())
        sessions.pop(request.session.get("sid", ""), None)
        request.session.clear()
        return JSONResponse({"ok": True})

    @app.get("/api/state")
    async def state(request: Request) -> JSONResponse:
        household = viewer_for(request)
        document = snapshot_document(household.state, at=now_local()).model_dump(mode="json")
        current = household.state.current_walk
        document["current_walk"] = _walk_json(current, household) if current else None
        document["unread_count"] = household.unread_count()
        return JSONResponse(document)

    @app.post("/api/switch-user")
    async def switch_user(payload: SwitchUserIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, SwitchUser(payload.member_id))

    # -- members and dog ----------------------------------------------------
    @app.post("/api/members")
    async def add_member(payload: MemberIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        action = AddMember(name=payload.name, role=payload.role, email=payload.email, avatar=payload.avatar)
        return perform(request, background, action)

    @app.delete("/api/members/{member_id}")
    async def remove_member(member_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, RemoveMember(member_id))

    @app.patch("/api/dog")
    async def update_dog(payload: DogIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, UpdateDog(**payload.model_dump()))

    # -- walk lifecycle -----------------------------------------------------
    @app.post("/api/walks/{walk_id}/start")
    async def start_walk(walk_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, StartWalk(walk_id))

    @app.post("/api/walks/{walk_id}/confirm")
    async def confirm_walk(walk_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, ConfirmWalk(walk_id))

    @app.post("/api/walks/{walk_id}/swap")
    async def request_swap(walk_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, RequestSwap(walk_id))

    @app.post("/api/walks/{walk_id}/cover")
    async def request_cover(walk_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, RequestCover(walk_id))

    @app.post("/api/walks/current/end")
    async def end_walk(payload: EndWalkIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        activity = WalkActivity(peed=payload.peed, pooped=payload.pooped, notes=payload.notes)
        return perform(request, background, EndWalk(activity=activity, dog_mood=payload.dog_mood))

    @app.get("/api/today")
    async def today(request: Request) -> JSONResponse:
        household = viewer_for(request)
        walk = household.todays_walk(at=now_local())
        return JSONResponse({"walk": _walk_json(walk, household) if walk else None})

    # -- schedule editor ----------------------------------------------------
    @app.post("/api/schedule/walks")
    async def add_walk(payload: NewWalkIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, AddWalk(when=payload.when, assigned_to=payload.assigned_to))

    @app.patch("/api/schedule/walks/{walk_id}")
    async def edit_walk(walk_id: str, payload: WalkEditIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        response: Optional[JSONResponse] = None
        if payload.hour is not None:
            response = perform(request, background, RescheduleWalk(walk_id, hour=payload.hour, minute=payload.minute))
            if response.status_code != 200:
                return response
        if payload.assigned_to is not None:
            response = perform(request, background, ReassignWalk(walk_id, payload.assigned_to))
        if response is None:
            return JSONResponse({"ok": False, "error": "InvalidState", "message": "Nothing to change."}, status_code=422)
        return response

    @app.post("/api/schedule/remove")
    async def remove_walks(payload: RemoveWalksIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, RemoveWalks(tuple(payload.walk_ids)))

    # -- notifications ------------------------------------------------------
    @app.get("/api/notifications")
    async def notifications(request: Request) -> JSONResponse:
        household = viewer_for(request)
        items = sorted(household.active_notifications(at=now_local()), key=lambda item: item.time, reverse=True)
        return JSONResponse(
            {
                "unread_count": household.unread_count(),
                "items": [_notification_json(item, household) for item in items],
            }
        )

    @app.post("/api/notifications/read-all")
    async def read_all(request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, MarkAllNotificationsRead())

    @app.post("/api/notifications/{notification_id}/read")
    async def read_one(notification_id: str, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, MarkNotificationRead(notification_id))

    @app.post("/api/notifications/{notification_id}/accept")
    async def accept_swap(
        notification_id: str, payload: AcceptSwapIn, request: Request, background: BackgroundTasks
    ) -> JSONResponse:
        return perform(request, background, AcceptSwap(notification_id, payload.walk_id))

    @app.post("/api/maintenance")
    async def maintenance(request: Request, background: BackgroundTasks) -> JSONResponse:
        household = household_for(request)
        if household is None or not household.state.is_registered:
            return JSONResponse({"ok": False, "error": "NotLoggedIn", "message": "Log in first."}, status_code=401)
        moment = now_local()
        missed = household.dispatch(FlagMissedWalks(), at=moment)
        reminders = household.dispatch(QueueReminders(), at=moment)
        await household.cleanup_notifications(at=moment)
        return JSONResponse({"ok": True, "missed": missed.value, "reminders": reminders.value})

    # -- achievements -------------------------------------------------------
    @app.get("/api/achievements")
    async def achievements(request: Request) -> JSONResponse:
        household = viewer_for(request)
        return JSONResponse(
            {
                "derived": [
                    {
                        "title": badge.title,
                        "member_id": badge.member_id,
                        "member_name": badge.member_name,
                        "value": badge.value,
                        "description": badge.description,
                    }
                    for badge in household.achievements()
                ],
                "leaderboard": [
                    {
                        "member_id": entry.member_id,
                        "name": entry.name,
                        "walk_count": entry.walk_count,
                        "total_walk_duration": entry.total_walk_duration,
                    }
                    for entry in household.leaderboard()
                ],
                "badges": {member.id: list(member.achievements) for member in household.state.members},
            }
        )

    @app.post("/api/achievements")
    async def grant_achievement(payload: AchievementIn, request: Request, background: BackgroundTasks) -> JSONResponse:
        return perform(request, background, GrantAchievement(payload.member_id, payload.label))

    # -- operations ---------------------------------------------------------
    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        household = sessions.get(request.session.get("sid", ""))
        status: Dict[str, Any] = {"status": "ok", "sessions": len(sessions)}
        if household is not None:
            status["household"] = household.status(at=now_local())
        return JSONResponse(status)

    return app


__all__ = ["ERROR_STATUS", "create_app"]
