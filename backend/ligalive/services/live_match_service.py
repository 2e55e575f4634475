"""
backend/ligalive/services/live_match_service.py

Purpose:
    Live-match state machine. Owns the status transitions
    (not_started -> live -> paused/suspended <-> live -> finished), the match
    clock (start time, pause instant and accumulated pause offset), score
    adjustments with goal recording, and hands finished matches to the
    finalization service. Every successful mutation publishes one event with
    the populated match after it has been persisted.

    All mutations of one live match run under a per-match lock; the store
    writes are additionally conditional on the source status (and on the score
    floor / pause instant where relevant), so a lost race surfaces as a typed
    error instead of a silent overwrite.

Dependencies:
    - ligalive.database
    - ligalive.services.goal_service
    - ligalive.services.finalization_service
    - ligalive.services.event_bus
    - ligalive.services.match_locks
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

import ligalive.database as _db
from ligalive.config import settings
from ligalive.errors import (
    ConflictError,
    InvalidTransitionError,
    LigaLiveError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from ligalive.models.live_match import (
    FINISH_FROM,
    NON_TERMINAL,
    PAUSE_FROM,
    RESUME_FROM,
    SCORE_FROM,
    START_FROM,
    SUSPEND_FROM,
    LiveMatchCreate,
    LiveMatchResponse,
    LiveMatchStatus,
    MatchStage,
    NewPlayer,
    PlayerReference,
    TeamSide,
)
from ligalive.models.match import MatchResponse
from ligalive.services import finalization_service, goal_service, roster_service
from ligalive.services.event_bus import event_bus
from ligalive.services.event_models import BaseEvent, EventType, LiveMatchEvent
from ligalive.services.match_locks import MatchLockRegistry, match_locks
from ligalive.services.population import (
    populate_live_match,
    populate_live_matches,
    populate_match,
)
from ligalive.utils import Clock, elapsed_ms, to_object_id, utcnow

logger = logging.getLogger("ligalive.live_match_service")

EventPublisher = Callable[[BaseEvent], Awaitable[None]]

_MS_PER_MINUTE = 60_000


def _values(statuses: Iterable[LiveMatchStatus]) -> list[str]:
    return [s.value for s in statuses]


def match_minute(live_match: dict, now: datetime) -> int:
    """Match-clock minute: wall time since start minus every paused stretch."""
    start_time = live_match.get("start_time")
    if start_time is None:
        return 0
    played_ms = elapsed_ms(now, start_time) - int(live_match.get("resume_offset_ms") or 0)
    paused_at = live_match.get("paused_time")
    if paused_at is not None and live_match.get("status") in _values(
        (LiveMatchStatus.PAUSED, LiveMatchStatus.SUSPENDED)
    ):
        # Ongoing pause not yet folded into resume_offset_ms.
        played_ms -= max(0, elapsed_ms(now, paused_at))
    return max(0, played_ms // _MS_PER_MINUTE)


class LiveMatchService:
    def __init__(
        self,
        *,
        clock: Clock = utcnow,
        publish: EventPublisher | None = None,
        locks: MatchLockRegistry | None = None,
    ) -> None:
        self._clock = clock
        self._publish = publish
        self._locks = locks or match_locks

    # ---- Reads ----

    async def list(self, limit: int | None = None) -> list[LiveMatchResponse]:
        limit = min(limit or settings.LIVE_MATCH_LIST_LIMIT, settings.LIVE_MATCH_LIST_LIMIT)
        docs = await _db.db.live_matches.find({}).sort("created_at", -1).to_list(length=limit)
        return await populate_live_matches(docs)

    async def get(self, match_id: str) -> LiveMatchResponse:
        return await populate_live_match(await self._load(to_object_id(match_id, "live match id")))

    # ---- Creation / removal ----

    async def create(self, body: LiveMatchCreate) -> LiveMatchResponse:
        if not body.team_a_id or not body.team_b_id:
            raise ValidationError("Both teams are required.")
        team_a_oid = to_object_id(body.team_a_id, "team_a_id")
        team_b_oid = to_object_id(body.team_b_id, "team_b_id")
        if team_a_oid == team_b_oid:
            raise ValidationError("Teams must be different.")
        if body.score_a < 0 or body.score_b < 0:
            raise ValidationError("Scores must be non-negative.")

        team_a = await roster_service.get_team(team_a_oid, field="team_a_id")
        team_b = await roster_service.get_team(team_b_oid, field="team_b_id")
        tournament = await roster_service.get_tournament(body.tournament_id)

        now = self._clock()
        doc = {
            "date": body.date or now,
            "team_a_id": team_a["_id"],
            "team_b_id": team_b["_id"],
            "tournament_id": tournament["_id"],
            "score_a": body.score_a,
            "score_b": body.score_b,
            "goal_ids": [],
            "status": LiveMatchStatus.NOT_STARTED.value,
            "current_stage": MatchStage.REGULAR.value,
            "start_time": None,
            "paused_time": None,
            "resume_offset_ms": 0,
            "created_at": now,
            "updated_at": now,
        }
        result = await _db.db.live_matches.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(
            "Live match %s created: %s vs %s",
            doc["_id"], team_a.get("abbreviation") or team_a["_id"], team_b.get("abbreviation") or team_b["_id"],
        )

        populated = await populate_live_match(doc)
        await self._emit("matchCreated", doc, populated.model_dump(mode="json"))
        return populated

    async def delete(self, match_id: str) -> None:
        """Remove a live match in any state. Nothing is finalized."""
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            doc = await self._load(oid)
            await _db.db.live_matches.delete_one({"_id": oid})
            # Goals of an abandoned match have no owner left.
            await _db.db.goals.delete_many({"live_match_id": oid})
        logger.info("Live match %s deleted (status=%s)", oid, doc.get("status"))
        await self._emit("matchDeleted", doc, {"match_id": str(oid)})

    # ---- Clock transitions ----

    async def start(self, match_id: str) -> LiveMatchResponse:
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            current = await self._load(oid)
            status = current["status"]
            if status not in _values(START_FROM):
                raise self._illegal("start", status)
            now = self._clock()
            if status == LiveMatchStatus.NOT_STARTED.value:
                doc = await self._transition(
                    oid,
                    (LiveMatchStatus.NOT_STARTED,),
                    {
                        "status": LiveMatchStatus.LIVE.value,
                        "start_time": now,
                        "paused_time": None,
                        "resume_offset_ms": 0,
                    },
                    now=now,
                    action="start",
                )
            else:
                # Restart after a pause or suspension keeps the clock running
                # from the original kick-off.
                doc = await self._leave_pause(oid, current, now, action="start")
        logger.info("Live match %s started (from %s)", oid, status)
        return await self._publish_state("matchStarted", doc)

    async def pause(self, match_id: str) -> LiveMatchResponse:
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            now = self._clock()
            doc = await self._transition(
                oid,
                PAUSE_FROM,
                {"status": LiveMatchStatus.PAUSED.value, "paused_time": now},
                now=now,
                action="pause",
            )
        logger.info("Live match %s paused at minute %d", oid, match_minute(doc, now))
        return await self._publish_state("matchPaused", doc)

    async def resume(self, match_id: str) -> LiveMatchResponse:
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            current = await self._load(oid)
            if current["status"] not in _values(RESUME_FROM):
                raise self._illegal("resume", current["status"])
            doc = await self._leave_pause(oid, current, self._clock(), action="resume")
        logger.info("Live match %s resumed (offset=%dms)", oid, doc.get("resume_offset_ms", 0))
        return await self._publish_state("matchResumed", doc)

    async def suspend(self, match_id: str) -> LiveMatchResponse:
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            now = self._clock()
            doc = await self._transition(
                oid,
                SUSPEND_FROM,
                {"status": LiveMatchStatus.SUSPENDED.value, "paused_time": now},
                now=now,
                action="suspend",
            )
        logger.info("Live match %s suspended", oid)
        return await self._publish_state("matchSuspended", doc)

    async def set_stage(self, match_id: str, stage: str) -> LiveMatchResponse:
        try:
            new_stage = MatchStage(stage)
        except ValueError:
            raise ValidationError(f"Invalid stage '{stage}'.") from None
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            doc = await self._transition(
                oid,
                NON_TERMINAL,
                {"current_stage": new_stage.value},
                now=self._clock(),
                action="change the stage of",
            )
        return await self._publish_state("matchStageChanged", doc)

    # ---- Score ----

    async def adjust_score(
        self,
        match_id: str,
        team: str,
        delta: int,
        *,
        scorer: PlayerReference | NewPlayer | None = None,
        assist: PlayerReference | NewPlayer | None = None,
    ) -> LiveMatchResponse:
        """Apply a score delta to one side.

        A positive delta records exactly one goal before the score is written;
        if the score write does not go through the goal (and any quick player
        created for it) is removed again. A negative delta is a correction: no
        goal is touched and the score never goes below zero.
        """
        try:
            side = TeamSide(team)
        except ValueError:
            raise ValidationError("team must be 'A' or 'B'.") from None
        delta = int(delta)
        if delta == 0:
            raise ValidationError("delta must be non-zero.")

        oid = to_object_id(match_id, "live match id")
        score_field = "score_a" if side == TeamSide.A else "score_b"

        async with self._locks.hold(oid):
            current = await self._load(oid)
            if current["status"] not in _values(SCORE_FROM):
                raise self._illegal("change the score of", current["status"])
            if int(current.get(score_field) or 0) + delta < 0:
                raise ValidationError("Score cannot go below zero.")

            now = self._clock()
            recorded = None
            if delta > 0:
                recorded = await goal_service.record_goal(
                    current,
                    side,
                    scorer=scorer,
                    assist=assist,
                    minute=match_minute(current, now),
                    now=now,
                )

            query: dict[str, Any] = {"_id": oid, "status": {"$in": _values(SCORE_FROM)}}
            update: dict[str, Any] = {"$inc": {score_field: delta}, "$set": {"updated_at": now}}
            if delta < 0:
                query[score_field] = {"$gte": -delta}
            if recorded is not None:
                update["$push"] = {"goal_ids": recorded.goal["_id"]}

            try:
                doc = await _db.db.live_matches.find_one_and_update(
                    query, update, return_document=ReturnDocument.AFTER,
                )
            except PyMongoError as exc:
                if recorded is not None:
                    await goal_service.discard_goal(recorded)
                logger.error("Score update of live match %s failed: %s", oid, exc)
                raise ServerError("Score update failed.") from exc

            if doc is None:
                if recorded is not None:
                    await goal_service.discard_goal(recorded)
                await self._raise_for_missed_write(
                    oid, SCORE_FROM, "change the score of",
                    ValidationError("Score cannot go below zero."),
                )

        logger.info(
            "Live match %s score %s%+d -> %d-%d%s",
            oid, side.value, delta, doc.get("score_a", 0), doc.get("score_b", 0),
            f" (goal min {recorded.goal['minute']})" if recorded is not None else "",
        )
        return await self._publish_state("scoreUpdated", doc)

    # ---- Finish ----

    async def finish(self, match_id: str) -> MatchResponse:
        """Finish a live match and transcribe it into a permanent match.

        Re-entrant: a live match left in 'finished' by an interrupted
        finalization can be finished again and converges on the same record.
        """
        oid = to_object_id(match_id, "live match id")
        async with self._locks.hold(oid):
            current = await self._load(oid)
            status = current["status"]
            if status not in _values(FINISH_FROM):
                raise self._illegal("finish", status)

            now = self._clock()
            if status != LiveMatchStatus.FINISHED.value:
                current = await self._transition(
                    oid,
                    (LiveMatchStatus(status),),
                    {"status": LiveMatchStatus.FINISHED.value, "finished_at": now},
                    now=now,
                    action="finish",
                )
            else:
                logger.warning("Live match %s already finished; retrying finalization", oid)

            match = await finalization_service.finalize_live_match(current, now=now)
            try:
                await _db.db.live_matches.delete_one({"_id": oid})
            except PyMongoError as exc:
                logger.error("Finalized live match %s could not be removed: %s", oid, exc)
                raise ServerError("Match finalization failed; retry finishing the match.") from exc

        populated = await populate_match(match)
        await self._emit("matchFinished", current, populated.model_dump(mode="json"))
        return populated

    # ---- Internals ----

    async def _load(self, oid: ObjectId) -> dict:
        doc = await _db.db.live_matches.find_one({"_id": oid})
        if not doc:
            raise NotFoundError("Live match not found.")
        return doc

    @staticmethod
    def _illegal(action: str, status: str) -> InvalidTransitionError:
        return InvalidTransitionError(f"Cannot {action} a match that is {status}.")

    async def _transition(
        self,
        oid: ObjectId,
        allowed: Iterable[LiveMatchStatus],
        fields: dict[str, Any],
        *,
        now: datetime,
        action: str,
        guard: dict[str, Any] | None = None,
        inc: dict[str, int] | None = None,
    ) -> dict:
        """Conditional update guarded on the allowed source states."""
        allowed = tuple(allowed)
        query: dict[str, Any] = {"_id": oid, "status": {"$in": _values(allowed)}}
        if guard:
            query.update(guard)
        update: dict[str, Any] = {"$set": {**fields, "updated_at": now}}
        if inc:
            update["$inc"] = inc
        doc = await _db.db.live_matches.find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            await self._raise_for_missed_write(
                oid, allowed, action, ConflictError("Live match changed concurrently; retry."),
            )
        return doc

    async def _raise_for_missed_write(
        self,
        oid: ObjectId,
        allowed: Iterable[LiveMatchStatus],
        action: str,
        otherwise: LigaLiveError,
    ) -> None:
        current = await self._load(oid)
        if current["status"] not in _values(allowed):
            raise self._illegal(action, current["status"])
        raise otherwise

    async def _leave_pause(self, oid: ObjectId, current: dict, now: datetime, *, action: str) -> dict:
        """Back to live, folding the finished pause into resume_offset_ms."""
        paused_at = current.get("paused_time")
        paused_ms = max(0, elapsed_ms(now, paused_at)) if paused_at is not None else 0
        fields: dict[str, Any] = {"status": LiveMatchStatus.LIVE.value, "paused_time": None}
        if current.get("start_time") is None:
            fields["start_time"] = now
        return await self._transition(
            oid,
            (LiveMatchStatus(current["status"]),),
            fields,
            now=now,
            action=action,
            guard={"paused_time": paused_at},
            inc={"resume_offset_ms": paused_ms},
        )

    async def _publish_state(self, event_type: EventType, doc: dict) -> LiveMatchResponse:
        populated = await populate_live_match(doc)
        await self._emit(event_type, doc, populated.model_dump(mode="json"))
        return populated

    async def _emit(self, event_type: EventType, doc: dict, payload: dict[str, Any]) -> None:
        if not settings.EVENT_BUS_ENABLED:
            return
        tournament_id = doc.get("tournament_id")
        event = LiveMatchEvent(
            event_type=event_type,
            match_id=str(doc["_id"]),
            tournament_id=str(tournament_id) if tournament_id is not None else None,
            payload=payload,
        )
        publish = self._publish or event_bus.publish
        try:
            await publish(event)
        except Exception:
            logger.warning("Failed to publish %s for live match %s", event_type, doc["_id"], exc_info=True)


live_match_service = LiveMatchService()
