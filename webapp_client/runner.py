from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
from loguru import logger

from .actions import ActionType, action
from .api import ApiClient, ApiError, HttpError
from .state import SyncFailure
from .store import Store
from .transitions import validate_intent


@dataclass
class IntentResult:
    habit_id: Any
    intent: str
    outcome: str  # "queued" | "applied" | "rolled_back"
    server_status: Optional[str] = None
    response: Any = None
    failure: Optional[SyncFailure] = None
    replayed: Optional["IntentResult"] = None


def server_status_from(response: Any, intent: str) -> str:
    """Status the server declared; undo responses carry none, so that means "none"."""
    if intent == "undo":
        return "none"
    if isinstance(response, dict) and response.get("status") in ("done", "skip"):
        return response["status"]
    return intent


class IntentRunner:
    """
    Applies a habit intent optimistically and reconciles it with the server.

    At most one write per habit is in flight. An intent that arrives while
    one is pending replaces any earlier queued intent and is replayed once
    the pending write settles successfully. A failed write rolls the view
    back to what it was before the optimistic change and drops the queue.
    """

    def __init__(self, store: Store, api: ApiClient):
        self.store = store
        self.api = api

    async def run(self, habit_id: Any, intent: str) -> IntentResult:
        validate_intent(intent)

        if self.store.is_in_flight(habit_id):
            self.store.dispatch(action(ActionType.QUEUE_INTENT, {"habit_id": habit_id, "intent": intent}))
            logger.debug("Queued {} for habit {}", intent, habit_id)
            return IntentResult(habit_id=habit_id, intent=intent, outcome="queued")

        self.store.dispatch(action(ActionType.OPTIMISTIC_APPLY, {"habit_id": habit_id, "intent": intent}))

        try:
            response = await self.api.send_habit_intent(habit_id, intent)
        except ApiError as e:
            self._rollback(habit_id)
            failure = SyncFailure(
                habit_id=habit_id,
                intent=intent,
                kind=e.kind,
                message=e.message,
                status=e.status if isinstance(e, HttpError) else None,
            )
            self.store.dispatch(action(ActionType.SET_ERROR, failure))
            logger.warning("Intent {} for habit {} rolled back: {}", intent, habit_id, e.message)
            return IntentResult(habit_id=habit_id, intent=intent, outcome="rolled_back", failure=failure)
        except BaseException:
            self._rollback(habit_id)
            raise

        server_status = server_status_from(response, intent)
        effect = self.store.dispatch(
            action(ActionType.OPTIMISTIC_FINALIZE, {"habit_id": habit_id, "server_status": server_status})
        )
        result = IntentResult(
            habit_id=habit_id,
            intent=intent,
            outcome="applied",
            server_status=server_status,
            response=response,
        )

        if effect is not None and effect.kind == "queued_intent":
            result.replayed = await self.run(effect.habit_id, effect.intent)
        return result

    async def retry(self, failure: SyncFailure) -> IntentResult:
        self.store.dispatch(action(ActionType.CLEAR_ERROR))
        return await self.run(failure.habit_id, failure.intent)

    def _rollback(self, habit_id: Any) -> None:
        self.store.dispatch(action(ActionType.OPTIMISTIC_ROLLBACK, {"habit_id": habit_id}))
