"""
Action Resolver

Turns one user message into one assistant message. Short-circuits on the
first step that produces something:

1. Remote answer function (cache-first, validated answers only)
2. Local FAQ corpus
3. Intent handlers (read-only reports, task completion proposals,
   upload guidance, humble non-answer)

CRITICAL: The resolver never mutates state. Anything that would change a
record is returned as a PendingAction and only applied by the executor
after the user confirms it.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from vida_em_dia.assistant import phrases
from vida_em_dia.assistant.faq import LocalKnowledgeMatcher
from vida_em_dia.assistant.intents import classify_intent, knowledge_domain
from vida_em_dia.assistant.phrases import PhrasePicker
from vida_em_dia.audit.logger import AuditLogger
from vida_em_dia.models.assistant import (
    NO_TARGET,
    PENDING_ACTION_TTL,
    ActionType,
    CompleteTaskPayload,
    ConversationContext,
    Intent,
    Message,
    PendingAction,
    Suggestion,
    parse_payload,
)
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.models.finance import utc_now
from vida_em_dia.models.knowledge import RemoteActionDescriptor, RemoteAnswer, RemoteAnswerRequest
from vida_em_dia.queries.reports import HouseholdReports, format_brl
from vida_em_dia.services.remote.interface import RemoteAnswerFunction, RemoteFunctionError
from vida_em_dia.services.storage.interface import StorageError, TaskStorageInterface


logger = structlog.get_logger()

GENERIC_ACTION_SUMMARY = "Aplicar a alteração sugerida"

# Substring hit on the task title; anything else scores zero
TITLE_MATCH_SCORE = 100

Handler = Callable[[str, Intent, ConversationContext, datetime], Awaitable[Message]]


class ActionResolver:
    """Resolves free text into an answer or a proposed action."""

    def __init__(
        self,
        faq: LocalKnowledgeMatcher,
        task_storage: TaskStorageInterface,
        remote: Optional[RemoteAnswerFunction] = None,
        audit: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        picker: Optional[PhrasePicker] = None,
        action_ttl: timedelta = PENDING_ACTION_TTL,
    ):
        self._faq = faq
        self._tasks = task_storage
        self._reports = HouseholdReports(task_storage)
        self._remote = remote
        self._audit = audit
        self._clock = clock
        self._picker = picker or PhrasePicker()
        self._action_ttl = action_ttl

        self._handlers: dict[Intent, Handler] = {
            Intent.STATUS_REPORT: self._status_report,
            Intent.FINANCIAL_STATUS: self._financial_status,
            Intent.ACTION_PROPOSAL: self._propose_task_completion,
            Intent.UPLOAD_INTENT: self._upload_guidance,
        }

    async def resolve(self, text: str, context: ConversationContext) -> Message:
        intent = classify_intent(text)
        now = self._clock()

        remote = await self._ask_remote(text, intent, context)
        if remote is not None and remote.has_answer:
            return self._from_remote(remote, intent, now)

        item = self._faq.find_best_match(text)
        if item is not None:
            return Message(
                text=f"{self._picker.lead_in()}\n\n{item.answer}{phrases.DISCLAIMER}",
                intent=Intent.IR_BASICS if item.category == "fundamentals" else Intent.IR_INCOME,
                timestamp=now,
            )

        handler = self._handlers.get(intent, self._non_answer)
        return await handler(text, intent, context, now)

    # -------------------------------------------------------------------------
    # Remote answers
    # -------------------------------------------------------------------------

    async def _ask_remote(
        self,
        text: str,
        intent: Intent,
        context: ConversationContext,
    ) -> Optional[RemoteAnswer]:
        if self._remote is None:
            return None

        request = RemoteAnswerRequest(
            question=text,
            history=context.history,
            household_id=context.household_id,
            user_id=context.user_id,
            domain=knowledge_domain(intent),
        )
        try:
            answer = await self._remote.answer(request)
        except RemoteFunctionError as e:
            logger.error("remote_answer_failed", domain=request.domain, error=str(e))
            if self._audit:
                self._audit.emit(AuditEventBuilder.remote_call_failed("answer", str(e)))
            return None

        if answer.error:
            logger.warning("remote_answer_error", error=answer.error)
        return answer

    def _from_remote(self, remote: RemoteAnswer, intent: Intent, now: datetime) -> Message:
        suggestions = []
        if remote.answer_json:
            suggestions = [
                Suggestion(title=label[:80], text=label)
                for label in remote.answer_json.suggested_next_actions
                if label.strip()
            ]

        action = None
        if remote.pending_action is not None:
            action = self._wrap_remote_action(remote.pending_action, now)

        return Message(
            text=remote.answer_text,
            intent=intent,
            timestamp=now,
            pending_action=action,
            suggestions=suggestions,
            answer_json=remote.answer_json,
            is_cached=remote.is_cached,
            confidence_level=remote.confidence_level,
            sources=remote.sources,
        )

    def _wrap_remote_action(
        self,
        descriptor: RemoteActionDescriptor,
        now: datetime,
    ) -> Optional[PendingAction]:
        """
        Give a remote action descriptor a fresh id and a fresh 5-minute window.

        Unknown types become GENERIC_UPDATE with the payload as updates.
        A payload that does not fit its type is dropped, not guessed at.
        """
        try:
            action_type = ActionType(descriptor.type)
        except ValueError:
            action_type = ActionType.GENERIC_UPDATE

        raw = descriptor.payload
        if action_type == ActionType.GENERIC_UPDATE and "updates" not in raw:
            raw = {"updates": raw}

        try:
            action = PendingAction.propose(
                action_type,
                parse_payload(action_type, raw),
                summary=descriptor.summary or GENERIC_ACTION_SUMMARY,
                now=now,
                task_id=descriptor.task_id or NO_TARGET,
                ttl=self._action_ttl,
            )
        except ValidationError as e:
            logger.warning("remote_action_dropped", action_type=action_type.value, error=str(e))
            return None

        self._audit_proposed(action)
        return action

    def _audit_proposed(self, action: PendingAction) -> None:
        if self._audit:
            self._audit.emit(
                AuditEventBuilder.action_proposed(action.id, action.type.value, action.task_id)
            )

    # -------------------------------------------------------------------------
    # Intent handlers
    # -------------------------------------------------------------------------

    async def _status_report(
        self, text: str, intent: Intent, context: ConversationContext, now: datetime
    ) -> Message:
        report = "Aqui está seu resumo rápido:\n"
        if context.household_id:
            try:
                household = await self._reports.household_status(context.household_id)
                financial = await self._reports.financial_status(
                    context.household_id, now.date()
                )
            except StorageError as e:
                logger.error("status_report_failed", error=str(e))
                return Message(text=phrases.REPORT_UNAVAILABLE, intent=intent, timestamp=now)

            report += (
                f"• {household.counts.risk} riscos e "
                f"{household.counts.attention} itens em atenção.\n"
            )
            report += f"• Saldo previsto: {format_brl(financial.balance)}.\n"

        return Message(
            text=report + "\nQuer detalhes de algum destes pontos?",
            intent=intent,
            timestamp=now,
        )

    async def _financial_status(
        self, text: str, intent: Intent, context: ConversationContext, now: datetime
    ) -> Message:
        if not context.household_id:
            return Message(text=phrases.NO_FINANCIAL_DATA, timestamp=now)

        try:
            financial = await self._reports.financial_status(context.household_id, now.date())
        except StorageError as e:
            logger.error("financial_status_failed", error=str(e))
            return Message(text=phrases.NO_FINANCIAL_DATA, timestamp=now)

        return Message(
            text=f"Seu saldo este mês está em {format_brl(financial.balance)}.",
            intent=intent,
            timestamp=now,
        )

    async def _propose_task_completion(
        self, text: str, intent: Intent, context: ConversationContext, now: datetime
    ) -> Message:
        tasks = []
        if context.household_id:
            try:
                tasks = await self._tasks.list_tasks(context.household_id)
            except StorageError as e:
                logger.error("task_lookup_failed", error=str(e))

        needle = text.lower()
        ranked = [
            (TITLE_MATCH_SCORE if needle in task.title.lower() else 0, task)
            for task in tasks
            if task.is_open
        ]
        ranked = [pair for pair in ranked if pair[0] > 0]
        ranked.sort(key=lambda pair: pair[0], reverse=True)

        if not ranked:
            return Message(text=phrases.CLARIFY_TASK, intent=Intent.UNKNOWN, timestamp=now)

        target = ranked[0][1]
        action = PendingAction.propose(
            ActionType.COMPLETE_TASK,
            CompleteTaskPayload(),
            summary=f'Concluir "{target.title}"',
            now=now,
            task_id=target.id,
            ttl=self._action_ttl,
        )
        self._audit_proposed(action)

        return Message(
            text=f'Posso marcar "{target.title}" como concluído. Confirma?',
            intent=intent,
            timestamp=now,
            pending_action=action,
        )

    async def _upload_guidance(
        self, text: str, intent: Intent, context: ConversationContext, now: datetime
    ) -> Message:
        return Message(text=phrases.UPLOAD_GUIDANCE, intent=intent, timestamp=now)

    async def _non_answer(
        self, text: str, intent: Intent, context: ConversationContext, now: datetime
    ) -> Message:
        return Message(text=self._picker.non_answer(), intent=Intent.UNKNOWN, timestamp=now)
