"""
Action Executor

Applies a PendingAction once the user confirms it.

State machine per action:

    proposed -> confirmed | cancelled | expired

All three are terminal. Expiry is checked first, at confirmation time,
never by a background timer. A settled action id is remembered so a
second confirmation can never run its handler again.

CRITICAL: This is the ONLY place conversation state turns into writes.
Every handler failure is caught and becomes a chat message; the action
then stays attached so the user can retry.
"""

from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional

import structlog

from vida_em_dia.assistant import phrases
from vida_em_dia.assistant.interview import (
    DefenseInterview,
    is_cancel_request,
    parse_yes_no,
    yes_no_chips,
)
from vida_em_dia.audit.logger import AuditLogger
from vida_em_dia.models.assistant import (
    NO_TARGET,
    PENDING_ACTION_TTL,
    ActionType,
    ConversationContext,
    ExecutionOutcome,
    ExecutionResult,
    GenerateDefensePayload,
    Intent,
    Message,
    PendingAction,
)
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.models.finance import (
    CategoryType,
    EntryType,
    HealthStatus,
    ImpactLevel,
    Task,
    TaxDeductibleExpense,
    TrafficFineRecord,
    utc_now,
)
from vida_em_dia.services.remote.interface import DefenseGenerationError, DefenseGenerator
from vida_em_dia.services.storage.interface import (
    StorageError,
    TaskStorageInterface,
    TaxRecordStorageInterface,
)


logger = structlog.get_logger()

INTERVIEW_ABORTED = "Tudo bem, interrompi a análise da defesa. Quando quiser, é só me mandar a multa de novo."
INTERVIEW_REPROMPT = "Preciso de um Sim ou Não para seguir."
INTERVIEW_DONE = "Obrigado! Já tenho tudo para montar sua defesa. Posso gerar o documento agora?"
GENERATE_DEFENSE_SUMMARY = "Gerar defesa da multa"

# What a handler hands back: the text of the success message, plus chips
HandlerReply = tuple[str, list]
Handler = Callable[[PendingAction, ConversationContext, datetime], Awaitable[HandlerReply]]


class ActionExecutionError(Exception):
    """A handler could not apply its action."""
    pass


class ActionExecutor:
    """
    Confirms and cancels PendingActions attached to messages.

    Also owns the defense interview started by ANALYZE_DEFENSE, since
    its answers feed the GENERATE_TRAFFIC_DEFENSE action it ends with.
    """

    def __init__(
        self,
        task_storage: TaskStorageInterface,
        tax_storage: TaxRecordStorageInterface,
        defense: Optional[DefenseGenerator] = None,
        audit: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        action_ttl: timedelta = PENDING_ACTION_TTL,
    ):
        self._tasks = task_storage
        self._tax = tax_storage
        self._defense = defense
        self._audit = audit
        self._clock = clock
        self._action_ttl = action_ttl

        self._settled: set[str] = set()
        self.interview: Optional[DefenseInterview] = None

        self._handlers: dict[ActionType, Handler] = {
            ActionType.SAVE_DEDUCTION: self._save_deduction,
            ActionType.ADD_TRAFFIC_FINE: self._add_traffic_fine,
            ActionType.ANALYZE_DEFENSE: self._analyze_defense,
            ActionType.GENERATE_TRAFFIC_DEFENSE: self._generate_defense,
            ActionType.COMPLETE_TASK: self._update_task,
            ActionType.GENERIC_UPDATE: self._update_task,
        }
        missing = set(ActionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for {sorted(m.value for m in missing)}")

    def _emit(self, event) -> None:
        if self._audit:
            self._audit.emit(event)

    def _expired_text(self) -> str:
        minutes = max(1, int(self._action_ttl.total_seconds() // 60))
        return phrases.ACTION_EXPIRED.format(minutes=minutes)

    def reset(self) -> None:
        """Forget settled actions and any running interview, e.g. on logout."""
        self._settled.clear()
        self.interview = None

    # -------------------------------------------------------------------------
    # Confirmation protocol
    # -------------------------------------------------------------------------

    async def confirm(self, message: Message, context: ConversationContext) -> ExecutionResult:
        """
        Confirm the action attached to a message.

        Never raises. The outcome says what happened; reply is the message
        to append to the conversation, if any.
        """
        action = message.pending_action
        if action is None or action.id in self._settled:
            return ExecutionResult(outcome=ExecutionOutcome.NOT_PENDING)

        now = self._clock()
        if action.is_expired(now):
            message.pending_action = None
            self._settled.add(action.id)
            self._emit(AuditEventBuilder.action_expired(action.id, action.type.value, action.expires_at))
            logger.info("action_expired", action_id=action.id, action_type=action.type.value)
            return ExecutionResult(
                outcome=ExecutionOutcome.EXPIRED,
                action_id=action.id,
                action_type=action.type,
                reply=Message(text=self._expired_text(), timestamp=now),
            )

        handler = self._handlers[action.type]
        try:
            text, suggestions = await handler(action, context, now)
        except Exception as e:
            logger.error(
                "action_failed",
                action_id=action.id,
                action_type=action.type.value,
                error=str(e),
            )
            self._emit(AuditEventBuilder.action_failed(action.id, action.type.value, str(e)))
            failure_text = (
                phrases.DEFENSE_FAILED
                if isinstance(e, DefenseGenerationError)
                else phrases.ACTION_FAILED
            )
            return ExecutionResult(
                outcome=ExecutionOutcome.FAILED,
                action_id=action.id,
                action_type=action.type,
                reply=Message(text=failure_text, timestamp=now),
                error_message=str(e),
            )

        message.pending_action = None
        message.suggestions = []
        self._settled.add(action.id)
        self._emit(AuditEventBuilder.action_confirmed(action.id, action.type.value, action.task_id))
        logger.info("action_executed", action_id=action.id, action_type=action.type.value)

        return ExecutionResult(
            outcome=ExecutionOutcome.EXECUTED,
            action_id=action.id,
            action_type=action.type,
            reply=Message(text=text, suggestions=suggestions, timestamp=now),
        )

    def cancel(self, message: Message) -> ExecutionResult:
        """Detach the action and any chips. Always allowed."""
        action = message.pending_action
        message.pending_action = None
        message.suggestions = []

        if action is not None:
            self._settled.add(action.id)
            self._emit(AuditEventBuilder.action_cancelled(action.id, action.type.value))

        return ExecutionResult(
            outcome=ExecutionOutcome.CANCELLED,
            action_id=action.id if action else None,
            action_type=action.type if action else None,
            reply=Message(text=phrases.ACTION_CANCELLED, timestamp=self._clock()),
        )

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    @staticmethod
    def _done(action: PendingAction) -> HandlerReply:
        return f"Feito! {action.summary}.", []

    async def _save_deduction(
        self, action: PendingAction, context: ConversationContext, now: datetime
    ) -> HandlerReply:
        payload = action.payload
        expense = TaxDeductibleExpense(
            user_id=context.user_id,
            household_id=context.household_id,
            doc_id=payload.doc_id,
            expense_type=payload.expense_type,
            provider_name=payload.provider_name,
            amount=payload.amount,
            date=date.fromisoformat(payload.date) if payload.date else now.date(),
            confidence_score=payload.confidence_score,
            is_shared=payload.is_shared,
        )
        if not await self._tax.save_deduction(expense):
            raise StorageError("Deduction was not saved")
        return self._done(action)

    async def _add_traffic_fine(
        self, action: PendingAction, context: ConversationContext, now: datetime
    ) -> HandlerReply:
        if not context.household_id:
            raise ActionExecutionError("No household to attach the fine to")

        fine = action.payload.fine
        title = f"Multa de trânsito ({fine.plate})" if fine.plate else "Multa de trânsito"
        task = Task(
            household_id=context.household_id,
            user_id=context.user_id,
            title=title,
            description=fine.description or fine.nature,
            category=CategoryType.VEHICLE,
            entry_type=EntryType.OBLIGATION,
            health_status=HealthStatus.RISK,
            impact_level=ImpactLevel.HIGH,
            due_date=fine.due_date or now.date(),
            amount=fine.amount,
        )
        if not await self._tasks.save_task(task):
            raise StorageError("Traffic fine task was not saved")
        return self._done(action)

    async def _analyze_defense(
        self, action: PendingAction, context: ConversationContext, now: datetime
    ) -> HandlerReply:
        self.interview = DefenseInterview(fine=action.payload.fine)
        text = (
            "Vamos montar sua defesa. Vou te fazer algumas perguntas rápidas.\n\n"
            + self.interview.question_text()
        )
        return text, yes_no_chips()

    async def _generate_defense(
        self, action: PendingAction, context: ConversationContext, now: datetime
    ) -> HandlerReply:
        if self._defense is None:
            raise DefenseGenerationError("Defense generation is not configured")

        payload = action.payload
        markdown = await self._defense.generate_defense(payload.fine, payload.answers)
        await self._record_fine(payload, markdown, context)
        return markdown, []

    async def _record_fine(
        self,
        payload: GenerateDefensePayload,
        markdown: str,
        context: ConversationContext,
    ) -> None:
        """Best effort: the user already has the document."""
        if not payload.fine.document_id:
            return
        record = TrafficFineRecord(
            document_id=payload.fine.document_id,
            user_id=context.user_id,
            household_id=context.household_id,
            details=payload.fine,
            user_answers=[a.model_dump() for a in payload.answers],
            defense_markdown=markdown,
        )
        try:
            await self._tax.save_traffic_fine(record)
        except StorageError as e:
            logger.warning("traffic_fine_record_failed", document_id=record.document_id, error=str(e))

    async def _update_task(
        self, action: PendingAction, context: ConversationContext, now: datetime
    ) -> HandlerReply:
        if action.task_id == NO_TARGET:
            raise ActionExecutionError("Action has no target task")

        if action.type == ActionType.COMPLETE_TASK:
            updates = {"status": action.payload.status.value}
        else:
            updates = dict(action.payload.updates)

        await self._tasks.update_task(action.task_id, updates)
        return self._done(action)

    # -------------------------------------------------------------------------
    # Defense interview
    # -------------------------------------------------------------------------

    def continue_interview(self, text: str) -> Message:
        """
        Feed one user reply into the running interview.

        The caller checks self.interview first; replying with no
        interview running is a programming error.
        """
        interview = self.interview
        if interview is None:
            raise RuntimeError("No defense interview in progress")
        now = self._clock()

        if is_cancel_request(text):
            self.interview = None
            return Message(text=INTERVIEW_ABORTED, intent=Intent.TRAFFIC_ANALYSIS, timestamp=now)

        answer = parse_yes_no(text)
        if answer is None:
            return Message(
                text=f"{INTERVIEW_REPROMPT}\n\n{interview.question_text()}",
                intent=Intent.TRAFFIC_ANALYSIS,
                suggestions=yes_no_chips(),
                timestamp=now,
            )

        interview.record(answer)
        if not interview.is_complete:
            return Message(
                text=interview.question_text(),
                intent=Intent.TRAFFIC_ANALYSIS,
                suggestions=yes_no_chips(),
                timestamp=now,
            )

        self.interview = None
        action = PendingAction.propose(
            ActionType.GENERATE_TRAFFIC_DEFENSE,
            GenerateDefensePayload(fine=interview.fine, answers=interview.answers),
            summary=GENERATE_DEFENSE_SUMMARY,
            now=now,
            task_id=interview.fine.document_id or NO_TARGET,
            ttl=self._action_ttl,
        )
        self._emit(AuditEventBuilder.action_proposed(action.id, action.type.value, action.task_id))
        return Message(
            text=INTERVIEW_DONE,
            intent=Intent.TRAFFIC_ANALYSIS,
            pending_action=action,
            timestamp=now,
        )
