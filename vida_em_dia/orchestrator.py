"""
Conversation Orchestrator for Vida em Dia

Ties the pipeline together for one signed-in user:

1. Send     (text -> interview step, or resolver -> answer / proposal)
2. Upload   (file -> storage -> analysis -> proposal or guidance)
3. Confirm  (PendingAction -> executor -> write)
4. Cancel   (PendingAction -> detached)

DESIGN DECISION: The session owns the message log and the household
cache. Collaborators never touch either; they receive a
ConversationContext and hand back messages the session appends.

The log is append-only in the order handlers finish. A slow remote
answer can land after a faster confirmation; that ordering is kept.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from vida_em_dia.assistant import phrases
from vida_em_dia.assistant.executor import ActionExecutor
from vida_em_dia.assistant.faq import LocalKnowledgeMatcher, load_faq_corpus
from vida_em_dia.assistant.resolver import ActionResolver
from vida_em_dia.audit import AuditLogger, create_correlation_id
from vida_em_dia.config import get_settings, validate_all_settings
from vida_em_dia.credit import CreditRadarService
from vida_em_dia.knowledge import KnowledgeCache
from vida_em_dia.models.assistant import (
    NO_TARGET,
    PENDING_ACTION_TTL,
    ActionType,
    AddTrafficFinePayload,
    AnalyzeDefensePayload,
    ConversationContext,
    ExecutionOutcome,
    ExecutionResult,
    Intent,
    Message,
    PendingAction,
    SaveDeductionPayload,
    Sender,
    Suggestion,
)
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.models.finance import (
    DeductionType,
    DocumentAnalysis,
    DocumentKind,
    FinancialHealth,
    FineRecommendation,
    Household,
    Task,
    utc_now,
)
from vida_em_dia.models.knowledge import AnswerJson, HistoryTurn, KeyFact
from vida_em_dia.queries.reports import HouseholdReports, format_brl
from vida_em_dia.services.files import CloudinaryFileService, FileStorageInterface, FileUploadError
from vida_em_dia.services.remote.gemini import (
    GeminiAnswerService,
    GeminiDefenseService,
    GeminiDocumentAnalyzer,
)
from vida_em_dia.services.remote.interface import DocumentAnalysisError, DocumentAnalyzer
from vida_em_dia.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCreditCardStorage,
    GoogleSheetsKnowledgeStorage,
    GoogleSheetsTaskStorage,
    GoogleSheetsTaxRecordStorage,
    InMemoryAuditStorage,
    InMemoryCreditCardStorage,
    InMemoryKnowledgeStorage,
    InMemoryTaskStorage,
    InMemoryTaxRecordStorage,
    StorageError,
    TaskStorageInterface,
)


logger = structlog.get_logger()

DEFAULT_DEDUCTION_CONFIDENCE = 0.6
AMBIGUOUS_CONFIDENCE = 0.2
DEFAULT_PROVIDER = "Identificado via Chat"

MAX_INITIAL_SUGGESTIONS = 3
STATUS_CHIP = Suggestion(title="📊 Status Geral", text="Tudo certo com minha vida adulta?")
BALANCE_CHIP = Suggestion(title="💸 Meu Saldo", text="Como tá meu saldo hoje?")


class ConversationSession:
    """
    One user's conversation.

    Flow:
    1. login() binds the user and drops any cached household
    2. send() / upload() append the user turn and the assistant reply
    3. confirm() / cancel() settle the PendingAction on a message
    4. logout() drops the user, the log and the cache
    """

    def __init__(
        self,
        resolver: ActionResolver,
        executor: ActionExecutor,
        task_storage: TaskStorageInterface,
        files: Optional[FileStorageInterface] = None,
        analyzer: Optional[DocumentAnalyzer] = None,
        audit: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        history_turns: int = 5,
        deduction_confidence: float = DEFAULT_DEDUCTION_CONFIDENCE,
        action_ttl: timedelta = PENDING_ACTION_TTL,
    ):
        self._resolver = resolver
        self._executor = executor
        self._tasks = task_storage
        self._reports = HouseholdReports(task_storage)
        self._files = files
        self._analyzer = analyzer
        self._audit = audit
        self._clock = clock
        self._history_turns = history_turns
        self._deduction_confidence = deduction_confidence
        self._action_ttl = action_ttl

        self.messages: list[Message] = []
        self.user_id: Optional[str] = None
        self._household: Optional[Household] = None
        self._household_loaded = False

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    def login(self, user_id: str) -> None:
        self.user_id = user_id
        self._invalidate_household()

    def logout(self) -> None:
        self.user_id = None
        self.messages = []
        self._executor.reset()
        self._invalidate_household()

    def _invalidate_household(self) -> None:
        self._household = None
        self._household_loaded = False

    async def household(self) -> Optional[Household]:
        """The signed-in user's household, loaded once per login."""
        if self.user_id is None:
            return None
        if not self._household_loaded:
            try:
                self._household = await self._tasks.get_household_for_user(self.user_id)
            except StorageError as e:
                # not cached: the next call retries the lookup
                logger.error("household_lookup_failed", user_id=self.user_id, error=str(e))
                return None
            self._household_loaded = True
        return self._household

    def _history(self) -> list[HistoryTurn]:
        if self._history_turns <= 0:
            return []
        return [
            HistoryTurn(role="user" if m.sender == Sender.USER else "model", text=m.text)
            for m in self.messages[-self._history_turns:]
        ]

    async def _context(self, with_history: bool = True) -> ConversationContext:
        household = await self.household()
        return ConversationContext(
            user_id=self.user_id,
            household_id=household.id if household else None,
            history=self._history() if with_history else [],
        )

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    async def priorities(self) -> list[Task]:
        """Open tasks needing attention, worst first."""
        household = await self.household()
        if household is None:
            return []
        try:
            return (await self._reports.household_status(household.id)).top_priorities
        except StorageError as e:
            logger.error("priorities_failed", error=str(e))
            return []

    async def drain(self) -> None:
        """Wait for audit writes scheduled during this session."""
        if self._audit:
            await self._audit.drain()

    @property
    def interview_active(self) -> bool:
        return self._executor.interview is not None

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    async def send(self, text: str) -> Message:
        """Append the user's text and the assistant's reply; return the reply."""
        context = await self._context()
        self.messages.append(Message.from_user(text, self._clock()))

        if self._executor.interview is not None:
            reply = self._executor.continue_interview(text)
        else:
            reply = await self._resolver.resolve(text, context)

        self.messages.append(reply)
        if self._audit:
            self._audit.emit(
                AuditEventBuilder.analytics(
                    "chat_message_sent",
                    self.user_id,
                    {"intent": reply.intent.value if reply.intent else None},
                )
            )
        return reply

    # -------------------------------------------------------------------------
    # Confirm / cancel
    # -------------------------------------------------------------------------

    async def confirm(self, message_id: str) -> ExecutionResult:
        message = self.find_message(message_id)
        if message is None:
            return ExecutionResult(outcome=ExecutionOutcome.NOT_PENDING)

        result = await self._executor.confirm(message, await self._context(with_history=False))
        if result.reply is not None:
            self.messages.append(result.reply)
        return result

    def cancel(self, message_id: str) -> ExecutionResult:
        message = self.find_message(message_id)
        if message is None:
            return ExecutionResult(outcome=ExecutionOutcome.NOT_PENDING)

        result = self._executor.cancel(message)
        if result.reply is not None:
            self.messages.append(result.reply)
        return result

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> Message:
        """
        Store a document sent in the chat and react to what it is.

        Every failure ends in a friendly message; nothing is saved as a
        record until the user confirms the proposal.
        """
        self.messages.append(Message.from_user(f"📎 {filename}", self._clock()))
        reply = await self._process_upload(content, filename, content_type)
        self.messages.append(reply)
        return reply

    async def _process_upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
    ) -> Message:
        now = self._clock()

        if self._files is None or self.user_id is None:
            return Message(text=phrases.UPLOAD_FAILED, timestamp=now)
        try:
            url = await self._files.upload(content, filename, self.user_id, content_type)
        except FileUploadError as e:
            logger.warning("chat_upload_failed", filename=filename, error=str(e))
            if self._audit:
                self._audit.emit(AuditEventBuilder.upload_failed(filename, str(e)))
            return Message(text=phrases.UPLOAD_FAILED, timestamp=now)

        household = await self.household()
        if household is None:
            return Message(text=phrases.NO_HOUSEHOLD, timestamp=now)

        if self._analyzer is None:
            return Message(text=phrases.ANALYSIS_FAILED, intent=Intent.UPLOAD_INTENT, timestamp=now)
        try:
            analysis = await self._analyzer.analyze(url, filename, household.id)
        except DocumentAnalysisError as e:
            logger.warning("document_analysis_failed", filename=filename, error=str(e))
            return Message(text=phrases.ANALYSIS_FAILED, intent=Intent.UPLOAD_INTENT, timestamp=now)

        if analysis.kind == DocumentKind.TRAFFIC:
            return self._traffic_fine_message(analysis, now)
        return self._deduction_message(analysis, filename, now)

    def _propose(
        self,
        action_type: ActionType,
        payload,
        summary: str,
        now: datetime,
        task_id: str = NO_TARGET,
    ) -> PendingAction:
        action = PendingAction.propose(
            action_type, payload, summary=summary, now=now, task_id=task_id, ttl=self._action_ttl
        )
        if self._audit:
            self._audit.emit(
                AuditEventBuilder.action_proposed(action.id, action.type.value, action.task_id)
            )
        return action

    def _traffic_fine_message(self, analysis: DocumentAnalysis, now: datetime) -> Message:
        fine = analysis.traffic_fine
        if fine is None:
            return Message(text=phrases.TRAFFIC_ANALYSIS_FAILED, timestamp=now)
        if fine.document_id is None:
            fine = fine.model_copy(update={"document_id": analysis.document_id})

        text = (
            f"{fine.summary_human or 'Analisei sua notificação de trânsito.'}\n\n"
            "**Detalhes extraídos:**\n"
            f"• Placa: {fine.plate or '-'}\n"
            f"• Natureza: {fine.nature or '-'} ({fine.points} pontos)\n"
            f"• Valor: {format_brl(fine.amount)}\n"
            f"• Local: {fine.location or '-'}\n\n"
            f"💡 **Recomendação:** {fine.recommendation_text or ''}"
        )

        pay = fine.recommendation == FineRecommendation.PAY
        if pay:
            text += (
                f"\n\nVocê pode pagar com 40% de desconto ({format_brl(fine.amount * 0.6)}) "
                "se usar o SNE e renunciar à defesa, ou 20% "
                f"({format_brl(fine.amount * 0.8)}) até o vencimento."
            )
            action = self._propose(
                ActionType.ADD_TRAFFIC_FINE,
                AddTrafficFinePayload(fine=fine),
                "Pagar multa com desconto",
                now,
                task_id=analysis.document_id,
            )
            next_actions = ["Agendar Pagamento", "Ver no SNE"]
        else:
            action = self._propose(
                ActionType.ANALYZE_DEFENSE,
                AnalyzeDefensePayload(fine=fine),
                "Analisar inconsistências para defesa",
                now,
                task_id=analysis.document_id,
            )
            next_actions = ["Analisar Defesa", "Agendar Pagamento"]

        return Message(
            text=text,
            intent=Intent.TRAFFIC_ANALYSIS,
            timestamp=now,
            pending_action=action,
            answer_json=AnswerJson(
                domain="traffic",
                key_facts=[
                    KeyFact(label="Placa", value=fine.plate or "-"),
                    KeyFact(label="Pontos", value=str(fine.points)),
                    KeyFact(label="Valor Base", value=format_brl(fine.amount)),
                ],
                suggested_next_actions=next_actions,
            ),
        )

    def _deduction_message(self, analysis: DocumentAnalysis, filename: str, now: datetime) -> Message:
        deduction_type = analysis.deduction_type
        category_name = "educação" if deduction_type == DeductionType.EDUCATION else "saúde"

        if deduction_type is not None and analysis.confidence > self._deduction_confidence:
            if not analysis.amount:
                return Message(
                    text=(
                        f"Identifiquei um comprovante de **{category_name}** ({analysis.doc_type}), "
                        "mas o valor não está nítido. \n\n**Qual o valor total deste documento?**"
                    ),
                    intent=Intent.UPLOAD_INTENT,
                    timestamp=now,
                )

            amount = format_brl(analysis.amount)
            payload = SaveDeductionPayload(
                doc_id=analysis.document_id,
                expense_type=deduction_type,
                provider_name=analysis.issuer or DEFAULT_PROVIDER,
                amount=analysis.amount,
                date=(analysis.document_date or now.date()).isoformat(),
                confidence_score=analysis.confidence,
                is_shared=True,
            )
            action = self._propose(
                ActionType.SAVE_DEDUCTION,
                payload,
                f"Salvar {analysis.doc_type or 'comprovante'} ({category_name}) de {amount}",
                now,
                task_id=analysis.document_id,
            )
            return Message(
                text=(
                    f"Identifiquei um comprovante de **{category_name}** no valor de "
                    f"**{amount}**. Quer que eu salve na sua Pasta Fiscal?"
                ),
                intent=Intent.UPLOAD_INTENT,
                timestamp=now,
                pending_action=action,
            )

        if analysis.confidence > AMBIGUOUS_CONFIDENCE:
            return Message(
                text=(
                    f"Recebi o arquivo **{filename}**. Não consegui identificar se ele abate "
                    "o imposto. \n\n**Este é um recibo de saúde ou educação?**"
                ),
                intent=Intent.UPLOAD_INTENT,
                timestamp=now,
                suggestions=[
                    Suggestion(title="Saúde"),
                    Suggestion(title="Educação"),
                    Suggestion(title="Não, arquivo comum"),
                ],
            )

        return Message(
            text=(
                f"Recebi o arquivo: **{analysis.doc_type or 'Documento'}**. Ele foi salvo, "
                "mas não parece ser uma despesa dedutível."
            ),
            intent=Intent.UPLOAD_INTENT,
            timestamp=now,
        )

    # -------------------------------------------------------------------------
    # Suggestions
    # -------------------------------------------------------------------------

    async def initial_suggestions(self) -> list[Suggestion]:
        """Up to three starter chips based on what needs attention."""
        if self.user_id is None:
            return [STATUS_CHIP]

        suggestions: list[Suggestion] = []
        household = await self.household()
        if household is not None:
            today = self._clock().date()
            try:
                status = await self._reports.household_status(household.id)
                if status.counts.risk > 0:
                    suggestions.append(
                        Suggestion(title="🚨 Resolver Riscos", text="Como estão meus riscos hoje?")
                    )
                financial = await self._reports.financial_status(household.id, today)
                if financial.status == FinancialHealth.DEFICIT:
                    suggestions.append(
                        Suggestion(title="💰 Alerta de Saldo", text="Resumo financeiro rápido")
                    )
                if await self._reports.tasks_due_on(household.id, today):
                    suggestions.append(
                        Suggestion(title="📅 Vencendo hoje", text="O que vence hoje?")
                    )
            except StorageError as e:
                logger.error("initial_suggestions_failed", error=str(e))

        if len(suggestions) < 2:
            suggestions.extend([STATUS_CHIP, BALANCE_CHIP])
        return suggestions[:MAX_INITIAL_SUGGESTIONS]


def create_app_components(
    use_storage: bool = True,
) -> tuple[ConversationSession, CreditRadarService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (session, credit_radar, sheets_client)
    """
    settings = get_settings()
    assistant_settings = settings.assistant

    sheets_client = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            task_storage = GoogleSheetsTaskStorage(sheets_client)
            tax_storage = GoogleSheetsTaxRecordStorage(sheets_client)
            card_storage = GoogleSheetsCreditCardStorage(sheets_client)
            knowledge_storage = GoogleSheetsKnowledgeStorage(sheets_client)
            audit_logger = AuditLogger(
                GoogleSheetsAuditStorage(sheets_client), correlation_id=create_correlation_id()
            )
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False
            sheets_client = None

    if not use_storage:
        task_storage = InMemoryTaskStorage()
        tax_storage = InMemoryTaxRecordStorage()
        card_storage = InMemoryCreditCardStorage()
        knowledge_storage = InMemoryKnowledgeStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage(), correlation_id=create_correlation_id())

    configured = validate_all_settings()

    remote = defense = analyzer = None
    if configured["gemini"]:
        cache = KnowledgeCache(knowledge_storage, audit=audit_logger)
        remote = GeminiAnswerService(cache, audit=audit_logger)
        defense = GeminiDefenseService()
        analyzer = GeminiDocumentAnalyzer()
    else:
        logger.warning("gemini_not_configured", error=configured.get("gemini_error"))

    files = None
    if configured["cloudinary"]:
        files = CloudinaryFileService()
    else:
        logger.warning("cloudinary_not_configured", error=configured.get("cloudinary_error"))

    action_ttl = timedelta(minutes=assistant_settings.pending_action_ttl_minutes)
    faq = LocalKnowledgeMatcher(load_faq_corpus(assistant_settings.faq_path))

    resolver = ActionResolver(
        faq=faq,
        task_storage=task_storage,
        remote=remote,
        audit=audit_logger,
        action_ttl=action_ttl,
    )
    executor = ActionExecutor(
        task_storage=task_storage,
        tax_storage=tax_storage,
        defense=defense,
        audit=audit_logger,
        action_ttl=action_ttl,
    )
    session = ConversationSession(
        resolver=resolver,
        executor=executor,
        task_storage=task_storage,
        files=files,
        analyzer=analyzer,
        audit=audit_logger,
        history_turns=assistant_settings.history_turns,
        deduction_confidence=assistant_settings.deduction_confidence_threshold,
        action_ttl=action_ttl,
    )
    credit_radar = CreditRadarService(card_storage, months=assistant_settings.projection_months)

    return session, credit_radar, sheets_client
