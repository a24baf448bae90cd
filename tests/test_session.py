"""
Flow tests for the conversation session.

These drive the same calls the Streamlit page makes: send, upload,
confirm and cancel, then inspect the message log.
"""

import pytest
from datetime import date

from vida_em_dia.assistant import phrases
from vida_em_dia.assistant.resolver import ActionResolver
from vida_em_dia.models.assistant import (
    MAX_SUMMARY_LENGTH,
    ActionType,
    ExecutionOutcome,
    Intent,
    Sender,
)
from vida_em_dia.models.audit import AuditEventType
from vida_em_dia.models.finance import (
    DocumentAnalysis,
    DocumentKind,
    FineRecommendation,
    Task,
    TrafficFineDetails,
)
from vida_em_dia.orchestrator import BALANCE_CHIP, STATUS_CHIP, ConversationSession
from vida_em_dia.services.storage.memory import InMemoryTaskStorage

from conftest import USER_ID, FakeAnalyzer, FakeFiles, FakeRemote


def traffic_analysis(recommendation=FineRecommendation.PAY) -> DocumentAnalysis:
    return DocumentAnalysis(
        document_id="doc-fine",
        doc_type="Notificação de autuação",
        kind=DocumentKind.TRAFFIC,
        confidence=0.95,
        traffic_fine=TrafficFineDetails(
            plate="ABC1D23",
            nature="Grave",
            points=5,
            amount=195.23,
            location="Av. Paulista",
            recommendation=recommendation,
            recommendation_text="Pague com desconto.",
        ),
    )


def medical_receipt(confidence=0.9, amount=250.0) -> DocumentAnalysis:
    return DocumentAnalysis(
        document_id="doc-recibo",
        doc_type="Recibo médico",
        kind=DocumentKind.MEDICAL,
        confidence=confidence,
        amount=amount,
        issuer="Clínica Boa",
        document_date=date(2026, 10, 1),
    )


class CountingTaskStorage(InMemoryTaskStorage):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.household_lookups = 0

    async def get_household_for_user(self, user_id):
        self.household_lookups += 1
        return await super().get_household_for_user(user_id)


@pytest.fixture
def make_session(faq, executor, task_storage, audit, clock, picker):
    def _make(remote=None, files=None, analyzer=None, storage=None, history_turns=5):
        storage = storage or task_storage
        resolver = ActionResolver(
            faq=faq, task_storage=storage, remote=remote, audit=audit, clock=clock, picker=picker,
        )
        session = ConversationSession(
            resolver=resolver,
            executor=executor,
            task_storage=storage,
            files=files or FakeFiles(),
            analyzer=analyzer or FakeAnalyzer(),
            audit=audit,
            clock=clock,
            history_turns=history_turns,
        )
        session.login(USER_ID)
        return session
    return _make


class TestSend:
    """Tests for sending text."""

    @pytest.mark.asyncio
    async def test_appends_both_turns(self, session):
        """Test the user turn and the reply are logged in order."""
        reply = await session.send("O que é malha fina?")

        assert [m.sender for m in session.messages] == [Sender.USER, Sender.ASSISTANT]
        assert session.messages[0].text == "O que é malha fina?"
        assert session.messages[1] is reply
        assert reply.intent == Intent.IR_BASICS

    @pytest.mark.asyncio
    async def test_turn_recorded_as_analytics(self, session, audit_storage):
        """Test each chat turn leaves an analytics event with its intent."""
        await session.send("Meu saldo")
        await session.drain()

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.ANALYTICS
        assert event.user_id == USER_ID
        assert event.details == {"name": "chat_message_sent", "intent": Intent.FINANCIAL_STATUS.value}

    @pytest.mark.asyncio
    async def test_history_forwarded(self, make_session):
        """Test earlier turns, not the current one, reach the remote function."""
        remote = FakeRemote()
        session = make_session(remote=remote)

        await session.send("primeira")
        await session.send("segunda")

        assert remote.requests[0].history == []
        history = remote.requests[1].history
        assert [(t.role, t.text) for t in history][0] == ("user", "primeira")
        assert [t.role for t in history] == ["user", "model"]

    @pytest.mark.asyncio
    async def test_history_capped(self, make_session):
        """Test only the last five turns are forwarded."""
        remote = FakeRemote()
        session = make_session(remote=remote)

        for text in ["um", "dois", "três", "quatro"]:
            await session.send(text)

        history = remote.requests[-1].history
        assert len(history) == 5
        assert history[0].role == "model"
        assert history[-1].text != "quatro"

    @pytest.mark.asyncio
    async def test_history_disabled(self, make_session):
        """Test history_turns 0 sends no history."""
        remote = FakeRemote()
        session = make_session(remote=remote, history_turns=0)

        await session.send("um")
        await session.send("dois")

        assert remote.requests[-1].history == []

    @pytest.mark.asyncio
    async def test_household_id_forwarded(self, make_session, household):
        """Test the signed-in user's household reaches the resolver."""
        remote = FakeRemote()
        session = make_session(remote=remote)
        await session.send("oi")
        assert remote.requests[0].household_id == household.id
        assert remote.requests[0].user_id == USER_ID


class TestSessionState:
    """Tests for login, logout and the household cache."""

    @pytest.mark.asyncio
    async def test_household_cached_per_login(self, make_session, household, tasks, incomes):
        """Test the household is looked up once until the next login."""
        storage = CountingTaskStorage(households=[household], tasks=tasks, incomes=incomes)
        session = make_session(storage=storage)

        await session.household()
        await session.send("oi")
        assert storage.household_lookups == 1

        session.login(USER_ID)
        await session.household()
        assert storage.household_lookups == 2

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, session):
        """Test logout drops the user, the log and the interview."""
        await session.send("oi")
        session.logout()

        assert session.user_id is None
        assert session.messages == []
        assert not session.interview_active
        assert await session.household() is None

    @pytest.mark.asyncio
    async def test_logout_forgets_settled_actions(self, session, executor, task_storage, household):
        """Test logging out clears what the executor remembers."""
        await task_storage.save_task(Task(household_id=household.id, title="Pagar IPTU"))
        proposal = await session.send("pagar IPTU")
        await session.confirm(proposal.id)
        assert executor._settled

        session.logout()

        assert executor._settled == set()

    @pytest.mark.asyncio
    async def test_priorities(self, session):
        """Test the priorities are the household's flagged tasks."""
        assert [t.id for t in await session.priorities()] == ["task-ipva", "task-luz"]

    @pytest.mark.asyncio
    async def test_priorities_without_household(self, session):
        """Test a logged-out session has no priorities."""
        session.logout()
        assert await session.priorities() == []


class TestConfirmCancel:
    """Tests for settling proposals through the session."""

    @pytest.mark.asyncio
    async def test_confirm_appends_reply(self, session, task_storage, household):
        """Test confirming a proposal writes and logs the result."""
        await task_storage.save_task(Task(id="task-iptu", household_id=household.id, title="Pagar IPTU"))
        proposal = await session.send("pagar IPTU")

        result = await session.confirm(proposal.id)

        assert result.succeeded
        assert session.messages[-1] is result.reply
        assert proposal.pending_action is None
        assert (await task_storage.get_task("task-iptu")).is_open is False

    @pytest.mark.asyncio
    async def test_confirm_unknown_message(self, session):
        """Test an unknown id has nothing to confirm."""
        result = await session.confirm("missing")
        assert result.outcome == ExecutionOutcome.NOT_PENDING
        assert session.messages == []

    @pytest.mark.asyncio
    async def test_cancel_appends_reply(self, session, task_storage, household):
        """Test cancelling logs the cancellation."""
        await task_storage.save_task(Task(household_id=household.id, title="Pagar IPTU"))
        proposal = await session.send("pagar IPTU")

        result = session.cancel(proposal.id)

        assert result.outcome == ExecutionOutcome.CANCELLED
        assert session.messages[-1].text == phrases.ACTION_CANCELLED
        assert proposal.pending_action is None


class TestUpload:
    """Tests for documents sent through the chat."""

    @pytest.mark.asyncio
    async def test_upload_failure(self, make_session, audit, audit_storage):
        """Test a failed upload apologises and is audited."""
        session = make_session(files=FakeFiles(fail=True))

        reply = await session.upload(b"...", "recibo.pdf", "application/pdf")
        await audit.drain()

        assert session.messages[0].text == "📎 recibo.pdf"
        assert reply.text == phrases.UPLOAD_FAILED
        assert audit_storage.events[-1].event_type == AuditEventType.UPLOAD_FAILED

    @pytest.mark.asyncio
    async def test_upload_without_household(self, session):
        """Test a user with no household cannot file documents."""
        session.login("stranger")
        reply = await session.upload(b"...", "recibo.pdf")
        assert reply.text == phrases.NO_HOUSEHOLD

    @pytest.mark.asyncio
    async def test_analysis_failure(self, make_session):
        """Test a failed analysis keeps the file and apologises."""
        session = make_session(analyzer=FakeAnalyzer(fail=True))
        reply = await session.upload(b"...", "recibo.pdf")
        assert reply.text == phrases.ANALYSIS_FAILED

    @pytest.mark.asyncio
    async def test_traffic_fine_to_pay(self, make_session):
        """Test a fine worth paying proposes adding it with the SNE discounts."""
        session = make_session(analyzer=FakeAnalyzer(traffic_analysis()))

        reply = await session.upload(b"...", "multa.jpg")

        action = reply.pending_action
        assert reply.intent == Intent.TRAFFIC_ANALYSIS
        assert action.type == ActionType.ADD_TRAFFIC_FINE
        assert action.payload.fine.document_id == "doc-fine"
        assert "R$ 117,14" in reply.text
        assert "R$ 156,18" in reply.text
        facts = {f.label: f.value for f in reply.answer_json.key_facts}
        assert facts == {"Placa": "ABC1D23", "Pontos": "5", "Valor Base": "R$ 195,23"}

    @pytest.mark.asyncio
    async def test_traffic_fine_to_defend_runs_interview(self, make_session):
        """Test a defensible fine leads to the interview, bypassing the resolver."""
        remote = FakeRemote()
        session = make_session(
            remote=remote,
            analyzer=FakeAnalyzer(traffic_analysis(FineRecommendation.DEFEND)),
        )

        reply = await session.upload(b"...", "multa.jpg")
        assert reply.pending_action.type == ActionType.ANALYZE_DEFENSE

        await session.confirm(reply.id)
        assert session.interview_active

        step = await session.send("sim")
        assert step.text.startswith("**(2/5)**")
        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_traffic_without_details(self, make_session):
        """Test a traffic document the analysis couldn't read."""
        analysis = DocumentAnalysis(kind=DocumentKind.TRAFFIC, confidence=0.9)
        session = make_session(analyzer=FakeAnalyzer(analysis))
        reply = await session.upload(b"...", "multa.jpg")
        assert reply.text == phrases.TRAFFIC_ANALYSIS_FAILED

    @pytest.mark.asyncio
    async def test_deduction_proposed(self, make_session, tax_storage):
        """Test a clear receipt is proposed for the fiscal folder."""
        session = make_session(analyzer=FakeAnalyzer(medical_receipt()))

        reply = await session.upload(b"...", "recibo.pdf")

        action = reply.pending_action
        assert action.type == ActionType.SAVE_DEDUCTION
        assert action.summary == "Salvar Recibo médico (saúde) de R$ 250,00"
        assert action.payload.provider_name == "Clínica Boa"
        assert action.payload.date == "2026-10-01"
        assert tax_storage.deductions == []

        await session.confirm(reply.id)
        assert tax_storage.deductions[0].doc_id == "doc-recibo"

    @pytest.mark.asyncio
    async def test_long_document_type_still_proposes(self, make_session):
        """Test a verbose document type cannot break the proposal."""
        analysis = medical_receipt().model_copy(update={"doc_type": "Recibo " * 80})
        session = make_session(analyzer=FakeAnalyzer(analysis))

        reply = await session.upload(b"...", "recibo.pdf")

        action = reply.pending_action
        assert action.type == ActionType.SAVE_DEDUCTION
        assert len(action.summary) <= MAX_SUMMARY_LENGTH

    @pytest.mark.asyncio
    async def test_deduction_without_amount(self, make_session):
        """Test a receipt with an unreadable amount asks for it."""
        session = make_session(analyzer=FakeAnalyzer(medical_receipt(amount=None)))
        reply = await session.upload(b"...", "recibo.pdf")
        assert reply.pending_action is None
        assert "Qual o valor total" in reply.text

    @pytest.mark.asyncio
    async def test_ambiguous_document(self, make_session):
        """Test a middling confidence asks what the document is."""
        session = make_session(analyzer=FakeAnalyzer(medical_receipt(confidence=0.4)))
        reply = await session.upload(b"...", "recibo.pdf")
        assert [s.title for s in reply.suggestions] == ["Saúde", "Educação", "Não, arquivo comum"]
        assert reply.pending_action is None

    @pytest.mark.asyncio
    async def test_not_deductible(self, make_session):
        """Test a low confidence document is just stored."""
        session = make_session(analyzer=FakeAnalyzer(medical_receipt(confidence=0.1)))
        reply = await session.upload(b"...", "recibo.pdf")
        assert "não parece ser uma despesa dedutível" in reply.text


class TestInitialSuggestions:
    """Tests for the starter chips."""

    @pytest.mark.asyncio
    async def test_logged_out(self, session):
        """Test a logged-out user only gets the status chip."""
        session.logout()
        assert await session.initial_suggestions() == [STATUS_CHIP]

    @pytest.mark.asyncio
    async def test_risks_first(self, session):
        """Test open risks lead, padded with the default chips."""
        chips = await session.initial_suggestions()
        assert [c.title for c in chips] == ["🚨 Resolver Riscos", STATUS_CHIP.title, BALANCE_CHIP.title]

    @pytest.mark.asyncio
    async def test_due_today(self, session, task_storage, household, clock):
        """Test a task due today gets its own chip."""
        await task_storage.save_task(
            Task(household_id=household.id, title="Boleto", due_date=clock().date())
        )
        chips = await session.initial_suggestions()
        assert [c.title for c in chips] == ["🚨 Resolver Riscos", "📅 Vencendo hoje"]
