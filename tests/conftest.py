"""
Shared fixtures.

Everything runs on in-memory storage and hand-written collaborator fakes.
No test talks to Google Sheets, Cloudinary or Gemini.
"""

import random
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

import vida_em_dia
from vida_em_dia.assistant.executor import ActionExecutor
from vida_em_dia.assistant.faq import LocalKnowledgeMatcher, load_faq_corpus
from vida_em_dia.assistant.phrases import PhrasePicker
from vida_em_dia.assistant.resolver import ActionResolver
from vida_em_dia.audit.logger import AuditLogger
from vida_em_dia.models.assistant import DefenseAnswer
from vida_em_dia.models.finance import (
    CategoryType,
    DocumentAnalysis,
    HealthStatus,
    Household,
    Income,
    Task,
    TrafficFineDetails,
)
from vida_em_dia.models.knowledge import RemoteAnswer, RemoteAnswerRequest
from vida_em_dia.orchestrator import ConversationSession
from vida_em_dia.services.files.interface import FileStorageInterface, FileUploadError
from vida_em_dia.services.remote.interface import (
    DefenseGenerationError,
    DefenseGenerator,
    DocumentAnalysisError,
    DocumentAnalyzer,
    RemoteAnswerFunction,
    RemoteFunctionError,
)
from vida_em_dia.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTaskStorage,
    InMemoryTaxRecordStorage,
)


FAQ_PATH = Path(vida_em_dia.__file__).parent / "data" / "ir_faq_2026.json"

NOW = datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc)
USER_ID = "user-ana"


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeRemote(RemoteAnswerFunction):

    def __init__(self, answer: Optional[RemoteAnswer] = None, error: Optional[Exception] = None):
        self.answer_to_give = answer or RemoteAnswer()
        self.error = error
        self.requests: list[RemoteAnswerRequest] = []

    async def answer(self, request: RemoteAnswerRequest) -> RemoteAnswer:
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.answer_to_give


class FakeDefense(DefenseGenerator):

    def __init__(self, markdown: str = "# Defesa Prévia\n\nTexto.", fail: bool = False):
        self.markdown = markdown
        self.fail = fail
        self.calls: list[tuple[TrafficFineDetails, list[DefenseAnswer]]] = []

    async def generate_defense(self, fine, answers):
        self.calls.append((fine, answers))
        if self.fail:
            raise DefenseGenerationError("model unavailable")
        return self.markdown


class FakeAnalyzer(DocumentAnalyzer):

    def __init__(self, analysis: Optional[DocumentAnalysis] = None, fail: bool = False):
        self.analysis = analysis or DocumentAnalysis()
        self.fail = fail

    async def analyze(self, file_url, filename, household_id):
        if self.fail:
            raise DocumentAnalysisError("unreadable")
        return self.analysis


class FakeFiles(FileStorageInterface):

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploaded: list[str] = []

    async def upload(self, content, filename, user_id, content_type=None):
        if self.fail:
            raise FileUploadError("network down")
        self.uploaded.append(filename)
        return f"https://files.example/{user_id}/{filename}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def picker():
    return PhrasePicker(random.Random(7))


@pytest.fixture
def household():
    return Household(id="house-1", name="Casa da Ana", owner_user_id=USER_ID)


@pytest.fixture
def tasks(household):
    return [
        Task(
            id="task-ipva",
            household_id=household.id,
            title="IPVA 2026",
            category=CategoryType.VEHICLE,
            health_status=HealthStatus.RISK,
            due_date=date(2026, 10, 10),
            amount=1200.0,
        ),
        Task(
            id="task-luz",
            household_id=household.id,
            title="Conta de luz",
            category=CategoryType.HOME,
            health_status=HealthStatus.ATTENTION,
            due_date=date(2026, 10, 25),
            amount=300.0,
        ),
        Task(
            id="task-contrato",
            household_id=household.id,
            title="Renovar contrato da internet",
            category=CategoryType.CONTRACTS,
            due_date=date(2026, 12, 1),
        ),
    ]


@pytest.fixture
def incomes(household):
    return [
        Income(
            household_id=household.id,
            description="Salário",
            amount=5000.0,
            received_on=date(2026, 1, 5),
        ),
    ]


@pytest.fixture
def task_storage(household, tasks, incomes):
    return InMemoryTaskStorage(households=[household], tasks=tasks, incomes=incomes)


@pytest.fixture
def tax_storage():
    return InMemoryTaxRecordStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def faq():
    return LocalKnowledgeMatcher(load_faq_corpus(FAQ_PATH))


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def defense():
    return FakeDefense()


@pytest.fixture
def resolver(faq, task_storage, audit, clock, picker):
    return ActionResolver(
        faq=faq,
        task_storage=task_storage,
        audit=audit,
        clock=clock,
        picker=picker,
    )


@pytest.fixture
def executor(task_storage, tax_storage, defense, audit, clock):
    return ActionExecutor(
        task_storage=task_storage,
        tax_storage=tax_storage,
        defense=defense,
        audit=audit,
        clock=clock,
    )


@pytest.fixture
def files():
    return FakeFiles()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def session(resolver, executor, task_storage, files, analyzer, audit, clock):
    session = ConversationSession(
        resolver=resolver,
        executor=executor,
        task_storage=task_storage,
        files=files,
        analyzer=analyzer,
        audit=audit,
        clock=clock,
    )
    session.login(USER_ID)
    return session
