"""
Gemini-backed Remote Collaborators

Reference implementations of the hosted functions the assistant calls.

CRITICAL BOUNDARIES:

1. ANSWER SERVICE:
   - CAN: Answer from the knowledge cache, or generate and cache a new answer
   - CANNOT: Serve or cache an answer the validator rejects
   - MUST: Cite trusted sources for every verifiable fact

2. DEFENSE SERVICE:
   - CAN: Draft a formal defense from the fine and the interview answers
   - CANNOT: Persist anything; the executor stores the draft

3. DOCUMENT ANALYZER:
   - CAN: Classify an upload and extract amount, issuer and fine details
   - CANNOT: Decide whether anything is saved; it only proposes

The LLM drafts. Confirmation and persistence stay with the user.
None of these calls are retried.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import httpx
import structlog
from pydantic import ValidationError

from vida_em_dia.assistant.intents import classify_intent, knowledge_category
from vida_em_dia.audit.logger import AuditLogger
from vida_em_dia.config import get_settings
from vida_em_dia.knowledge.cache import KnowledgeCache
from vida_em_dia.knowledge.validator import KnowledgeValidator
from vida_em_dia.models.assistant import DefenseAnswer
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.models.finance import DocumentAnalysis, TrafficFineDetails
from vida_em_dia.models.knowledge import (
    CandidateAnswer,
    RemoteActionDescriptor,
    RemoteAnswer,
    RemoteAnswerRequest,
)
from vida_em_dia.services.remote.interface import (
    DefenseGenerationError,
    DefenseGenerator,
    DocumentAnalysisError,
    DocumentAnalyzer,
    RemoteAnswerFunction,
    RemoteFunctionError,
)


logger = structlog.get_logger()


ANSWER_SYSTEM_PROMPT = """Você é o assistente oficial do aplicativo Vida em Dia.

OBJETIVO: responder a pergunta do usuário em português do Brasil, com clareza e responsabilidade.

REGRAS DE SEGURANÇA (OBRIGATÓRIAS):
1. Não invente valores, pontos, prazos, artigos de lei ou regras. Sem fonte confiável, diga que não sabe.
2. Todo fato verificável (número, regra, prazo, desconto, pontos) precisa de fonte oficial.
3. Use "pode", "em geral", "depende" quando houver variação por órgão, estado ou caso.
4. Não dê aconselhamento jurídico definitivo. Oriente sobre passos e documentos.
5. Se faltar informação, faça até 3 perguntas objetivas.

FONTES PERMITIDAS: somente domínios oficiais e confiáveis (*.gov.br, *.jus.br e similares).

Responda SOMENTE com um objeto JSON neste formato:
{"answer_text": "...",
 "answer_json": {"domain": "...", "key_facts": [{"label": "...", "value": "..."}], "suggested_next_actions": ["..."]},
 "sources": [{"url": "https://...", "title": "...", "excerpt": "..."}],
 "confidence_level": "high | medium | low",
 "ttl_days": 30}"""


DEFENSE_PROMPT_TEMPLATE = """Você é especialista em direito de trânsito brasileiro. Gere uma DEFESA PRÉVIA formal para a multa abaixo.

DADOS DA INFRAÇÃO:
- Placa: {plate}
- Órgão emissor: {issuer}
- Código/Infração: {infraction_code} - {description}
- Natureza: {nature}
- Local: {location}
- Data/Hora: {infraction_date} às {infraction_time}

RESPOSTAS DO CONDUTOR:
{answers}

REGRAS:
1. Linguagem formal e jurídica, porém acessível.
2. Destaque inconsistências técnicas, se houver (placa errada, local inexistente, sinalização precária).
3. Se o condutor não estava no local ou havia emergência, fundamente no Código de Trânsito Brasileiro.
4. Dirija o texto ao Presidente da JARI do órgão autuador.
5. Retorne APENAS o texto em Markdown.
6. Termine com a seção "ONDE PROTOCOLAR" (site do DETRAN ou atendimento presencial).

Estrutura: título ao Presidente da JARI, "DOS FATOS", "DO DIREITO", "DO PEDIDO" (cancelamento e arquivamento do auto) e espaço para assinatura."""


DOCUMENT_PROMPT = """Analise o documento anexo ({filename}) de uma família brasileira.

Classifique-o em "kind": traffic (notificação de multa), health_plan (plano de saúde),
medical (consulta, exame, clínica, hospital), education (escola, faculdade, curso) ou other.

Responda SOMENTE com JSON:
{{"doc_type": "descrição curta", "kind": "...", "confidence": 0.0-1.0,
  "amount": número ou null, "issuer": "..." ou null, "document_date": "AAAA-MM-DD" ou null,
  "traffic_fine": null ou {{"plate": "...", "infraction_date": "AAAA-MM-DD", "infraction_time": "HH:MM",
     "location": "...", "nature": "...", "points": 0, "amount": 0.0, "issuer": "...",
     "infraction_code": "...", "description": "...", "due_date": "AAAA-MM-DD",
     "recommendation": "pay | defend", "recommendation_text": "...", "summary_human": "...",
     "sne_discount_40": 0.0, "sne_discount_20": 0.0}}}}

Se não tiver certeza, use confidence baixa. Nunca invente valores."""


def extract_json(text: str) -> dict[str, Any]:
    """
    Pull the first JSON object out of a model response.

    Raises:
        ValueError: If no object can be parsed
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in model response")
    return json.loads(text[start:end])


def _build_model(temperature: Optional[float] = None, max_tokens: Optional[int] = None):
    """Configure Google Generative AI and return a model."""
    settings = get_settings().gemini
    genai.configure(api_key=settings.api_key)
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config={
            "temperature": settings.temperature if temperature is None else temperature,
            "max_output_tokens": max_tokens or settings.max_tokens,
        },
    )


class GeminiAnswerService(RemoteAnswerFunction):
    """
    Cache-first answer function.

    FLOW:
    1. Cache lookup by domain and question hash
    2. On miss, generate with Gemini under the locked system prompt
    3. Validate; a rejection yields an empty answer
    4. Cache the validated answer and return it
    """

    def __init__(
        self,
        cache: KnowledgeCache,
        model: Any = None,
        validator: Optional[KnowledgeValidator] = None,
        audit: Optional[AuditLogger] = None,
        model_name: Optional[str] = None,
    ):
        self._cache = cache
        self._model = model if model is not None else _build_model()
        self._validator = validator or KnowledgeValidator()
        self._audit = audit
        self._model_name = model_name or getattr(self._model, "model_name", None)

    def _build_prompt(self, request: RemoteAnswerRequest) -> str:
        parts = [ANSWER_SYSTEM_PROMPT]
        if request.history:
            history = "\n".join(f"{turn.role}: {turn.text}" for turn in request.history)
            parts.append(f"HISTÓRICO RECENTE:\n{history}")
        parts.append(f"DOMÍNIO: {request.domain}")
        parts.append(f"PERGUNTA: {request.question}")
        return "\n\n".join(parts)

    async def answer(self, request: RemoteAnswerRequest) -> RemoteAnswer:
        cached = await self._cache.get(
            request.domain,
            request.question,
            user_id=request.user_id,
            household_id=request.household_id,
        )
        if cached:
            return RemoteAnswer(
                answer_text=cached.answer_text,
                is_cached=True,
                confidence_level=cached.confidence_level,
                sources=cached.sources,
                answer_json=cached.answer_json,
                key_facts=cached.answer_json.key_facts,
            )

        try:
            response = await self._model.generate_content_async(self._build_prompt(request))
            data = extract_json(response.text.strip())
        except Exception as e:
            raise RemoteFunctionError(f"Gemini answer failed: {e}")

        try:
            candidate = CandidateAnswer.model_validate(data)
        except ValidationError as e:
            logger.warning("answer_unparseable", error=str(e))
            return RemoteAnswer(error="invalid_structure")

        outcome = self._validator.validate(candidate)
        if not outcome.ok:
            if self._audit:
                self._audit.emit(
                    AuditEventBuilder.knowledge_rejected(
                        request.domain, outcome.reason.value, outcome.detail, request.user_id
                    )
                )
            return RemoteAnswer(error=outcome.reason.value)

        intent = classify_intent(request.question)
        await self._cache.save_fact(
            domain=request.domain,
            question=request.question,
            candidate=candidate,
            category=knowledge_category(intent, request.question),
            model_name=self._model_name,
            user_id=request.user_id,
            household_id=request.household_id,
        )

        pending = None
        if candidate.pending_action:
            try:
                pending = RemoteActionDescriptor.model_validate(candidate.pending_action)
            except ValidationError:
                pending = None

        return RemoteAnswer(
            answer_text=candidate.answer_text,
            pending_action=pending,
            intent_mode=candidate.intent_mode,
            is_cached=False,
            confidence_level=candidate.confidence_level,
            sources=candidate.sources,
            answer_json=candidate.answer_json,
            key_facts=candidate.answer_json.key_facts if candidate.answer_json else [],
        )


class GeminiDefenseService(DefenseGenerator):
    """Drafts a JARI defense in Markdown."""

    def __init__(self, model: Any = None):
        self._model = model if model is not None else _build_model(temperature=0.3, max_tokens=4096)

    def _build_prompt(self, fine: TrafficFineDetails, answers: list[DefenseAnswer]) -> str:
        answers_text = "\n".join(
            f"- {a.question} {'Sim' if a.answer else 'Não'}" for a in answers
        ) or "- (sem respostas)"
        return DEFENSE_PROMPT_TEMPLATE.format(
            plate=fine.plate or "não informada",
            issuer=fine.issuer or "não informado",
            infraction_code=fine.infraction_code or "-",
            description=fine.description or "-",
            nature=fine.nature or "-",
            location=fine.location or "-",
            infraction_date=fine.infraction_date.isoformat() if fine.infraction_date else "-",
            infraction_time=fine.infraction_time or "-",
            answers=answers_text,
        )

    async def generate_defense(
        self,
        fine: TrafficFineDetails,
        answers: list[DefenseAnswer],
    ) -> str:
        try:
            response = await self._model.generate_content_async(self._build_prompt(fine, answers))
            markdown = response.text.strip()
        except Exception as e:
            raise DefenseGenerationError(f"Gemini defense failed: {e}")

        if not markdown:
            raise DefenseGenerationError("Empty defense draft")
        return markdown


class GeminiDocumentAnalyzer(DocumentAnalyzer):
    """
    Classifies an uploaded document by reading it from its URL.

    The file is fetched with a fresh httpx client per call and sent to
    Gemini inline.
    """

    def __init__(self, model: Any = None, timeout: float = 30.0):
        self._model = model if model is not None else _build_model(temperature=0.1, max_tokens=1024)
        self._timeout = timeout

    async def _fetch(self, file_url: str) -> tuple[bytes, str]:
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            response = await client.get(file_url)
            response.raise_for_status()
            content_type = response.headers.get("content-type", "application/octet-stream")
            return response.content, content_type.split(";")[0]

    async def analyze(
        self,
        file_url: str,
        filename: str,
        household_id: str,
    ) -> DocumentAnalysis:
        try:
            content, mime_type = await self._fetch(file_url)
            response = await self._model.generate_content_async([
                DOCUMENT_PROMPT.format(filename=filename),
                {"mime_type": mime_type, "data": content},
            ])
            data = extract_json(response.text.strip())
            analysis = DocumentAnalysis.model_validate(data)
        except httpx.HTTPError as e:
            raise DocumentAnalysisError(f"Could not fetch {filename}: {e}")
        except Exception as e:
            raise DocumentAnalysisError(f"Gemini analysis failed: {e}")

        if analysis.traffic_fine and not analysis.traffic_fine.document_id:
            analysis.traffic_fine.document_id = analysis.document_id
        logger.info(
            "document_analyzed",
            household_id=household_id,
            kind=analysis.kind.value,
            confidence=analysis.confidence,
        )
        return analysis
