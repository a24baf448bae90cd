"""
Action Playbooks

Static advice shown next to a task: what to do now, what happens if it
is ignored, and a consequence timeline relative to the due date.
Looked up by task category and health status.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from vida_em_dia.models.finance import CategoryType, HealthStatus


class StageColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


class StageIcon(str, Enum):
    OK = "ok"
    DEBT = "debt"
    FINE = "fine"
    LOCK = "lock"
    ALERT = "alert"
    X = "x"


class TimelineStage(BaseModel):
    """One consequence stage; days_offset is relative to the due date."""
    model_config = ConfigDict(frozen=True)

    label: str
    description: str
    color: StageColor
    days_offset: int
    icon_type: Optional[StageIcon] = None


class ActionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_action: str
    legal_consequence: str
    practical_impact: str
    steps: tuple[str, ...]
    priority_level: str = Field(..., pattern="^(high|medium|low)$")
    timeline: tuple[TimelineStage, ...]


def _stage(label: str, description: str, color: str, days_offset: int, icon: str) -> TimelineStage:
    return TimelineStage(
        label=label,
        description=description,
        color=StageColor(color),
        days_offset=days_offset,
        icon_type=StageIcon(icon),
    )


DEFAULT_TIMELINE: tuple[TimelineStage, ...] = (
    _stage("Hoje", "Tudo sob controle.", "green", 0, "ok"),
    _stage("3 dias", "Início da fase de juros.", "yellow", 3, "debt"),
    _stage("15 dias", "Incidência de multa.", "orange", 15, "fine"),
    _stage("30 dias", "Risco de bloqueio ou suspensão.", "red", 30, "lock"),
)


ACTION_PLAYBOOKS: dict[CategoryType, dict[HealthStatus, ActionPlan]] = {
    CategoryType.TAXES: {
        HealthStatus.RISK: ActionPlan(
            primary_action="Pagar agora via App Bancário",
            legal_consequence="Pode gerar multa de 20% + juros SELIC.",
            practical_impact="Pode levar ao bloqueio de CPF/CNPJ e dificultar crédito.",
            steps=(
                "Copiar código de barras",
                "Acessar área de Impostos do Banco",
                "Confirmar pagamento hoje",
            ),
            priority_level="high",
            timeline=(
                _stage("Ideal", "Pagar sem encargos.", "green", 0, "ok"),
                _stage("+1 dia", "Juros diários começam.", "yellow", 1, "debt"),
                _stage("+15 dias", "Multa fixa aplicada.", "orange", 15, "fine"),
                _stage("+60 dias", "Dívida ativa e protesto.", "red", 60, "lock"),
            ),
        ),
        HealthStatus.ATTENTION: ActionPlan(
            primary_action="Agendar pagamento p/ data de vencimento",
            legal_consequence="Atraso gera encargos financeiros imediatos.",
            practical_impact="Gera retrabalho de emissão de nova guia atualizada.",
            steps=("Baixar o PDF da guia", "Agendar no banco", "Marcar como agendado"),
            priority_level="medium",
            timeline=DEFAULT_TIMELINE,
        ),
    },
    CategoryType.VEHICLE: {
        HealthStatus.RISK: ActionPlan(
            primary_action="Regularizar documentação urgente",
            legal_consequence="Infração gravíssima com 7 pontos na CNH.",
            practical_impact="Pode bloquear o uso do veículo e resultar em apreensão.",
            steps=(
                "Verificar débitos no Detran",
                "Pagar taxas pendentes",
                "Baixar CRLV-e atualizado",
            ),
            priority_level="high",
            timeline=(
                _stage("Venc.", "Prazo limite legal.", "green", 0, "ok"),
                _stage("+1 dia", "Sujeito a apreensão.", "yellow", 1, "alert"),
                _stage("+15 dias", "Multa no sistema Detran.", "orange", 15, "fine"),
                _stage("+30 dias", "Impedimento do veículo.", "red", 30, "lock"),
            ),
        ),
        HealthStatus.ATTENTION: ActionPlan(
            primary_action="Revisar itens de segurança",
            legal_consequence="Pode resultar em multa por mau estado de conservação.",
            practical_impact="Atrasar manutenção aumenta o custo de reparo futuro.",
            steps=(
                "Verificar nível do óleo e pneus",
                "Cotar revisão em oficina",
                "Planejar gasto p/ próximo mês",
            ),
            priority_level="medium",
            timeline=(
                _stage("Prev.", "Revisão sugerida.", "green", 0, "ok"),
                _stage("+30d", "Desgaste acelerado.", "yellow", 30, "alert"),
                _stage("+60d", "Risco de pane mecânica.", "orange", 60, "alert"),
                _stage("+90d", "Reparo emergencial caro.", "red", 90, "x"),
            ),
        ),
    },
    CategoryType.CONTRACTS: {
        HealthStatus.RISK: ActionPlan(
            primary_action="Decidir sobre renovação / Cancelamento",
            legal_consequence="Renovação automática pode prender você por mais 12 meses.",
            practical_impact="Pode haver reajuste acima da inflação sem aviso prévio.",
            steps=(
                "Ler cláusula de rescisão",
                "Comparar com preços de mercado",
                "Notificar fornecedor",
            ),
            priority_level="high",
            timeline=(
                _stage("Janela", "Hora de renegociar.", "green", -30, "ok"),
                _stage("Lembrete", "Última semana p/ cancelar.", "yellow", -7, "alert"),
                _stage("Venc.", "Renovação automática.", "orange", 0, "fine"),
                _stage("Multa", "Perda de direito / Multa.", "red", 1, "x"),
            ),
        ),
        HealthStatus.ATTENTION: ActionPlan(
            primary_action="Revisar termos e performance",
            legal_consequence="Possibilidade de perda de benefícios de fidelidade.",
            practical_impact="O serviço pode não ser mais vantajoso p/ seu uso atual.",
            steps=(
                "Checar última fatura",
                "Verificar fidelidade vigente",
                "Sinalizar interesse em renegociar",
            ),
            priority_level="medium",
            timeline=DEFAULT_TIMELINE,
        ),
    },
    CategoryType.HOME: {
        HealthStatus.RISK: ActionPlan(
            primary_action="Garantir manutenção crítica",
            legal_consequence="Pode invalidar cláusulas do seguro residencial.",
            practical_impact="Risco de dano estrutural ou interrupção de serviço essencial.",
            steps=(
                "Chamar técnico especializado",
                "Validar garantia se houver",
                "Executar reparo preventivo",
            ),
            priority_level="high",
            timeline=(
                _stage("Hj", "Garantia ativa.", "green", 0, "ok"),
                _stage("+7d", "Dano pode agravar.", "yellow", 7, "alert"),
                _stage("+15d", "Perda de funcionalidade.", "orange", 15, "x"),
                _stage("+30d", "Cobrança / Suspensão.", "red", 30, "lock"),
            ),
        ),
        HealthStatus.ATTENTION: ActionPlan(
            primary_action="Organizar comprovantes",
            legal_consequence="Dificulta comprovação de quitação em caso de cobrança indevida.",
            practical_impact="Falta de histórico pode dificultar revenda ou vistorias.",
            steps=(
                "Digitalizar recibos recentes",
                "Agendar vistoria periódica",
                "Atualizar inventário de bens",
            ),
            priority_level="medium",
            timeline=DEFAULT_TIMELINE,
        ),
    },
}


DEFAULT_PLAN = ActionPlan(
    primary_action="Resolver agora ou lembrar depois?",
    legal_consequence="Isso parece importante.",
    practical_impact="Manter a organização evita surpresas e estresse futuro.",
    steps=(
        "Verificar detalhes deste item",
        "Decidir se precisa de ação hoje",
        "Arquivar ou agendar lembrete",
    ),
    priority_level="low",
    timeline=DEFAULT_TIMELINE,
)


def get_action_plan(category: CategoryType, health_status: HealthStatus) -> ActionPlan:
    """Playbook for a task; DEFAULT_PLAN when none is defined."""
    return ACTION_PLAYBOOKS.get(category, {}).get(health_status, DEFAULT_PLAN)


def active_stage(
    stages: tuple[TimelineStage, ...] | list[TimelineStage],
    due_date: Optional[date],
    today: Optional[date] = None,
) -> int:
    """
    Index of the stage the task is in today.

    The last stage whose days_offset has been reached wins; 0 when none
    has, or when there is no due date. Stages must already be sorted by
    days_offset.
    """
    if due_date is None:
        return 0

    diff_days = ((today or date.today()) - due_date).days
    active = 0
    for index, stage in enumerate(stages):
        if diff_days >= stage.days_offset:
            active = index
    return active
