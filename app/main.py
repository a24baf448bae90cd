"""
Streamlit Frontend for Vida em Dia

A thin chat page and a credit radar page. Every decision lives in the
session; this file only renders messages and forwards clicks.

DESIGN PRINCIPLES:
1. Nothing is written without the user pressing "Confirmar"
2. Every proposal shows what it will do before it does it
3. Errors are shown in plain Portuguese
"""

import asyncio

import streamlit as st

from vida_em_dia.config import get_settings, validate_all_settings
from vida_em_dia.models import Message, Sender
from vida_em_dia.orchestrator import ConversationSession, create_app_components
from vida_em_dia.playbooks import active_stage, get_action_plan
from vida_em_dia.queries import format_brl


st.set_page_config(
    page_title="Vida em Dia",
    page_icon="🦁",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def call(session: ConversationSession, coro):
    """Run a session coroutine and flush its audit writes before the loop closes."""
    async def _run():
        try:
            return await coro
        finally:
            await session.drain()
    return run_async(_run())


def get_components():
    """One set of components per browser session."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(use_storage=True)
    return st.session_state.components


def main():
    session, credit_radar, _ = get_components()

    st.sidebar.title("🦁 Vida em Dia")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input("Seu usuário", value=session.user_id or "")
    col1, col2 = st.sidebar.columns(2)
    if col1.button("Entrar") and user_id:
        session.login(user_id)
        st.rerun()
    if col2.button("Sair"):
        session.logout()
        st.rerun()

    page = st.sidebar.radio(
        "Ir para:",
        ["💬 Assistente", "💳 Radar de Crédito", "⚙️ Configurações"],
        index=0,
    )

    if get_settings().assistant.debug_mode:
        with st.sidebar.expander("🔧 Debug"):
            st.json({
                "user_id": session.user_id,
                "messages": len(session.messages),
                "interview_active": session.interview_active,
            })

    if page == "💬 Assistente":
        render_chat_page(session)
    elif page == "💳 Radar de Crédito":
        render_credit_page(session, credit_radar)
    else:
        render_settings_page()


def render_message(session: ConversationSession, message: Message):
    role = "user" if message.sender == Sender.USER else "assistant"
    with st.chat_message(role):
        st.markdown(message.text)

        if message.answer_json and message.answer_json.key_facts:
            cols = st.columns(len(message.answer_json.key_facts))
            for col, fact in zip(cols, message.answer_json.key_facts):
                col.metric(fact.label, fact.value)

        if message.sources:
            with st.expander("📚 Fontes"):
                for source in message.sources:
                    st.markdown(f"- [{source.title or source.url}]({source.url})")

        action = message.pending_action
        if action is not None:
            st.info(f"**Proposta:** {action.summary}")
            col1, col2 = st.columns(2)
            if col1.button("✅ Confirmar", key=f"confirm-{message.id}", type="primary"):
                call(session, session.confirm(message.id))
                st.rerun()
            if col2.button("✖️ Cancelar", key=f"cancel-{message.id}"):
                session.cancel(message.id)
                st.rerun()

        if message.suggestions:
            cols = st.columns(len(message.suggestions))
            for col, chip in zip(cols, message.suggestions):
                if col.button(chip.title, key=f"chip-{message.id}-{chip.id}"):
                    call(session, session.send(chip.reply_text))
                    st.rerun()


def render_chat_page(session: ConversationSession):
    st.title("💬 Assistente")

    if not session.messages:
        st.markdown("Como posso ajudar hoje?")
        chips = call(session, session.initial_suggestions())
        cols = st.columns(len(chips))
        for col, chip in zip(cols, chips):
            if col.button(chip.title, key=f"start-{chip.id}"):
                call(session, session.send(chip.reply_text))
                st.rerun()

    for message in session.messages:
        render_message(session, message)

    uploaded = st.file_uploader(
        "📎 Enviar comprovante ou multa",
        type=["jpg", "jpeg", "png", "pdf"],
    )
    if uploaded is not None and st.button("Enviar arquivo"):
        with st.spinner("Analisando o documento..."):
            call(session, session.upload(uploaded.getvalue(), uploaded.name, uploaded.type))
        st.rerun()

    prompt = st.chat_input("Pergunte sobre IR, multas, contas...")
    if prompt:
        with st.spinner("Pensando..."):
            call(session, session.send(prompt))
        st.rerun()


def render_credit_page(session: ConversationSession, credit_radar):
    st.title("💳 Radar de Crédito")
    st.markdown("Quanto do seu limite está comprometido nos próximos meses.")

    household = call(session, session.household())
    if household is None:
        st.info("Entre com seu usuário para ver seus cartões.")
        return

    cards = call(session, credit_radar.list_cards(household.id))
    if not cards:
        st.info("Nenhum cartão cadastrado ainda.")
        return

    card = st.selectbox("Cartão", options=cards, format_func=lambda c: c.name)
    points = call(session, credit_radar.get_limit_projection(card.id))
    if not points:
        st.error("Não consegui calcular a projeção agora.")
        return

    st.metric("Limite", format_brl(card.credit_limit))
    st.bar_chart(
        {"Uso do limite (%)": [p.usage_percentage for p in points]},
    )
    cols = st.columns(len(points))
    for col, point in zip(cols, points):
        col.metric(point.label, f"{point.usage_percentage:.0f}%", format_brl(point.remaining_amount))

    with st.expander("🗓️ Prioridades da casa"):
        for task in call(session, session.priorities()):
            plan = get_action_plan(task.category, task.health_status)
            stage = plan.timeline[active_stage(plan.timeline, task.due_date)]
            st.markdown(f"**{task.title}**: {plan.primary_action}")
            st.caption(f"{stage.label}: {stage.description}")


def render_settings_page():
    st.title("⚙️ Configurações")
    st.caption(f"Ambiente: {get_settings().assistant.app_environment}")
    st.markdown("### Serviços conectados")

    status = validate_all_settings()
    services = [
        ("Cloudinary (arquivos)", "cloudinary"),
        ("Google Sheets (dados)", "google_sheets"),
        ("Gemini (respostas e análises)", "gemini"),
        ("Assistente", "assistant"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Conectado")
        else:
            error = status.get(f"{key}_error", "Não configurado")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Para configurar, crie um arquivo `.env` com as chaves de API. "
        "Veja `.env.example` para as variáveis necessárias."
    )


if __name__ == "__main__":
    main()
