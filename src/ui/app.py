import nest_asyncio
nest_asyncio.apply()

import streamlit as st
from langsmith import uuid7
import asyncio
import copy
import warnings

from src.agents.config import AgentSettings
from src.agents.orchestrator import PortfolioOrchestrator
from src.portfolio import collector
from src.portfolio.defaults import DEFAULT_CLIENT_ID, DEFAULT_PORTFOLIO_ID, SAMPLE_PORTFOLIO
from src.portfolio.exporter import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, export_analysis
from src.agents.errors import PortfolioParseError
from src.ui import render
from src.ui.state import AnalysisSession
from src.utils.tracing import setup_tracing

setup_tracing(service_name="portfolio-ui")

warnings.filterwarnings("ignore", category=DeprecationWarning)

# --- PAGE CONFIG ---
st.set_page_config(page_title="Portfolio Manager", page_icon="📈", layout="wide")


# --- ASYNC HELPER ---
def run_async(coro):
    """Bridge Streamlit's script thread to an asyncio loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


# --- ORCHESTRATOR ---
def build_orchestrator() -> PortfolioOrchestrator:
    return PortfolioOrchestrator(AgentSettings.from_env())


# --- SESSION STATE ---
if "session_id" not in st.session_state:
    st.session_state.session_id = str(uuid7())

if "analysis_session" not in st.session_state:
    st.session_state.analysis_session = AnalysisSession(build_orchestrator)

if "portfolio_id" not in st.session_state:
    st.session_state.portfolio_id = DEFAULT_PORTFOLIO_ID
    st.session_state.client_id = DEFAULT_CLIENT_ID
    st.session_state.form_holdings = None

SESSION: AnalysisSession = st.session_state.analysis_session


def handle_analyze(request):
    with st.spinner("Analyzing portfolio across all agents..."):
        run_async(SESSION.submit(request))
    st.rerun()


def load_sample_data():
    st.session_state.portfolio_id = SAMPLE_PORTFOLIO["portfolio_id"]
    st.session_state.client_id = SAMPLE_PORTFOLIO["client_id"]
    st.session_state.form_holdings = copy.deepcopy(SAMPLE_PORTFOLIO["holdings"])


# --- HEADER ---
col1, col2 = st.columns([5, 1])
with col1:
    st.title("📈 Portfolio Manager")
with col2:
    if SESSION.analysis is not None:
        st.download_button(
            "⬇️ Export",
            data=export_analysis(SESSION.analysis),
            file_name=EXPORT_FILENAME,
            mime=EXPORT_MEDIA_TYPE,
            key="export_analysis",
        )

# --- INPUT SIDEBAR ---
with st.sidebar:
    st.header("📈 Portfolio Analysis")

    manual_tab, paste_tab, upload_tab = st.tabs(["Manual", "Paste JSON", "Upload"])

    with manual_tab:
        with st.form("portfolio_form"):
            st.text_input("Portfolio ID", key="portfolio_id", placeholder="Enter portfolio ID", disabled=SESSION.loading)
            st.text_input("Client ID", key="client_id", placeholder="Enter client ID", disabled=SESSION.loading)
            submitted = st.form_submit_button(
                "Analyzing..." if SESSION.loading else "Analyze Portfolio",
                disabled=SESSION.loading,
                use_container_width=True,
            )
        if submitted:
            try:
                request = collector.from_form(
                    st.session_state.portfolio_id,
                    st.session_state.client_id,
                    st.session_state.form_holdings,
                )
            except PortfolioParseError as e:
                SESSION.error = str(e)
                st.error(SESSION.error)
            else:
                handle_analyze(request)

        st.button(
            "Load Sample Data",
            on_click=load_sample_data,
            disabled=SESSION.loading,
            use_container_width=True,
        )

    with paste_tab:
        pasted = st.text_area("Portfolio JSON", key="pasted_json", height=200, placeholder='{"portfolio_id": "...", "client_id": "...", "holdings": [...]}')
        if st.button("Analyze Pasted JSON", key="analyze_pasted", disabled=SESSION.loading, use_container_width=True):
            request = SESSION.load_portfolio_text(pasted)
            if request is None:
                st.error(SESSION.error)
            else:
                handle_analyze(request)

    with upload_tab:
        uploaded = st.file_uploader("Portfolio JSON file", type=["json"])
        if uploaded is not None and st.button("Analyze Uploaded File", disabled=SESSION.loading, use_container_width=True):
            request = SESSION.load_portfolio_file(uploaded)
            if request is None:
                st.error(SESSION.error)
            else:
                handle_analyze(request)

    st.divider()
    st.subheader("ℹ️ Quick Info")
    st.caption("• Input portfolio/client ID to trigger analysis")
    st.caption("• Three agents: Internal, External, Manager")
    st.caption("• Risk assessment and performance from the manager agent")
    st.caption("• Export analysis as JSON")
    st.caption(f"Session ID: {st.session_state.session_id}")

# --- ANALYSIS CONTENT ---
if SESSION.error:
    st.error(SESSION.error)

analysis = SESSION.analysis

if analysis is None:
    st.info("Submit a portfolio to see its analysis.")
else:
    notice = render.fallback_notice(analysis)
    if notice:
        st.warning(notice)

    st.subheader("📈 Portfolio Summary")
    st.write(analysis.summary)

    st.subheader("Asset Allocation")
    fig = render.allocation_figure(analysis)
    st.pyplot(fig)
    render.close_figure(fig)

    risk_col, perf_col = st.columns(2)
    with risk_col:
        st.subheader("⚠️ Risk Metrics")
        for label, value in render.risk_rows(analysis):
            st.markdown(f"{label}: **{value}**")
    with perf_col:
        st.subheader("Performance")
        for label, value in render.performance_rows(analysis):
            st.markdown(f"{label}: **{value}**")

    st.subheader("Performance Trend")
    fig = render.trend_figure()
    st.pyplot(fig)
    render.close_figure(fig)

st.divider()
st.caption("Figures are produced by external AI agents and are for informational purposes only.")
