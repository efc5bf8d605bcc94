"""
Nevra - Streamlit Application

A chat assistant that either explains things (tutor) or builds runnable web
apps (builder), with a live sandboxed preview of the generated project.
"""

import base64

import streamlit as st
import streamlit.components.v1 as components

from nevra.config import ConfigError, configure_logging, get_config
from nevra.errors import ProjectStoreError, TurnInProgressError
from nevra.pipeline import apply_edit, handle_send
from nevra.providers import list_providers
from nevra.sandbox import embed_iframe, get_registry
from nevra.schemas import Framework, GenerationMode
from nevra.session import ChatSession
from nevra.storage import InMemoryChatStore
from nevra.usage import get_usage_ledger
from nevra.utils import guess_language_from_filename, safe_project_name


# Page configuration
st.set_page_config(
    page_title="Nevra",
    page_icon="⚡",
    layout="wide",
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        color: #1E88E5;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.1rem;
        color: #666;
        margin-bottom: 2rem;
    }
    .stTabs [data-baseweb="tab-list"] {
        gap: 8px;
    }
</style>
""", unsafe_allow_html=True)

FRAMEWORK_OPTIONS = {
    "HTML": Framework.HTML,
    "React": Framework.REACT,
    "Next.js": Framework.NEXTJS,
    "Vite": Framework.VITE,
}

MODE_OPTIONS = {
    "Auto": None,
    "Tutor": GenerationMode.TUTOR,
    "Builder": GenerationMode.BUILDER,
}


def new_session() -> ChatSession:
    config = get_config()
    return ChatSession(
        provider_id=config.default_provider,
        history_cap=config.history_cap,
    )


def init_session_state():
    """Initialize session state variables."""
    if "chat_store" not in st.session_state:
        st.session_state.chat_store = InMemoryChatStore()
    if "session" not in st.session_state:
        st.session_state.session = new_session()
    if "last_result" not in st.session_state:
        st.session_state.last_result = None
    if "first_prompt" not in st.session_state:
        st.session_state.first_prompt = ""
    if "mode_override" not in st.session_state:
        st.session_state.mode_override = None


def reset_session():
    """Tear down the current chat and start a fresh one."""
    st.session_state.session.teardown(get_registry())
    st.session_state.session = new_session()
    st.session_state.last_result = None
    st.session_state.first_prompt = ""


def validate_config() -> bool:
    """Validate configuration and show error if missing."""
    try:
        get_config()
        return True
    except ConfigError as e:
        st.error(f"Configuration Error\n\n{str(e)}")
        st.info(
            "Please create a `.env` file in the project root with your OpenRouter credentials, "
            "or set NEVRA_BACKEND=echo for offline use. See `.env.example` for reference."
        )
        return False


def images_to_data_uris(uploads) -> list:
    uris = []
    for upload in uploads or []:
        encoded = base64.b64encode(upload.getvalue()).decode("ascii")
        uris.append(f"data:{upload.type};base64,{encoded}")
    return uris


def display_chat_history(session: ChatSession):
    """Display the rolling chat history."""
    turns = session.history_snapshot()
    if not turns:
        st.info("No conversation yet. Ask a question or describe an app to build.")
        return

    for turn in turns:
        with st.chat_message(turn.role):
            st.markdown(turn.text)
            for image in turn.images:
                st.image(image, width=160)


def display_code(session: ChatSession):
    """Editable project files, one tab per file; saving refreshes the preview."""
    files = session.store.get_all()
    if not files:
        st.warning("No files were generated.")
        return

    tabs = st.tabs([f.path for f in files])
    for tab, project_file in zip(tabs, files):
        with tab:
            if project_file.path == session.store.entry_path:
                st.caption(f"Entry file ({guess_language_from_filename(project_file.path)})")
            edited = st.text_area(
                "Source",
                value=project_file.content,
                height=480,
                key=f"editor_{session.session_id}_{session.preview_id}_{project_file.path}",
                label_visibility="collapsed",
            )
            if st.button("Save", key=f"save_{session.session_id}_{project_file.path}"):
                try:
                    apply_edit(session, project_file.path, edited)
                except (ProjectStoreError, TurnInProgressError) as e:
                    st.error(f"Error: {str(e)}")
                    return
                st.rerun()


def create_download_button(session: ChatSession, query: str):
    """Create a download button for the project as a ZIP file."""
    if not len(session.store):
        return

    st.download_button(
        label="Download as ZIP",
        data=session.store.to_zip(),
        file_name=f"{safe_project_name(query)}.zip",
        mime="application/zip",
        use_container_width=True,
    )


def display_preview(session: ChatSession):
    """Embed the latest preview in a sandboxed iframe."""
    if session.preview is None:
        st.info("The preview appears here after the first build.")
        return

    entry = get_registry().get_by_session(session.session_id)
    if entry is not None:
        st.caption(f"Preview expires in {entry.time_remaining_formatted()}")
    components.html(embed_iframe(session.preview, height=640), height=660, scrolling=True)


def display_turn_meta(result: dict):
    """Show which provider served the last turn and any failover."""
    if not result:
        return
    if result.get("provider"):
        caption = f"Mode: **{result['mode'].value}** | Served by: **{result['provider']}**"
        if result.get("substituted"):
            caption += " (substituted after failover)"
        st.caption(caption)
    if result.get("errors"):
        with st.expander("Attempt details"):
            for attempt in result.get("attempts", []):
                st.write(f"- {attempt.provider} ({attempt.budget}): {attempt.outcome} {attempt.detail or ''}")


def handle_chat():
    """Chat input and turn execution."""
    session: ChatSession = st.session_state.session

    display_chat_history(session)
    display_turn_meta(st.session_state.last_result)

    uploads = st.file_uploader(
        "Attach images (optional)",
        type=["png", "jpg", "jpeg", "webp"],
        accept_multiple_files=True,
        key=f"uploads_{session.session_id}",
    )
    prompt = st.chat_input("Ask a question or describe an app to build")

    if prompt:
        if not st.session_state.first_prompt:
            st.session_state.first_prompt = prompt
        with st.spinner("Thinking..."):
            try:
                st.session_state.last_result = handle_send(
                    session,
                    prompt,
                    images=images_to_data_uris(uploads),
                    chat_store=st.session_state.chat_store,
                    mode_override=st.session_state.mode_override,
                )
            except TurnInProgressError as e:
                st.warning(str(e))
                return
            except ValueError as e:
                st.error(f"Error: {str(e)}")
                return
        st.rerun()


def main():
    """Main application entry point."""
    configure_logging()

    st.markdown('<p class="main-header">Nevra</p>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Learn with a tutor or build a web app with a live preview</p>',
        unsafe_allow_html=True
    )

    if not validate_config():
        return

    init_session_state()

    session: ChatSession = st.session_state.session

    with st.sidebar:
        st.header("Provider")
        providers = list_providers()
        provider_ids = [p.id for p in providers]
        selected = st.selectbox(
            "Model",
            options=provider_ids,
            index=provider_ids.index(session.provider_id) if session.provider_id in provider_ids else 0,
            format_func=lambda pid: next(p.display_name for p in providers if p.id == pid),
        )
        session.provider_id = selected

        st.header("Mode")
        mode_label = st.radio(
            "Response mode",
            options=list(MODE_OPTIONS),
            help="Auto picks tutor or builder from your message",
        )
        st.session_state.mode_override = MODE_OPTIONS[mode_label]
        st.caption(f"Last turn: {session.mode.value}")

        framework_label = st.selectbox(
            "Framework",
            options=list(FRAMEWORK_OPTIONS),
            index=list(FRAMEWORK_OPTIONS.values()).index(session.framework),
        )
        session.framework = FRAMEWORK_OPTIONS[framework_label]

        st.divider()

        st.header("Session Info")
        st.write(f"Messages: {len(session.history)}")
        st.write(f"Files: {len(session.store)}")
        st.write(f"Usage: {get_usage_ledger().snapshot()}")

        st.divider()

        if st.button("New Chat", use_container_width=True):
            reset_session()
            st.rerun()

    chat_col, output_col = st.columns([1, 1])

    with chat_col:
        st.subheader("Conversation")
        handle_chat()

    with output_col:
        create_download_button(session, st.session_state.first_prompt)
        preview_tab, code_tab = st.tabs(["Preview", "Code"])
        with preview_tab:
            display_preview(session)
        with code_tab:
            display_code(session)


if __name__ == "__main__":
    main()
