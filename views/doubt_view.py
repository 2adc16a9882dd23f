import logging

import streamlit as st

import auth
from services import doubt_service
from utils import session_manager

log = logging.getLogger(__name__)


def _render_message(message):
    with st.chat_message("user" if message.sender == "user" else "assistant"):
        if message.text:
            st.write(message.text)
        if message.image:
            st.image(message.image)
        if message.references:
            st.caption(" · ".join(f"[{r['title']}]({r['url']})" for r in message.references))


def _send(runtime, text, image=None, anonymous=False):
    snapshot = runtime.snapshot
    try:
        bubbles = runtime.run(doubt_service.submit_doubt(
            runtime.provider, snapshot.user, snapshot.profile, text, image=image, anonymous=anonymous,
        ))
    except auth.SessionError as e:
        log.warning("Doubt submission failed: %s", e)
        st.error(str(e))
        return False
    st.session_state.doubt_messages.extend(bubbles)
    return True


def render_doubt():
    runtime = session_manager.get_runtime()
    st.title("Ask a doubt")
    anonymous = st.toggle("Ask anonymously", value=False)

    messages = st.session_state.doubt_messages
    if not messages:
        st.caption("Try one of these:")
        cols = st.columns(len(doubt_service.SUGGESTIONS))
        for col, suggestion in zip(cols, doubt_service.SUGGESTIONS):
            if col.button(suggestion, use_container_width=True):
                if _send(runtime, suggestion, anonymous=anonymous):
                    st.rerun()

    for message in messages:
        _render_message(message)

    image_url = st.text_input("Image URL (optional)", key="doubt_image_url")
    prompt = st.chat_input("Type your question...")
    if prompt:
        with st.spinner(doubt_service.PENDING_ANSWER):
            sent = _send(runtime, prompt, image=image_url or None, anonymous=anonymous)
        if sent:
            st.rerun()
