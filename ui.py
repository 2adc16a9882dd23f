import streamlit as st

LEVEL_COLORS = {
    "success": "#16a34a",
    "warning": "#d97706",
    "error": "#dc2626",
}


def setup_style():
    st.markdown("""
    <style>
        @import url('https://fonts.googleapis.com/css2?family=Manrope:wght@400;600;700;800&display=swap');

        :root {
            --primary-50: #eef6ff;
            --primary-500: #3b82f6;
            --primary-600: #2563eb;
            --neutral-500: #6b7280;
            --neutral-900: #111827;
            --ease-fluid: cubic-bezier(0.22, 1, 0.36, 1);
        }

        html, body, .stApp {
            font-family: 'Manrope', sans-serif;
            color: var(--neutral-900);
            background: linear-gradient(135deg, var(--primary-50) 0%, #ffffff 50%, #dbeafe 100%);
        }

        .main .block-container {
            padding-top: 1.6rem;
            animation: pageSlideIn 340ms var(--ease-fluid);
        }

        @keyframes pageSlideIn {
            from { opacity: 0; transform: translate3d(0, 12px, 0); }
            to { opacity: 1; transform: translate3d(0, 0, 0); }
        }

        .sh-brand {
            display: flex;
            align-items: center;
            gap: 0.6rem;
            font-weight: 800;
            font-size: 1.15rem;
        }
        .sh-brand-badge {
            width: 2.4rem;
            height: 2.4rem;
            border-radius: 0.6rem;
            display: flex;
            align-items: center;
            justify-content: center;
            color: #fff;
            background: linear-gradient(135deg, var(--primary-500), var(--primary-600));
        }

        .sh-card {
            border-left: 4px solid var(--sh-accent, var(--primary-500));
            border-radius: 0.75rem;
            padding: 0.9rem 1rem;
            margin-bottom: 0.6rem;
            background: #ffffffcc;
            box-shadow: 0 4px 18px rgba(37, 99, 235, 0.08);
        }
        .sh-card-title { font-weight: 700; }
        .sh-card-meta { color: var(--neutral-500); font-size: 0.85rem; }

        .sh-waiting {
            min-height: 60vh;
            display: flex;
            flex-direction: column;
            align-items: center;
            justify-content: center;
            color: var(--neutral-500);
        }
        .sh-spinner {
            width: 3rem;
            height: 3rem;
            border-radius: 50%;
            border-top: 3px solid var(--primary-500);
            border-bottom: 3px solid var(--primary-500);
            animation: shSpin 0.9s linear infinite;
            margin-bottom: 1rem;
        }
        @keyframes shSpin { to { transform: rotate(360deg); } }

        .skeleton-box {
            border-radius: 0.75rem;
            padding: 1rem;
            background: #ffffffaa;
        }
        .skeleton-line {
            height: 0.9rem;
            border-radius: 0.4rem;
            margin-bottom: 0.5rem;
            background: linear-gradient(90deg, #e5e7eb 25%, #f3f4f6 50%, #e5e7eb 75%);
            background-size: 200% 100%;
            animation: shShimmer 1.2s infinite;
        }
        @keyframes shShimmer { to { background-position: -200% 0; } }
    </style>
    """, unsafe_allow_html=True)


def render_brand():
    st.markdown(
        '<div class="sh-brand"><div class="sh-brand-badge">SH</div><span>SchoolHub</span></div>',
        unsafe_allow_html=True,
    )


def render_waiting_screen(message="Loading your dashboard..."):
    """Neutral placeholder while identity is still settling. Never shows protected content."""
    st.markdown(
        f"""
        <div class="sh-waiting">
          <div class="sh-spinner"></div>
          <p>{message}</p>
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_card(title, meta="", body="", level=None):
    accent = LEVEL_COLORS.get(level, "var(--primary-500)")
    st.markdown(
        f"""
        <div class="sh-card" style="--sh-accent: {accent};">
          <div class="sh-card-title">{title}</div>
          <div class="sh-card-meta">{meta}</div>
          <div>{body}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_skeleton_kpis(num_cols=3):
    """Animated placeholders for metric cards."""
    cols = st.columns(num_cols)
    for col in cols:
        with col:
            st.markdown('''
            <div class="skeleton-box">
                <div class="skeleton-line" style="width: 50%;"></div>
                <div class="skeleton-line" style="width: 80%; height: 1.6rem;"></div>
            </div>
            ''', unsafe_allow_html=True)
