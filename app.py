#!/usr/bin/env python3
"""
Run instructions
- Install the project (optional virtualenv first):
    pip install -e .
- Point the client at the FitManager API, either with an environment variable
    export FITMANAGER_API_URL=http://localhost:5000/api
  or in .streamlit/secrets.toml:
    FITMANAGER_API_URL = "http://localhost:5000/api"
- Run the app:
    streamlit run app.py

Notes
- Each browser session keeps its own token in st.session_state. For a single-user local run,
  FITMANAGER_PERSIST_TOKEN=1 keeps it in ~/.fitmanager/session.json (FITMANAGER_STATE_PATH)
  so a restart keeps you logged in. Logging out, a rejected token or deleting the account
  removes it.
- Day buckets use FITMANAGER_TZ when set, otherwise the machine's local timezone.
- Every change (add, delete, profile update) is followed by a fresh read from the API.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

import pytz
import streamlit as st

from fitmanager import config, configure_logging
from fitmanager.aggregator import daily_series, macro_series, progress_fraction, today_total
from fitmanager.charts import make_hydration_chart, make_macros_chart, make_macros_pie, make_weight_chart
from fitmanager.context import AppContext, build_context
from fitmanager.errors import AuthenticationError, FitManagerError, TransportError, ValidationError
from fitmanager.models import SEX_CHOICES, PendingAction, Policy, UserProfile
from fitmanager.repository import MetricRepository
from fitmanager.session import FileTokenStorage, SessionStateTokenStorage

configure_logging()
logger = logging.getLogger("fitmanager.app")

# -------------------------------
# Configuration and constants
# -------------------------------
try:
    API_URL = str(st.secrets["FITMANAGER_API_URL"]).rstrip("/")
except Exception:
    # no secrets.toml, or the key is absent
    API_URL = config.API_URL

PAGES = ["Dashboard", "Weight", "Hydration", "Macros", "Profile"]
GENERIC_ERROR = "Something went wrong. Please try later."


def _navigate_to_login() -> None:
    st.session_state["page"] = "Dashboard"
    st.session_state["flash"] = "Your session has ended. Please log in again."


def _token_storage():
    if config.PERSIST_TOKEN:
        return FileTokenStorage(config.STATE_PATH)
    return SessionStateTokenStorage(st.session_state)


def get_context() -> AppContext:
    if "ctx" not in st.session_state:
        st.session_state.ctx = build_context(
            storage=_token_storage(),
            base_url=API_URL,
            navigate_to_login=_navigate_to_login,
        )
    return st.session_state.ctx


def _force_login(message: Optional[str] = None) -> None:
    ctx = get_context()
    ctx.session.logout()
    _navigate_to_login()
    if message:
        st.session_state["flash"] = message
    st.rerun()


def _format_when(ts: datetime) -> str:
    return ts.astimezone(config.LOCAL_TZ).strftime("%Y-%m-%d %H:%M")


# -------------------------------
# Data access helpers
# -------------------------------

def load_entries(repo: MetricRepository) -> List:
    """
    Fresh entries for a page: the snapshot left by the last mutation if there is one,
    otherwise a new read. A failed read is shown as "no data".
    """
    snapshot = st.session_state.pop(f"snapshot_{repo.kind.name}", None)
    if snapshot is not None:
        return snapshot.entries
    try:
        return repo.list()
    except AuthenticationError:
        _force_login()
    except TransportError as e:
        logger.error("Could not load %s entries: %s", repo.kind.name, e)
        st.warning("Could not load your data right now. Try again later.")
    return []


def run_mutation(repo: MetricRepository, action, success: Optional[str] = None) -> bool:
    """Run a repository mutation, keep the refreshed snapshot and rerun the page."""
    try:
        snapshot = action()
    except ValidationError as e:
        st.error(f"Invalid value: {e}")
        return False
    except AuthenticationError:
        _force_login()
        return False
    except TransportError as e:
        logger.error("%s mutation failed: %s", repo.kind.name, e)
        st.error(GENERIC_ERROR)
        return False
    st.session_state[f"snapshot_{repo.kind.name}"] = snapshot
    if success:
        st.session_state["flash_success"] = success
    st.rerun()
    return True


# -------------------------------
# Authentication UI
# -------------------------------

def render_auth_ui() -> None:
    ctx = get_context()
    st.markdown("### Welcome to FitManager")
    st.markdown("**Track your weight, hydration and macros in one place.**")
    flash = st.session_state.pop("flash", None)
    if flash:
        st.info(flash)

    tab1, tab2 = st.tabs(["Login", "Sign Up"])

    with tab1:
        st.markdown("#### Login to Your Account")
        login_username = st.text_input("Username", key="login_username")
        login_password = st.text_input("Password", type="password", key="login_password")
        if st.button("Login", key="login_btn"):
            if login_username and login_password:
                try:
                    ctx.auth.login(login_username, login_password)
                    st.session_state["page"] = "Dashboard"
                    st.rerun()
                except AuthenticationError:
                    st.error("Invalid username or password.")
                except TransportError as e:
                    logger.error("Login failed: %s", e)
                    st.error(GENERIC_ERROR)
            else:
                st.error("Please enter both username and password.")

    with tab2:
        st.markdown("#### Create New Account")
        signup_username = st.text_input("Username", key="signup_username")
        signup_email = st.text_input("Email", key="signup_email")
        signup_password = st.text_input("Password", type="password", key="signup_password")
        signup_confirm = st.text_input("Confirm Password", type="password", key="signup_confirm")
        if st.button("Sign Up", key="signup_btn"):
            if not (signup_username and signup_email and signup_password and signup_confirm):
                st.error("Please fill in all fields.")
            elif signup_password != signup_confirm:
                st.error("Passwords don't match.")
            else:
                try:
                    ctx.auth.register(signup_username, signup_email, signup_password)
                    st.session_state["page"] = "Dashboard"
                    st.rerun()
                except ValidationError as e:
                    st.error(f"Sign up failed: {e}")
                except FitManagerError as e:
                    logger.error("Registration failed: %s", e)
                    st.error(GENERIC_ERROR)


def render_header() -> None:
    ctx = get_context()
    col1, col2 = st.columns([3, 1])
    with col1:
        st.session_state["page"] = st.radio(
            "Go to", PAGES, index=PAGES.index(st.session_state.get("page", "Dashboard")), horizontal=True
        )
    with col2:
        if st.button("Logout", use_container_width=True):
            ctx.session.logout()
            st.session_state.clear()
            st.rerun()
    success = st.session_state.pop("flash_success", None)
    if success:
        st.success(success)
    st.markdown("---")


# -------------------------------
# Pages
# -------------------------------

def render_dashboard() -> None:
    ctx = get_context()
    try:
        summary = ctx.dashboard.load()
    except AuthenticationError:
        _force_login("Please log in again.")
        return

    profile = summary.profile
    st.subheader(f"Welcome, {profile.username or 'athlete'}")
    c1, c2, c3 = st.columns(3)
    with c1:
        st.metric("Last weight measure", f"{summary.weight_label} kg")
        st.caption(f"Target: {profile.target_weight if profile.target_weight else 'N/A'} kg")
    with c2:
        st.metric("Hydration today", f"{summary.today_hydration:.0f} ml")
        st.progress(summary.hydration_progress)
        st.caption(f"It should be at least {config.HYDRATION_DAILY_GOAL:.0f}")
    with c3:
        st.plotly_chart(make_macros_pie(summary.latest_macros, summary.has_macros), use_container_width=True)

    st.markdown("#### User Profile")
    p1, p2 = st.columns(2)
    with p1:
        st.write(f"**Email:** {profile.email}")
        st.write(f"**Date of Birth:** {profile.date_of_birth or 'N/A'}")
        st.write(f"**Sex:** {profile.sex or 'N/A'}")
    with p2:
        st.write(f"**Height:** {profile.height or 'N/A'} cm")
        st.write(f"**Initial weight:** {profile.initial_weight or 'N/A'} kg")
        st.write(f"**Workouts x week:** {profile.workouts_per_week or 'N/A'}")


def _render_entry_list(repo: MetricRepository, entries: List, describe, empty_text: str) -> None:
    if not entries:
        st.info(empty_text)
        return
    for entry in entries:
        col1, col2 = st.columns([4, 1])
        with col1:
            st.write(f"{_format_when(entry.timestamp)} - **{describe(entry)}**")
        with col2:
            if st.button("Delete", key=f"del_{repo.kind.name}_{entry.id}", use_container_width=True):
                run_mutation(repo, lambda entry_id=entry.id: repo.delete_by_id(entry_id), "Entry deleted")


def render_weight() -> None:
    ctx = get_context()
    repo = ctx.weights
    st.subheader("Weight")
    weight = st.text_input("Enter weight (kg)", key="weight_input")
    if st.button("Add", key="weight_add"):
        run_mutation(repo, lambda: repo.create({"weight": weight}), "Weight saved")

    entries = load_entries(repo)
    target = None
    try:
        target = ctx.profiles.fetch().target_weight
    except AuthenticationError:
        _force_login()
    except TransportError as e:
        logger.warning("Target weight unavailable: %s", e)

    st.markdown("#### Daily Weights")
    st.plotly_chart(make_weight_chart(daily_series(entries, Policy.LAST), target), use_container_width=True)
    st.markdown("#### Weight Entries")
    _render_entry_list(repo, entries, lambda e: f"{e.value:g} kg", "No weights recorded yet.")


def render_hydration() -> None:
    ctx = get_context()
    repo = ctx.hydrations
    st.subheader("Hydration")
    col1, col2 = st.columns(2)
    with col1:
        if st.button(f"+{config.HYDRATION_STEP:.0f}", use_container_width=True):
            run_mutation(repo, lambda: repo.create({"amount": config.HYDRATION_STEP}))
    with col2:
        if st.button(f"-{config.HYDRATION_STEP:.0f}", use_container_width=True):
            run_mutation(repo, repo.delete_most_recent)

    entries = load_entries(repo)
    total = today_total(entries, now=datetime.now(tz=pytz.utc))
    st.markdown("#### Today's Progress")
    st.metric("Today", f"{total:.0f} ml")
    st.progress(progress_fraction(total, config.HYDRATION_MAX))
    st.caption(f"Max: {config.HYDRATION_MAX:.0f} ml")

    st.markdown("#### Daily Totals")
    st.plotly_chart(make_hydration_chart(daily_series(entries, Policy.SUM)), use_container_width=True)
    st.markdown("#### Hydration Entries")
    _render_entry_list(repo, entries, lambda e: f"{e.value:g} ml", "No hydration entries recorded yet.")


def render_macros() -> None:
    ctx = get_context()
    repo = ctx.macros
    st.subheader("Macros")
    c1, c2, c3 = st.columns(3)
    with c1:
        protein = st.text_input("Protein (g)", key="macro_protein")
    with c2:
        carbs = st.text_input("Carbs (g)", key="macro_carbs")
    with c3:
        fats = st.text_input("Fats (g)", key="macro_fats")
    if st.button("Add", key="macro_add"):
        if not (protein or carbs or fats):
            st.error("Please insert at least one value")
        else:
            run_mutation(repo, lambda: repo.create({"protein": protein, "carbs": carbs, "fats": fats}), "Macros saved")

    entries = load_entries(repo)
    st.markdown("#### Macros Trend")
    st.plotly_chart(make_macros_chart(macro_series(entries)), use_container_width=True)
    st.markdown("#### Macros Entries")
    _render_entry_list(
        repo,
        entries,
        lambda e: f"{e.protein:g}g Protein, {e.carbs:g}g Carbs, {e.fats:g}g Fats",
        "No macros recorded yet.",
    )


def _render_reauth_form() -> None:
    ctx = get_context()
    gate = ctx.gate
    label = "save your profile" if gate.pending is PendingAction.UPDATE else "delete your account"
    st.warning(f"Re-authenticate to {label}.")
    username = st.text_input("Username", key="reauth_username")
    password = st.text_input("Password", type="password", key="reauth_password")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Cancel", use_container_width=True):
            gate.cancel()
            st.rerun()
    with col2:
        if st.button("Confirm", type="primary", use_container_width=True):
            deleting = gate.pending is PendingAction.DELETE
            try:
                gate.confirm(username, password)
            except ValidationError as e:
                st.error(f"Invalid profile values: {e}")
                return
            except AuthenticationError:
                if not ctx.session.is_authenticated:
                    st.rerun()
                st.error("Invalid credentials")
                return
            except TransportError as e:
                logger.error("Gated action failed: %s", e)
                st.error("Error deleting account" if deleting else "Error updating profile")
                return
            finally:
                for key in ("reauth_username", "reauth_password"):
                    st.session_state.pop(key, None)
            if deleting:
                st.session_state["flash"] = "Account deleted"
            else:
                st.session_state["flash_success"] = "Profile updated!"
            st.rerun()


def render_profile() -> None:
    ctx = get_context()
    st.subheader("User Profile")
    try:
        profile = ctx.profiles.fetch()
    except AuthenticationError:
        _force_login()
        return
    except TransportError as e:
        logger.error("Could not load profile: %s", e)
        st.error("Error loading profile")
        return

    if ctx.gate.awaiting_confirmation:
        _render_reauth_form()
        return

    with st.form("profile_form"):
        c1, c2 = st.columns(2)
        with c1:
            username = st.text_input("Username", value=profile.username)
            dob = st.text_input("Date of Birth (YYYY-MM-DD)", value=profile.date_of_birth or "")
            height = st.number_input("Height (cm)", value=float(profile.height or 0.0), min_value=0.0)
            target_weight = st.number_input("Target Weight (kg)", value=float(profile.target_weight or 0.0), min_value=0.0)
        with c2:
            st.text_input("Email", value=profile.email, disabled=True)
            sex_options = [""] + list(SEX_CHOICES)
            sex = st.selectbox("Sex", sex_options, index=sex_options.index(profile.sex))
            initial_weight = st.number_input("Initial Weight (kg)", value=float(profile.initial_weight or 0.0), min_value=0.0)
            workouts = st.number_input("Workouts per Week", value=int(profile.workouts_per_week or 0), min_value=0, step=1)
        submitted = st.form_submit_button("Save Changes", use_container_width=True)

    if submitted:
        updated = UserProfile(
            username=username,
            email=profile.email,
            date_of_birth=dob or None,
            sex=sex,
            height=height or None,
            initial_weight=initial_weight or None,
            target_weight=target_weight or None,
            workouts_per_week=workouts or None,
        )
        ctx.gate.request_action(PendingAction.UPDATE, updated.to_update_payload())
        st.rerun()

    if st.button("Delete Account", type="primary", use_container_width=True):
        ctx.gate.request_action(PendingAction.DELETE)
        st.rerun()


RENDERERS = {
    "Dashboard": render_dashboard,
    "Weight": render_weight,
    "Hydration": render_hydration,
    "Macros": render_macros,
    "Profile": render_profile,
}


# Main UI
def main():
    st.set_page_config(page_title="FitManager", layout="wide")
    st.title("FitManager")
    st.caption("Weight, hydration and macros at a glance.")

    ctx = get_context()
    if not ctx.session.is_authenticated:
        render_auth_ui()
        return

    render_header()
    RENDERERS[st.session_state.get("page", "Dashboard")]()


# Call the Streamlit app entrypoint when the script is executed by Streamlit
main()
