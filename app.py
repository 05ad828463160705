# app.py
# -----------------------------------------------
# ⏱️ Time tracker dashboard (Streamlit)
# -----------------------------------------------
# Requires: streamlit, pandas. Same JSON log and lock as the CLI.
# Run: streamlit run app.py

from datetime import date, timedelta

import streamlit as st
from dotenv import load_dotenv

from cli import publish_status, run_transition
from config import Settings
from domain import CorruptStoreError, DayRecord, InvalidTransitionError, LockTimeoutError, PersistenceError
from notifier import build_notifier
from repository import DayLogStore
from services import Action, WorkHoursCalculator, breaks_duration_hours, is_clocked_in, is_on_break, now_local
from utils import filter_since, format_hours, log_to_dataframe, weekly_summary_dataframe

load_dotenv()

# =========================
# Settings
# =========================
APP_TITLE = "Time tracker"
HISTORY_WEEKS = 8

settings = Settings.from_env()
store = DayLogStore(settings.log_file, lock_timeout=settings.lock_timeout)
calc = WorkHoursCalculator(settings.daily_hours, settings.weekly_hours)

st.set_page_config(page_title=APP_TITLE, page_icon="⏱️", layout="centered")
st.title(f"⏱️ {APP_TITLE}")
st.caption(f"Log: {store.path}")


def _flash_if_any():
    msg = st.session_state.pop("_flash", None)
    if msg:
        level, text = msg
        getattr(st, level)(text)


def _do(command: str):
    try:
        result = run_transition(store, command)
    except InvalidTransitionError as e:
        st.session_state["_flash"] = ("warning", str(e))
    except (LockTimeoutError, PersistenceError) as e:
        st.session_state["_flash"] = ("error", str(e))
    else:
        level = "info" if result.action is Action.ALREADY_CLOCKED_IN else "success"
        st.session_state["_flash"] = (level, result.message)
        publish_status(build_notifier(settings), result, settings.status_ttl_seconds)
    st.rerun()


# =========================
# Today
# =========================
try:
    log = store.load()
except CorruptStoreError as e:
    st.error(f"The time log is corrupt: {e}. Run any CLI transition to move it aside and start over.")
    st.stop()

today = now_local().date()
record = log.get(today.isoformat(), DayRecord())

_flash_if_any()
st.subheader(f"Today · {today.strftime('%d/%m/%Y')}")
if record.clock_out is not None:
    st.markdown(f"**Done for the day** · {format_hours(record.hours_worked or 0.0)} worked")
elif is_on_break(record):
    st.markdown(f"**On break** since {record.open_break.break_start.strftime('%H:%M')}")
elif is_clocked_in(record):
    st.markdown(f"**Working** since {record.clock_in.strftime('%H:%M')}")
else:
    st.markdown("**Not clocked in**")
if record.breaks:
    st.caption(f"Breaks: {len(record.breaks)} · {format_hours(breaks_duration_hours(record))}")

c1, c2, c3 = st.columns(3)
if c1.button("Clock in", use_container_width=True, disabled=record.clock_in is not None):
    _do("clock-in")
if c2.button("End break" if is_on_break(record) else "Break", use_container_width=True):
    _do("break")
if c3.button("Clock out", use_container_width=True, disabled=not is_clocked_in(record)):
    _do("clock-out")

# =========================
# 🗓️ History
# =========================
st.subheader("🗓️ History")
recent = filter_since(log, today - timedelta(weeks=HISTORY_WEEKS))
df = log_to_dataframe(recent, calc)
if df.empty:
    st.info("No entries yet.")
else:
    st.dataframe(df, use_container_width=True, hide_index=True)

# =========================
# 📅 Weekly summary
# =========================
st.subheader("📅 Weekly summary")
weeks = weekly_summary_dataframe(recent, calc)
for _, row in weeks.iterrows():
    start = date.fromisoformat(row["From"]).strftime("%d/%m/%Y")
    end = date.fromisoformat(row["To"]).strftime("%d/%m/%Y")
    with st.expander(f"{start} – {end} · {format_hours(row['Hours'])}", expanded=False):
        st.markdown(f"- **Days worked**: {row['Days']}")
        st.markdown(f"- **Total hours**: {format_hours(row['Hours'])}")
        if row["Overtime (weekly)"] > 0:
            st.markdown(f"- **Over {settings.weekly_hours:g} h**: {format_hours(row['Overtime (weekly)'])}")
