import logging
from functools import partial

import streamlit as st

from hns_grades.backend_logic import (
    required_exam_for_target,
    round_2dp_half_up,
    yield_status,
)
from hns_grades import config
from hns_grades.config import LOG_FORMAT, LOG_LEVEL, PASS_MARK
from hns_grades.controller import GradesController
from hns_grades.curriculum import STRUCTURES, SemesterKey
from hns_grades.debounce import PersistenceDebouncer, start_background_loop
from hns_grades.io_csv import (
    parse_scores,
    read_csv_upload,
    results_to_frame,
    scores_to_frame,
    validate_scores_csv,
)
from hns_grades.store import SemesterAverageStore

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

# ------------------------
# Shared resources (one per server process)
# ------------------------

@st.cache_resource
def get_save_loop():
    return start_background_loop()


@st.cache_resource
def get_store():
    return SemesterAverageStore(config.AVERAGES_CSV)


def get_controller(user_id: str) -> GradesController:
    controller = st.session_state.get("controller")
    if controller is not None and controller.user_id == user_id:
        return controller
    if controller is not None:
        controller.close()

    store = get_store()
    debouncer = PersistenceDebouncer(
        get_save_loop(),
        partial(store.save_semester_average_async, user_id),
    )
    controller = GradesController(user_id, debouncer)
    st.session_state["controller"] = controller
    return controller


def widget_key(user_id: str, selected: SemesterKey, *parts: str) -> str:
    # Marks widgets are scoped per user so a new student id starts blank.
    return ":".join([user_id, selected.label, *parts]) + ("" if parts else ":")


@st.fragment(run_every=0.5)
def save_status(controller: GradesController):
    if controller.saving:
        st.caption("Saving…")
    elif controller.save_pending:
        st.caption("Unsaved changes, saving shortly…")


def on_score_change(controller: GradesController, subject_id: str, component: str, key: str):
    controller.set_score(subject_id, component, st.session_state[key])


# ------------------------
# Streamlit UI
# ------------------------

st.set_page_config(
    page_title="HNS Grade Yield Calculator | Weighted Semester Average",
    page_icon="🎓",
    layout="wide",
)

st.title("🎓 HNS Grade Yield Calculator")
st.write(
    "Compute your coefficient-weighted semester average (20-point scale) from "
    "TD, TP and exam marks. Your semester yield is saved automatically a moment "
    "after you stop typing."
)

with st.sidebar:
    user_id = st.text_input("Student id", value="local").strip() or "local"
    semester_labels = [key.label for key in STRUCTURES]
    selected_label = st.selectbox(
        "Semester",
        semester_labels,
        index=semester_labels.index(SemesterKey(2, 1).label),
    )

controller = get_controller(user_id)
selected = SemesterKey.parse(selected_label)
controller.select_semester(selected.year, selected.semester)
result = controller.result

# ------------------------
# Summary
# ------------------------

col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric(f"{selected.label} yield", f"{round_2dp_half_up(result.semester_average):.2f}")
with col2:
    st.metric("Total coefficient", f"{result.total_coefficient:g}")
with col3:
    st.metric("Status", yield_status(result.semester_average))
with col4:
    needed = required_exam_for_target(controller.structure, controller.inputs, PASS_MARK)
    if needed is None:
        st.metric(f"Exam mark needed for {PASS_MARK:g}", "N/A")
    else:
        st.metric(f"Exam mark needed for {PASS_MARK:g}", f"{round_2dp_half_up(needed):.2f}")

save_status(controller)

# ------------------------
# Marks, unit by unit
# ------------------------

st.subheader("1. Enter your marks")

for unit in controller.structure:
    unit_avg = result.unit_averages[unit.id]
    with st.expander(f"{unit.name} · {round_2dp_half_up(unit_avg):.2f} / 20", expanded=True):
        for subject in unit.subjects:
            score = controller.inputs.get(subject.id)
            st.markdown(
                f"**{subject.name}** · Coef {subject.coef:g} · "
                f"average {round_2dp_half_up(result.subject_averages[subject.id]):.2f}"
            )
            components = [c for c, shown in (("td", subject.has_td), ("tp", subject.has_tp), ("exam", True)) if shown]
            columns = st.columns(len(components))
            for column, component in zip(columns, components):
                weight = getattr(subject.weights, component)
                key = widget_key(user_id, selected, subject.id, component)
                with column:
                    st.number_input(
                        f"{component.upper()} ({weight * 100:.0f}%)",
                        min_value=0.0,
                        max_value=20.0,
                        step=0.25,
                        value=getattr(score, component) if score is not None else None,
                        placeholder="00.00",
                        key=key,
                        on_change=on_score_change,
                        args=(controller, subject.id, component, key),
                    )

# ------------------------
# Import / export
# ------------------------

st.subheader("2. Import or export marks")

up1, up2 = st.columns(2)
with up1:
    scores_csv = st.file_uploader(
        "Upload marks CSV (Subject, TD, TP, Exam)",
        type=["csv"],
        key=f"scores_csv_{selected.label}",
    )
    if scores_csv is not None and st.button("Load marks from CSV"):
        try:
            scores = parse_scores(validate_scores_csv(read_csv_upload(scores_csv), controller.structure))
        except Exception as e:
            st.error(f"Marks CSV error: {e}")
        else:
            prefix = widget_key(user_id, selected)
            for key in [k for k in st.session_state if str(k).startswith(prefix)]:
                del st.session_state[key]
            controller.load_scores(scores)
            st.rerun()
with up2:
    st.download_button(
        "Download marks CSV",
        scores_to_frame(controller.structure, controller.inputs).to_csv(index=False),
        file_name=f"marks_{selected.label}.csv",
        mime="text/csv",
    )

st.dataframe(results_to_frame(controller.structure, result), use_container_width=True, hide_index=True)

# ------------------------
# Saved yields
# ------------------------

st.subheader("3. Saved semester yields")
saved = get_store().load_semester_averages(user_id)
if saved:
    cols = st.columns(len(saved))
    for col, (label, average) in zip(cols, saved.items()):
        with col:
            st.metric(label, f"{round_2dp_half_up(average):.2f}")
else:
    st.info("Nothing saved yet. Enter some marks and your yield will be stored automatically.")
