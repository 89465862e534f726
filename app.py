# app.py — Streamlit UI (imports hsf + helpers + io_utils)
import traceback

import numpy as np
import pandas as pd
import streamlit as st

import hsf
from backend import DECILES, HSFError, P_ADJUST_METHODS
from helpers import describe_hsf, update_parsed_counts
import io_utils as io_utils  # provides parse_table_from_text, read_table_from_bytes, trial_table_from_frame

st.set_page_config(page_title="Shift functions", layout="wide")
st.title("Hierarchical shift functions")

ANALYSES = {
    "Hierarchical shift function": "hsf",
    "Hierarchical shift function (bootstrap)": "hsf_pb",
    "Shift function (two independent groups)": "sf_pb",
    "Difference asymmetry function": "daf",
}

ANALYSIS_DESCRIPTIONS = {
    "hsf": (
        "For each participant, the deciles of two conditions are estimated and subtracted. At each decile, "
        "the participants' differences are tested with a one-sample test on trimmed means, and the p-values "
        "are corrected for multiple comparisons across deciles."
    ),
    "hsf_pb": (
        "Same individual shift functions, with a hierarchical percentile bootstrap: participants are sampled "
        "with replacement, then trials within each participant and condition. Intervals are percentile "
        "intervals or highest-density intervals of the bootstrap trimmed means."
    ),
    "sf_pb": (
        "Shift function for two independent groups (all rows treated as one participant). Trials are "
        "resampled within each condition."
    ),
    "daf": (
        "Difference asymmetry function: q(p) + q(1 - p) of the distribution of all pairwise differences "
        "between the two conditions (or of paired differences). Zero everywhere for a distribution of "
        "differences symmetric about zero."
    ),
}

UPLOAD_HINT = "Upload CSV/XLS/XLSX in long format: one row per trial with response, condition and participant columns."

# Protect against huge uploads (simple safeguard)
MAX_UPLOAD_BYTES = 8 * 1024 * 1024  # 8 MB

# Sidebar
with st.sidebar:
    st.header("Analysis")
    analysis_label = st.selectbox("Method", list(ANALYSES.keys()), index=0)
    analysis = ANALYSES[analysis_label]
    st.markdown("---")
    header_override = st.selectbox("Header detection override", list(io_utils.HEADER_MODES))

# canonical session keys
for k, default in {
    "df_uploaded": None,
    "paste_text": "",
    "df_from_paste": None,
    "input_mode": None,
}.items():
    if k not in st.session_state:
        st.session_state[k] = default


# --- generate callback: safe to modify session_state inside this function ---
def generate_sample_data():
    rng = np.random.default_rng()
    rows = []
    for pid in range(1, 16):
        mu = rng.normal(500.0, 50.0)
        for cond, shift in (("A", 0.0), ("B", 30.0)):
            # ex-Gaussian reaction times; the shift grows with the right tail
            rt = rng.normal(mu, 40.0, size=100) + rng.exponential(100.0 + shift, size=100) + shift / 2.0
            rows.extend(f"{v:.1f},{cond},P{pid:02d}" for v in rt)
    st.session_state["paste_text"] = "\n".join(["rt,condition,participant"] + rows)
    try:
        df_parsed, _ = io_utils.parse_table_from_text(st.session_state["paste_text"], header_override="Force header")
        st.session_state["df_from_paste"] = df_parsed.copy()
    except Exception:
        st.session_state["df_from_paste"] = None


left_col, right_col = st.columns([2, 1])

with left_col:
    st.subheader(analysis_label)
    st.markdown(ANALYSIS_DESCRIPTIONS[analysis])

    input_mode = st.radio("Input mode", ["Upload file", "Paste data"], horizontal=True, key="input_mode")

    if input_mode == "Upload file":
        uploaded_file = st.file_uploader(UPLOAD_HINT, type=["csv", "tsv", "txt", "xls", "xlsx"], key="uploader_main")
        if uploaded_file is not None:
            try:
                content = uploaded_file.getvalue()
                if len(content) > MAX_UPLOAD_BYTES:
                    st.error(f"File too large ({len(content) / 1e6:.1f} MB); the limit is {MAX_UPLOAD_BYTES / 1e6:.0f} MB.")
                    st.session_state["df_uploaded"] = None
                else:
                    df_new, _ = io_utils.read_table_from_bytes(content, uploaded_file.name, header_override=header_override)
                    st.session_state["df_uploaded"] = df_new.copy()
            except Exception as e:
                st.error(f"Error reading uploaded file: {e}")
                st.session_state["df_uploaded"] = None
                with st.expander("Traceback (debug)", expanded=False):
                    st.code(traceback.format_exc())
        df_raw = st.session_state.get("df_uploaded")
    else:
        st.markdown("Paste a table (tab, comma or space separated), one row per trial.")
        st.text_area("Data", key="paste_text", height=200)
        st.button("Generate sample data", on_click=generate_sample_data)
        current_text = st.session_state.get("paste_text", "")
        if current_text.strip():
            try:
                df_parsed, _ = io_utils.parse_table_from_text(current_text, header_override=header_override)
                st.session_state["df_from_paste"] = df_parsed.copy()
            except Exception as e:
                st.error(f"Could not parse pasted data: {e}")
                st.session_state["df_from_paste"] = None
        df_raw = st.session_state.get("df_from_paste")

    design = None
    todo = None
    if df_raw is not None and df_raw.shape[1] >= 3:
        try:
            guess = io_utils.guess_design(df_raw)
        except HSFError:
            guess = hsf.TrialDesign(*[str(c) for c in df_raw.columns[:3]])
        columns = [str(c) for c in df_raw.columns]
        c1, c2, c3 = st.columns(3)
        response = c1.selectbox("Response column", columns, index=columns.index(guess.response))
        condition = c2.selectbox("Condition column", columns, index=columns.index(guess.condition))
        participant = c3.selectbox("Participant column", columns, index=columns.index(guess.participant))
        design = hsf.TrialDesign(response=response, condition=condition, participant=participant)
        levels = [str(v) for v in pd.unique(df_raw[condition].dropna().astype(str))]
        if len(levels) >= 2:
            c4, c5 = st.columns(2)
            minuend = c4.selectbox("Minuend condition", levels, index=0)
            subtrahend = c5.selectbox("Subtrahend condition", [lv for lv in levels if lv != minuend], index=0)
            todo = (minuend, subtrahend)
    elif df_raw is not None:
        st.warning("The table needs at least three columns: response, condition and participant.")

with right_col:
    st.subheader("Parameters")
    alpha = st.number_input("Alpha level", min_value=1e-6, max_value=0.5, value=0.05, step=0.01, format="%.3f")
    adj_method = st.selectbox(
        "Multiple-comparison correction",
        [m for m in P_ADJUST_METHODS if not m.startswith("fdr_")],
        index=0,
    )
    qtype_label = st.selectbox("Quantile estimator", ["Type 8 (median-unbiased)", "Type 7 (linear)", "Harrell-Davis"])
    qtype = {"Type 8 (median-unbiased)": 8, "Type 7 (linear)": 7, "Harrell-Davis": "hd"}[qtype_label]

    if analysis == "daf":
        qseq_text = st.text_input("Quantiles (below 0.5)", value=", ".join(f"{q:g}" for q in hsf.ASYMMETRY_QSEQ))
        paired = st.checkbox("Paired observations (rows matched by order within each condition)", value=False)
    else:
        qseq_text = st.text_input("Quantiles", value=", ".join(f"{q:g}" for q in DECILES))
    if analysis in ("hsf", "hsf_pb"):
        tr = st.number_input("Trim proportion", min_value=0.0, max_value=0.45, value=0.2, step=0.05, format="%.2f")
    if analysis != "hsf":
        nboot = st.number_input("Bootstrap samples", min_value=100, max_value=hsf.MAX_NBOOT, value=1000, step=100)
        seed = st.number_input("Random seed", min_value=0, value=21, step=1)
    if analysis in ("hsf_pb", "sf_pb"):
        interv = st.radio("Interval", ["ci", "hdi"], horizontal=True,
                          format_func=lambda v: "Percentile" if v == "ci" else "Highest density")
    if analysis in ("hsf", "hsf_pb"):
        null_value = st.number_input("Null value", value=0.0, format="%.6f")

    st.markdown("---")
    run_button = st.button("Run analysis")

results_placeholder = st.empty()


if run_button:
    try:
        if design is None:
            raise HSFError("No usable data: provide a table with response, condition and participant columns.")
        qseq = [float(tok) for tok in qseq_text.replace(";", ",").split(",") if tok.strip()]
        trials = io_utils.trial_table_from_frame(df_raw, design)
        if todo is None:
            raise HSFError(f"Condition column {design.condition!r} needs at least two levels.")

        if analysis == "hsf":
            result = hsf.hsf(trials, design, qseq=qseq, tr=tr, alpha=alpha, qtype=qtype, todo=todo,
                             null_value=null_value, adj_method=adj_method)
        elif analysis == "hsf_pb":
            result = hsf.hsf_pb(trials, design, qseq=qseq, tr=tr, alpha=alpha, qtype=qtype, todo=todo,
                                null_value=null_value, adj_method=adj_method, nboot=int(nboot),
                                interv=interv, seed=int(seed), n_jobs=-1)
        else:
            x = trials.loc[trials[design.condition] == todo[0], design.response].to_numpy()
            y = trials.loc[trials[design.condition] == todo[1], design.response].to_numpy()
            if analysis == "sf_pb":
                result = hsf.shift_function_pb(x, y, qseq=qseq, alpha=alpha, qtype=qtype, adj_method=adj_method,
                                               nboot=int(nboot), interv=interv, seed=int(seed), n_jobs=-1)
            else:
                result = hsf.difference_asymmetry_pb(x, y, paired=paired, qseq=qseq, alpha=alpha, qtype=qtype,
                                                     adj_method=adj_method, nboot=int(nboot), seed=int(seed),
                                                     n_jobs=-1)

        with results_placeholder.container():
            st.markdown("## Results")
            for w in getattr(result, "warnings", ()):
                st.warning(w)
            if analysis != "daf":
                st.caption(f"Differences are {todo[0]} minus {todo[1]}.")

            st.markdown("### Group-level results")
            st.dataframe(result.to_frame(), use_container_width=True)

            st.markdown("### Plain-language summary")
            st.write(describe_hsf(result))

            if analysis in ("hsf", "hsf_pb"):
                st.markdown("### Individual shift functions")
                st.dataframe(result.individual_frame(), use_container_width=True)

            st.markdown("### Data summary")
            st.json(update_parsed_counts(trials, design) or {}, expanded=False)

    except HSFError as e:
        st.error(f"Error: {e}")
    except Exception as e:
        st.error(f"Error: {e}")
        st.subheader("Traceback (debug)")
        st.code(traceback.format_exc())
