import hashlib
import logging

import altair as alt
import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from imposition_engine import calculate_layout, result_to_dict
from input_utils import collect_inputs, link_bleeds
from job_storage import (
    build_job_payload,
    build_report_data,
    export_filename,
    has_job_info,
    job_file_to_payload,
    layout_to_dxf,
    layout_to_svg,
    normalize_job_info,
    parse_job_payload,
    payload_to_dxf,
    report_to_json,
)
from press_config import (
    CUT_PRESETS,
    DEFAULT_BLEED,
    DEFAULT_CUSTOM_PAPER,
    DEFAULT_CUT_PRESET,
    DEFAULT_PAPER_PRESET,
    DEFAULT_PIECE,
    DEFAULT_SPACING,
    DEFAULT_UNIT,
    LOG_FORMAT,
    LOG_LEVEL,
    PAPER_PRESETS,
    SUPPORTED_UNITS,
)
from report import build_pdf_report, draw_cut_preview, draw_layout
from unit_utils import convert_value, format_dimensions, format_length, from_millimeters, step_for_unit, to_display_unit

logging.basicConfig(format=LOG_FORMAT, level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# --- PAGE CONFIG ---
st.set_page_config(page_title="Press Sheet Imposition", layout="wide")

# Every number input that holds a length in the display unit.
LENGTH_FIELDS = (
    "piece_width",
    "piece_height",
    "bleed_top",
    "bleed_bottom",
    "bleed_left",
    "bleed_right",
    "gripper",
    "top_margin",
    "horizontal_gutter",
    "vertical_gutter",
    "center_horizontal_gutter",
    "center_vertical_gutter",
    "custom_paper_width",
    "custom_paper_height",
)

# --- SESSION STATE ---
if 'unit' not in st.session_state:
    st.session_state.unit = DEFAULT_UNIT
if 'last_unit' not in st.session_state:
    st.session_state.last_unit = st.session_state.unit
if 'piece_width' not in st.session_state:
    _defaults_mm = {
        "piece_width": DEFAULT_PIECE["width"],
        "piece_height": DEFAULT_PIECE["height"],
        "bleed_top": DEFAULT_BLEED,
        "bleed_bottom": DEFAULT_BLEED,
        "bleed_left": DEFAULT_BLEED,
        "bleed_right": DEFAULT_BLEED,
        "custom_paper_width": DEFAULT_CUSTOM_PAPER[0],
        "custom_paper_height": DEFAULT_CUSTOM_PAPER[1],
        **DEFAULT_SPACING,
    }
    for _key, _mm_value in _defaults_mm.items():
        st.session_state[_key] = from_millimeters(_mm_value, st.session_state.unit)
if 'paper_preset' not in st.session_state:
    st.session_state.paper_preset = DEFAULT_PAPER_PRESET
if 'cut_preset' not in st.session_state:
    st.session_state.cut_preset = DEFAULT_CUT_PRESET
if 'cuts_x' not in st.session_state:
    st.session_state.cuts_x, st.session_state.cuts_y = CUT_PRESETS[DEFAULT_CUT_PRESET]
if 'width_priority' not in st.session_state:
    st.session_state.width_priority = False
if 'center_horizontally' not in st.session_state:
    st.session_state.center_horizontally = False
if 'use_gripper_on_bleed_mode' not in st.session_state:
    st.session_state.use_gripper_on_bleed_mode = False
if 'job_info' not in st.session_state:
    st.session_state.job_info = normalize_job_info()


# --- HELPERS ---


@st.cache_data(max_entries=256)
def cached_layout(config):
    """Memoized wrapper, the engine itself stays a pure function."""
    result = calculate_layout(config)
    logger.debug("Layout %s -> valid=%s units=%s", config, result.is_valid, result.units_total)
    return result


def apply_pending_loaded_job():
    pending = st.session_state.pop("pending_loaded_job", None)
    if pending is None:
        return

    unit = pending["unit"]
    config = pending["config"]
    mm_values = {
        "piece_width": config.piece.width,
        "piece_height": config.piece.height,
        "bleed_top": config.bleed.top,
        "bleed_bottom": config.bleed.bottom,
        "bleed_left": config.bleed.left,
        "bleed_right": config.bleed.right,
        "custom_paper_width": pending["paper"][0],
        "custom_paper_height": pending["paper"][1],
    }
    for name in ("gripper", "top_margin", "horizontal_gutter", "vertical_gutter", "center_horizontal_gutter", "center_vertical_gutter"):
        mm_values[name] = getattr(config.spacing, name)

    st.session_state.unit = unit
    st.session_state.last_unit = unit
    for key, mm_value in mm_values.items():
        st.session_state[key] = to_display_unit(mm_value, unit)
    st.session_state.paper_preset = "Custom"
    st.session_state.cut_preset = "Custom"
    st.session_state.cuts_x, st.session_state.cuts_y = pending["cuts"]
    st.session_state.width_priority = pending["width_priority"]
    st.session_state.center_horizontally = config.center_horizontally
    st.session_state.use_gripper_on_bleed_mode = config.use_gripper_on_bleed_mode
    st.session_state.job_info = pending["job_info"]
    st.session_state["loaded_job_name"] = pending["job_name"]


def on_unit_change():
    old_unit = st.session_state.last_unit
    new_unit = st.session_state.unit
    if old_unit == new_unit:
        return
    for key in LENGTH_FIELDS:
        st.session_state[key] = convert_value(st.session_state[key], old_unit, new_unit)
    st.session_state.last_unit = new_unit
    logger.info("Display unit changed from %s to %s", old_unit, new_unit)


def on_cut_preset_change():
    counts = CUT_PRESETS.get(st.session_state.cut_preset)
    if counts is not None:
        st.session_state.cuts_x, st.session_state.cuts_y = counts


def on_cuts_edited():
    st.session_state.cut_preset = "Custom"


def swap_piece_dimensions():
    st.session_state.piece_width, st.session_state.piece_height = st.session_state.piece_height, st.session_state.piece_width


def swap_cuts():
    st.session_state.cuts_x, st.session_state.cuts_y = st.session_state.cuts_y, st.session_state.cuts_x
    st.session_state.cut_preset = "Custom"


def link_bleeds_to_top():
    for side, value in link_bleeds(st.session_state.bleed_top).items():
        st.session_state[f"bleed_{side}"] = value


def collect_ui_values():
    keys = LENGTH_FIELDS + (
        "paper_preset",
        "cut_preset",
        "cuts_x",
        "cuts_y",
        "width_priority",
        "center_horizontally",
        "use_gripper_on_bleed_mode",
    )
    return {key: st.session_state.get(key) for key in keys}


def draw_interactive_layout(result, bleed, unit):
    """Pan/zoom viewer: drag to pan, scroll to zoom, hover for piece details."""
    rows = [{
        "kind": "sheet",
        "label": "Sheet",
        "x": 0.0,
        "x2": float(result.sheet_width),
        "y": 0.0,
        "y2": float(result.sheet_height),
        "position": "",
        "dims": format_dimensions(result.sheet_width, result.sheet_height, unit),
        "fill": "#ffffff",
        "stroke": "#000000",
    }]
    for i, piece in enumerate(result.pieces):
        tx, ty = piece.trim_origin(bleed)
        rows.append({
            "kind": "bleed",
            "label": f"Piece {i + 1} (bleed)",
            "x": float(piece.x),
            "x2": float(piece.x + piece.total_width),
            "y": float(piece.y),
            "y2": float(piece.y + piece.total_height),
            "position": f"{format_length(piece.x, unit)}, {format_length(piece.y, unit)}",
            "dims": format_dimensions(piece.total_width, piece.total_height, unit),
            "fill": "rgba(100, 150, 255, 0.1)",
            "stroke": "#3182ce",
        })
        rows.append({
            "kind": "trim",
            "label": f"Piece {i + 1}",
            "x": float(tx),
            "x2": float(tx + piece.width),
            "y": float(ty),
            "y2": float(ty + piece.height),
            "position": f"{format_length(tx, unit)}, {format_length(ty, unit)}",
            "dims": format_dimensions(piece.width, piece.height, unit),
            "fill": "rgba(0, 0, 0, 0)",
            "stroke": "#000000",
        })

    chart_df = pd.DataFrame(rows)
    longest = max(result.sheet_width, result.sheet_height)
    chart = (
        alt.Chart(chart_df)
        .mark_rect()
        .encode(
            x=alt.X("x:Q", scale=alt.Scale(domain=[0, longest]), axis=None),
            x2="x2:Q",
            y=alt.Y("y:Q", scale=alt.Scale(domain=[0, longest]), axis=None),
            y2="y2:Q",
            color=alt.Color("fill:N", scale=None, legend=None),
            stroke=alt.Color("stroke:N", scale=None, legend=None),
            tooltip=["label:N", "dims:N", "position:N"],
        )
        .properties(width=560, height=560)
        .interactive()
    )
    st.altair_chart(chart, width="content")
    st.caption("Drag to pan, scroll to zoom. Positions are the lower-left corner from the sheet's lower-left corner.")


apply_pending_loaded_job()

# --- MAIN PAGE ---
st.title("🖨️ Press Sheet Imposition")

st.sidebar.header("⚙️ Sheet Settings")
st.sidebar.radio("Display unit", SUPPORTED_UNITS, key="unit", horizontal=True, on_change=on_unit_change)
UNIT = st.session_state.unit
STEP = step_for_unit(UNIT)

st.sidebar.selectbox("Parent paper", list(PAPER_PRESETS), key="paper_preset")
# Always rendered so the widget state survives a preset round trip.
custom_paper = st.session_state.paper_preset == "Custom"
st.sidebar.number_input(f"Paper width ({UNIT})", key="custom_paper_width", step=STEP, disabled=not custom_paper)
st.sidebar.number_input(f"Paper height ({UNIT})", key="custom_paper_height", step=STEP, disabled=not custom_paper)

st.sidebar.selectbox("Cut type", list(CUT_PRESETS), key="cut_preset", on_change=on_cut_preset_change)
cut_c1, cut_c2 = st.sidebar.columns(2)
cut_c1.number_input("Cuts across", min_value=1, step=1, key="cuts_x", on_change=on_cuts_edited)
cut_c2.number_input("Cuts down", min_value=1, step=1, key="cuts_y", on_change=on_cuts_edited)
st.sidebar.button("🔄 Swap cuts", on_click=swap_cuts)
st.sidebar.checkbox("Width priority (longest side as sheet width)", key="width_priority")

input_tab, result_tab = st.tabs(["1️⃣ Job Setup", "2️⃣ Layout Results"])

with input_tab:
    st.markdown("### Load Job")
    uploaded_job = st.file_uploader("📂 Load Job", type=["dxf", "json"], accept_multiple_files=False)

    loaded_job_name = st.session_state.pop("loaded_job_name", None)
    if loaded_job_name:
        st.success(f"Loaded job: {loaded_job_name}")

    if uploaded_job is None:
        st.session_state.pop("last_loaded_job_signature", None)
    else:
        file_bytes = uploaded_job.getvalue()
        upload_signature = f"{uploaded_job.name}:{len(file_bytes)}:{hashlib.md5(file_bytes).hexdigest()}"
        if st.session_state.get("last_loaded_job_signature") != upload_signature:
            try:
                payload = job_file_to_payload(uploaded_job.name, file_bytes)
                st.session_state["pending_loaded_job"] = parse_job_payload(payload)
                st.session_state["last_loaded_job_signature"] = upload_signature
                st.rerun()
            except ValueError as e:
                logger.warning("Could not load job file %s: %s", uploaded_job.name, e)
                st.error(f"Failed to load job file: {e}")

    st.write("---")
    st.markdown("### 1. Piece (trim size)")
    p1, p2, p3 = st.columns([2, 2, 1])
    p1.number_input(f"Width ({UNIT})", key="piece_width", step=STEP)
    p2.number_input(f"Height ({UNIT})", key="piece_height", step=STEP)
    p3.button("🔄 Swap W↔H", on_click=swap_piece_dimensions)

    st.markdown("### 2. Bleed")
    b1, b2, b3, b4 = st.columns(4)
    b1.number_input(f"Top ({UNIT})", key="bleed_top", min_value=0.0, step=STEP)
    b2.number_input(f"Bottom ({UNIT})", key="bleed_bottom", min_value=0.0, step=STEP)
    b3.number_input(f"Left ({UNIT})", key="bleed_left", min_value=0.0, step=STEP)
    b4.number_input(f"Right ({UNIT})", key="bleed_right", min_value=0.0, step=STEP)
    st.button("🔗 Link bleeds (use top on all sides)", on_click=link_bleeds_to_top)

    with st.expander("3. Fine adjustments (optional)"):
        s1, s2 = st.columns(2)
        s1.number_input(f"Gripper ({UNIT})", key="gripper", min_value=0.0, step=STEP)
        s2.number_input(f"Top margin ({UNIT})", key="top_margin", min_value=0.0, step=STEP)
        g1, g2 = st.columns(2)
        g1.number_input(f"Horizontal gutter ({UNIT})", key="horizontal_gutter", min_value=0.0, step=STEP)
        g2.number_input(f"Vertical gutter ({UNIT})", key="vertical_gutter", min_value=0.0, step=STEP)
        c1, c2 = st.columns(2)
        c1.number_input(f"Center horizontal gutter ({UNIT})", key="center_horizontal_gutter", min_value=0.0, step=STEP)
        c2.number_input(f"Center vertical gutter ({UNIT})", key="center_vertical_gutter", min_value=0.0, step=STEP)
        st.caption("Center gutters replace the middle gap when the count on that axis is even.")
        st.checkbox("Center horizontally", key="center_horizontally")
        st.checkbox("Gripper measured on bleed", key="use_gripper_on_bleed_mode")

    st.write("---")
    st.markdown("### Job Information")
    job = st.session_state.job_info
    with st.form("job_info_form"):
        j1, j2 = st.columns(2)
        title = j1.text_input("Job title", value=job["title"])
        client = j2.text_input("Client", value=job["client"])
        j3, j4 = st.columns(2)
        quote = j3.text_input("Quote number", value=job["quote"])
        date = j4.text_input("Date (YYYY-MM-DD)", value=job["date"])
        notes = st.text_area("Notes", value=job["notes"])
        if st.form_submit_button("💾 Save Job Info"):
            st.session_state.job_info = normalize_job_info({
                "title": title,
                "client": client,
                "quote": quote,
                "date": date,
                "notes": notes,
            })
            st.success("Job info saved")

inputs = collect_inputs(collect_ui_values(), UNIT)
config = inputs["config"]
paper = inputs["paper"]
cuts = inputs["cuts"]
result = cached_layout(config)

with result_tab:
    st.subheader("Layout Results")
    st.caption(f"Work sheet: {format_dimensions(result.sheet_width, result.sheet_height, UNIT)}")

    if not result.is_valid:
        m1, m2 = st.columns(2)
        m1.metric("Utilization", "ERROR")
        m2.metric("Pieces per sheet", "X")
        st.error(result.error_message)
    else:
        m1, m2, m3 = st.columns(3)
        m1.metric("Utilization", f"{result.utilization:.1f}%")
        m2.metric("Pieces per sheet", result.units_total)
        m3.metric("Grid", f"{result.units_x} across × {result.units_y} high")

        margins = result.final_margins
        if margins is not None:
            r1, r2, r3, r4 = st.columns(4)
            r1.metric("Left", format_length(margins.left, UNIT))
            r2.metric("Right", format_length(margins.right, UNIT))
            r3.metric("Top", format_length(margins.top, UNIT))
            r4.metric("Bottom", format_length(margins.bottom, UNIT))

        if result.units_total == 0:
            st.info("Nothing fits on the work sheet with the current settings.")

    view_col, cut_col = st.columns([3, 1])
    with view_col:
        if result.is_valid and result.pieces:
            view_static, view_interactive = st.tabs(["Sheet", "Viewer"])
            with view_static:
                fig = draw_layout(result, config.bleed)
                st.pyplot(fig)
                plt.close(fig)
            with view_interactive:
                draw_interactive_layout(result, config.bleed, UNIT)
    with cut_col:
        st.markdown("##### Cut preview")
        fig = draw_cut_preview(paper[0], paper[1], cuts[0], cuts[1])
        st.pyplot(fig)
        plt.close(fig)
        st.caption(f"{format_dimensions(paper[0], paper[1], UNIT)} cut {cuts[0]} × {cuts[1]}")

    if result.is_valid and result.pieces:
        with st.expander("Piece coordinates"):
            pieces_df = pd.DataFrame(result_to_dict(result)["pieces"])
            pieces_df.index = pieces_df.index + 1
            st.dataframe(pieces_df, width="stretch")

    st.write("---")
    st.markdown("### Export")
    job_info = st.session_state.job_info
    if not has_job_info(job_info):
        st.caption("Tip: fill in the job information for a complete PDF report.")

    e1, e2, e3, e4, e5 = st.columns(5)
    with e1:
        save_payload = build_job_payload(
            job_info,
            config,
            paper=paper,
            cuts=cuts,
            unit=UNIT,
            result=result,
            width_priority=st.session_state.width_priority,
        )
        st.download_button(
            "💾 Save Job",
            data=payload_to_dxf(save_payload, result, config.bleed),
            file_name=export_filename("job", config, result, job_info),
            mime="application/dxf",
            use_container_width=True,
        )
    if result.is_valid and result.pieces:
        report_data = build_report_data(config, result, job_info, paper, cuts)
        with e2:
            st.download_button(
                "🖼️ SVG",
                data=layout_to_svg(result, config.bleed),
                file_name=export_filename("svg", config, result, job_info),
                mime="image/svg+xml",
                use_container_width=True,
            )
        with e3:
            st.download_button(
                "📐 DXF",
                data=layout_to_dxf(result, config.bleed),
                file_name=export_filename("dxf", config, result, job_info),
                mime="application/dxf",
                use_container_width=True,
            )
        with e4:
            try:
                pdf_bytes = build_pdf_report(report_data, config.bleed)
                st.download_button(
                    "📄 PDF Report",
                    data=pdf_bytes,
                    file_name=export_filename("pdf", config, result, job_info),
                    mime="application/pdf",
                    use_container_width=True,
                )
            except Exception as e:
                logger.exception("PDF report failed")
                st.warning(f"PDF report unavailable: {e}")
        with e5:
            st.download_button(
                "🧾 JSON Data",
                data=report_to_json(report_data),
                file_name=export_filename("json", config, result, job_info),
                mime="application/json",
                use_container_width=True,
            )
    else:
        st.info("Exports other than the job file need a layout with at least one piece.")
