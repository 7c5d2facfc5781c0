"""
Matplotlib rendering of layouts and the two-page technical PDF report.

Layout coordinates already have their origin at the bottom-left, which is
how matplotlib axes point, so sheet drawings need no flipping. The PDF pages
are laid out in millimeters from the top-left like a printed form.
"""
from __future__ import annotations

import io
import logging

import matplotlib.patches as patches
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from press_config import (
    A4_PORTRAIT_MM,
    BLEED_EDGE_COLOR,
    BLEED_FACE_COLOR,
    CUT_LINE_COLOR,
    REPORT_MARGIN_MM,
    REPORT_PRIMARY_COLOR,
    REPORT_ROW_SHADE,
    REPORT_TEXT_COLOR,
    SHEET_EDGE_COLOR,
    SHEET_FACE_COLOR,
    TRIM_EDGE_COLOR,
)

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4


def _new_axes(width, height, max_inches=6.0):
    longest = max(width, height, 1e-9)
    fig, ax = plt.subplots(figsize=(max(1.0, max_inches * width / longest), max(1.0, max_inches * height / longest)))
    return fig, ax


def draw_layout(result, bleed, ax=None, show_bleed=True):
    """Sheet outline, dashed bleed boxes and solid trim boxes."""
    if ax is None:
        fig, ax = _new_axes(result.sheet_width, result.sheet_height)
    else:
        fig = ax.figure

    sheet_w = max(result.sheet_width, 0)
    sheet_h = max(result.sheet_height, 0)
    ax.set_xlim(0, sheet_w or 1)
    ax.set_ylim(0, sheet_h or 1)
    ax.set_aspect("equal")
    ax.axis("off")
    ax.add_patch(patches.Rectangle((0, 0), sheet_w, sheet_h, fc=SHEET_FACE_COLOR, ec=SHEET_EDGE_COLOR, lw=1))

    for piece in result.pieces:
        if show_bleed:
            ax.add_patch(patches.Rectangle(
                (piece.x, piece.y),
                piece.total_width,
                piece.total_height,
                fc=BLEED_FACE_COLOR,
                ec=BLEED_EDGE_COLOR,
                ls="--",
                lw=0.6,
            ))
        ax.add_patch(patches.Rectangle(piece.trim_origin(bleed), piece.width, piece.height, fc="none", ec=TRIM_EDGE_COLOR, lw=0.6))

    return fig


def draw_cut_preview(paper_w, paper_h, cuts_x, cuts_y, ax=None):
    """Parent paper with dashed lines where it gets cut into work sheets."""
    if ax is None:
        fig, ax = _new_axes(paper_w, paper_h, max_inches=3.0)
    else:
        fig = ax.figure

    ax.set_xlim(0, paper_w)
    ax.set_ylim(0, paper_h)
    ax.set_aspect("equal")
    ax.axis("off")
    ax.add_patch(patches.Rectangle((0, 0), paper_w, paper_h, fc=SHEET_FACE_COLOR, ec=SHEET_EDGE_COLOR, lw=1))

    step_x = paper_w / cuts_x
    for i in range(1, cuts_x):
        ax.plot([i * step_x, i * step_x], [0, paper_h], color=CUT_LINE_COLOR, ls="--", lw=1)
    step_y = paper_h / cuts_y
    for i in range(1, cuts_y):
        ax.plot([0, paper_w], [i * step_y, i * step_y], color=CUT_LINE_COLOR, ls="--", lw=1)

    return fig


def _mm(value):
    return f"{value:g} mm"


def _page():
    page_w, page_h = A4_PORTRAIT_MM
    fig = plt.figure(figsize=(page_w / MM_PER_INCH, page_h / MM_PER_INCH))
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(0, page_w)
    ax.set_ylim(page_h, 0)
    ax.axis("off")
    return fig, ax


def _add_table(ax, title, rows, y, width=170.0, row_height=6.5, header_height=9.0):
    """Title bar, shaded rows of concept/value pairs. Returns the next free y."""
    x = REPORT_MARGIN_MM
    ax.add_patch(patches.Rectangle((x, y), width, header_height, fc=REPORT_PRIMARY_COLOR, ec="none"))
    ax.text(x + 3, y + 6.5, title, color="white", fontsize=11, fontweight="bold")
    y += header_height

    for i, (concept, value) in enumerate(rows):
        if i % 2 == 0:
            ax.add_patch(patches.Rectangle((x, y), width, row_height, fc=REPORT_ROW_SHADE, ec="none"))
        ax.text(x + 3, y + 4.6, concept, color=REPORT_TEXT_COLOR, fontsize=9)
        ax.text(x + width - 60, y + 4.6, value, color=REPORT_TEXT_COLOR, fontsize=9)
        y += row_height

    ax.add_patch(patches.Rectangle(
        (x, y - header_height - row_height * len(rows)),
        width,
        header_height + row_height * len(rows),
        fc="none",
        ec="#e2e8f0",
    ))
    return y


def _technical_page(data):
    fig, ax = _page()
    page_w = A4_PORTRAIT_MM[0]

    ax.add_patch(patches.Rectangle((0, 0), page_w, 25, fc=REPORT_PRIMARY_COLOR, ec="none"))
    ax.text(REPORT_MARGIN_MM, 15, data["project"]["title"], color="white", fontsize=16, fontweight="bold")
    ax.text(140, 15, f"Generated: {data['project']['date']} {data['project']['time']}", color="white", fontsize=8)

    job = data["job_info"]
    job_rows = [
        ("Job title", job["title"]),
        ("Client", job["client"] or "Not specified"),
        ("Quote number", job["quote"] or "Not specified"),
        ("Job date", job["date"] or "Not specified"),
    ]
    if job["notes"]:
        job_rows.append(("Notes", job["notes"]))
    y = _add_table(ax, "Job Information", job_rows, 32)

    piece = data["piece"]
    workflow = data["paper_workflow"]
    paper = workflow["original_paper"]
    sheet = workflow["work_sheet"]
    y = _add_table(ax, "Piece & Work Sheet", [
        ("Piece width", _mm(piece["width"])),
        ("Piece height", _mm(piece["height"])),
        ("Original paper", f"{paper['width']:g} x {paper['height']:g} mm"),
        ("Cut type", f"{workflow['cut_type']['x']} x {workflow['cut_type']['y']}"),
        ("Work sheet", f"{sheet['width']:g} x {sheet['height']:g} mm"),
    ], y + 5)

    adj = data["adjustments"]
    bleeds = adj["bleeds"]
    spacing = adj["spacing"]
    y = _add_table(ax, "Fine Adjustments", [
        ("Bleed top", _mm(bleeds["top"])),
        ("Bleed bottom", _mm(bleeds["bottom"])),
        ("Bleed left", _mm(bleeds["left"])),
        ("Bleed right", _mm(bleeds["right"])),
        ("Gripper", _mm(spacing["gripper"])),
        ("Horizontal gutter", _mm(spacing["horizontal_gutter"])),
        ("Vertical gutter", _mm(spacing["vertical_gutter"])),
        ("Center horizontally", "On" if adj["center_horizontally"] else "Off"),
    ], y + 5)

    results = data["results"]
    y = _add_table(ax, "Results", [
        ("Pieces per sheet", str(results["pieces_per_sheet"])),
        ("Units across", str(results["units_width"])),
        ("Units high", str(results["units_height"])),
        ("Utilization", f"{results['utilization']:.1f}%"),
    ], y + 5)

    remaining = results["remaining_space"]
    _add_table(ax, "Remaining Space on Sheet", [
        ("Left margin", f"{remaining['left']:.1f} mm"),
        ("Right margin", f"{remaining['right']:.1f} mm"),
        ("Top margin", f"{remaining['top']:.1f} mm"),
        ("Bottom margin", f"{remaining['bottom']:.1f} mm"),
    ], y + 5)
    return fig


def _layout_page(data, bleed):
    fig, ax = _page()
    page_w, page_h = A4_PORTRAIT_MM
    layout = data["layout"]
    sheet_w = layout["sheet_width"]
    sheet_h = layout["sheet_height"]

    y = REPORT_MARGIN_MM
    ax.text(REPORT_MARGIN_MM, y, "Visual Layout", color=REPORT_TEXT_COLOR, fontsize=14, fontweight="bold")
    y += 10

    area_w = page_w - (REPORT_MARGIN_MM * 2)
    area_h = page_h - y - REPORT_MARGIN_MM - 20
    # Only ever shrink the sheet to fit the page.
    scale = min(area_w / sheet_w, area_h / sheet_h, 1)
    scaled_w = sheet_w * scale
    scaled_h = sheet_h * scale
    start_x = REPORT_MARGIN_MM + (area_w - scaled_w) / 2
    start_y = y

    ax.add_patch(patches.Rectangle((start_x, start_y), scaled_w, scaled_h, fc=SHEET_FACE_COLOR, ec=SHEET_EDGE_COLOR, lw=0.8))
    for piece in layout["pieces"]:
        px = start_x + (piece["x"] + bleed.left) * scale
        # Page y grows downwards, layout y grows upwards.
        py = start_y + scaled_h - (piece["y"] + bleed.bottom + piece["height"]) * scale
        ax.add_patch(patches.Rectangle((px, py), piece["width"] * scale, piece["height"] * scale, fc="none", ec=TRIM_EDGE_COLOR, lw=0.5))

    info_y = start_y + scaled_h + 12
    ax.text(start_x, info_y, f"Scale: {scale * 100:.1f}%", color=REPORT_TEXT_COLOR, fontsize=9)
    ax.text(start_x, info_y + 6, f"Real dimensions: {sheet_w:g} x {sheet_h:g} mm", color=REPORT_TEXT_COLOR, fontsize=9)
    return fig


def build_pdf_report(report_data, bleed):
    """Technical sheet and scaled layout as PDF bytes."""
    results = report_data["results"]
    if not results["is_valid"] or not report_data["layout"]["pieces"]:
        raise ValueError("No valid layout to export.")

    buffer = io.BytesIO()
    with PdfPages(buffer) as pdf:
        pages = ((_technical_page, (report_data,)), (_layout_page, (report_data, bleed)))
        for build_page, args in pages:
            fig = build_page(*args)
            try:
                pdf.savefig(fig)
            finally:
                plt.close(fig)
        info = pdf.infodict()
        info["Title"] = f"{report_data['project']['title']} - {report_data['job_info']['title']}"

    logger.info("Built PDF report for job %r", report_data["job_info"]["title"])
    return buffer.getvalue()
