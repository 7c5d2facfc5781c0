import json
import base64
import io
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone

import ezdxf

from imposition_engine import BleedSpec, LayoutConfig, PieceSpec, SheetSpec, SpacingSpec, result_to_dict
from input_utils import BLEED_FIELDS, SPACING_FIELDS, coerce_bool, coerce_float
from press_config import DEFAULT_JOB_TITLE, REPORT_TITLE, REPORT_VERSION, SVG_STROKE_MM

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1
JOB_INFO_FIELDS = ("title", "client", "quote", "date", "notes")


def _today():
    return datetime.now().date().isoformat()


def normalize_job_info(job_info=None):
    info = dict(job_info or {})
    normalized = {field: str(info.get(field) or "").strip() for field in JOB_INFO_FIELDS}
    normalized["title"] = normalized["title"] or DEFAULT_JOB_TITLE
    normalized["date"] = normalized["date"] or _today()
    return normalized


def has_job_info(job_info):
    """True once the operator has entered something identifying the job."""
    if not job_info:
        return False
    title = str(job_info.get("title") or "").strip()
    return bool(
        (title and title != DEFAULT_JOB_TITLE)
        or str(job_info.get("client") or "").strip()
        or str(job_info.get("quote") or "").strip()
    )


def config_to_dict(config):
    return {
        "piece": {"width": config.piece.width, "height": config.piece.height},
        "sheet": {"width": config.sheet.width, "height": config.sheet.height},
        "bleed": {side: getattr(config.bleed, side) for side in BLEED_FIELDS},
        "spacing": {name: getattr(config.spacing, name) for name in SPACING_FIELDS},
        "center_horizontally": bool(config.center_horizontally),
        "use_gripper_on_bleed_mode": bool(config.use_gripper_on_bleed_mode),
    }


def _section(data, key):
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Job section '{key}' must be an object")
    return section


def config_from_dict(data):
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("Job config must be an object")
    piece = _section(data, "piece")
    sheet = _section(data, "sheet")
    bleed = _section(data, "bleed")
    spacing = _section(data, "spacing")
    return LayoutConfig(
        piece=PieceSpec(coerce_float(piece.get("width")), coerce_float(piece.get("height"))),
        sheet=SheetSpec(coerce_float(sheet.get("width")), coerce_float(sheet.get("height"))),
        bleed=BleedSpec(**{side: coerce_float(bleed.get(side)) for side in BLEED_FIELDS}),
        spacing=SpacingSpec(**{name: coerce_float(spacing.get(name)) for name in SPACING_FIELDS}),
        center_horizontally=coerce_bool(data.get("center_horizontally", False)),
        use_gripper_on_bleed_mode=coerce_bool(data.get("use_gripper_on_bleed_mode", False)),
    )


def build_report_data(config, result, job_info=None, paper=None, cuts=(1, 1), now=None):
    """Structured technical sheet for one calculation, shared by PDF and JSON export."""
    now = now or datetime.now()
    paper = paper or (config.sheet.width, config.sheet.height)
    margins = result.final_margins
    return {
        "job_info": normalize_job_info(job_info),
        "project": {
            "title": REPORT_TITLE,
            "date": now.strftime("%d/%m/%Y"),
            "time": now.strftime("%H:%M:%S"),
            "version": REPORT_VERSION,
        },
        "piece": {"width": config.piece.width, "height": config.piece.height, "unit": "mm"},
        "paper_workflow": {
            "original_paper": {"width": float(paper[0]), "height": float(paper[1])},
            "cut_type": {"x": int(cuts[0]), "y": int(cuts[1])},
            "work_sheet": {"width": result.sheet_width, "height": result.sheet_height},
        },
        "adjustments": {
            "bleeds": {side: getattr(config.bleed, side) for side in BLEED_FIELDS},
            "spacing": {name: getattr(config.spacing, name) for name in SPACING_FIELDS},
            "center_horizontally": bool(config.center_horizontally),
            "use_gripper_on_bleed_mode": bool(config.use_gripper_on_bleed_mode),
        },
        "results": {
            "is_valid": result.is_valid,
            "error_message": result.error_message,
            "pieces_per_sheet": result.units_total,
            "units_width": result.units_x,
            "units_height": result.units_y,
            "utilization": result.utilization,
            "remaining_space": {
                side: (getattr(margins, side) if margins is not None else 0)
                for side in ("left", "right", "top", "bottom")
            },
        },
        "layout": {
            "pieces": result_to_dict(result)["pieces"],
            "sheet_width": result.sheet_width,
            "sheet_height": result.sheet_height,
        },
    }


def build_job_payload(job_info, config, paper=None, cuts=(1, 1), unit="mm", result=None, width_priority=False):
    info = normalize_job_info(job_info)
    payload = {
        "version": PAYLOAD_VERSION,
        "job_name": info["title"],
        "saved_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "job_info": info,
        "settings": {
            "unit": str(unit),
            "paper": {
                "width": float(paper[0] if paper else config.sheet.width),
                "height": float(paper[1] if paper else config.sheet.height),
            },
            "cuts": {"x": int(cuts[0]), "y": int(cuts[1])},
            "width_priority": bool(width_priority),
        },
        "config": config_to_dict(config),
        "summary": {},
    }
    if result is not None:
        payload["summary"] = {
            "is_valid": result.is_valid,
            "units_total": result.units_total,
            "units_x": result.units_x,
            "units_y": result.units_y,
            "utilization": result.utilization,
        }
    return payload


def parse_job_payload(payload):
    if not isinstance(payload, dict):
        raise ValueError("Job payload must be an object")
    settings = _section(payload, "settings")
    paper = _section(settings, "paper")
    cuts = _section(settings, "cuts")
    config = config_from_dict(payload.get("config", {}))
    unit = str(settings.get("unit", "mm"))
    if unit not in ("mm", "cm"):
        unit = "mm"
    return {
        "job_name": str(payload.get("job_name", DEFAULT_JOB_TITLE)),
        "job_info": normalize_job_info(payload.get("job_info")),
        "unit": unit,
        "paper": (
            coerce_float(paper.get("width"), config.sheet.width),
            coerce_float(paper.get("height"), config.sheet.height),
        ),
        "cuts": (max(1, int(coerce_float(cuts.get("x"), 1))), max(1, int(coerce_float(cuts.get("y"), 1)))),
        "width_priority": coerce_bool(settings.get("width_priority", False)),
        "config": config,
    }


def payload_to_json(payload):
    return json.dumps(payload, indent=2, ensure_ascii=False)


def report_to_json(report_data):
    return json.dumps(report_data, indent=2, ensure_ascii=False).encode("utf-8")


def _require_layout(result):
    if result is None or not result.is_valid or not result.pieces:
        raise ValueError("No valid layout to export.")


def _rect_points(x, y, w, h):
    return [(x, y), (x + w, y), (x + w, y + h), (x, y + h), (x, y)]


def _layout_dxf_text(result, bleed):
    doc = ezdxf.new()
    msp = doc.modelspace()
    doc.layers.new(name="SHEET_BOUNDARY", dxfattribs={"color": 1})
    doc.layers.new(name="BLEED", dxfattribs={"color": 5})
    doc.layers.new(name="TRIM", dxfattribs={"color": 3})
    doc.layers.new(name="LABELS", dxfattribs={"color": 7})

    msp.add_lwpolyline(_rect_points(0, 0, result.sheet_width, result.sheet_height), dxfattribs={"layer": "SHEET_BOUNDARY"})

    text_height = max(1.0, min(result.pieces[0].width, result.pieces[0].height) / 8)
    for i, piece in enumerate(result.pieces):
        msp.add_lwpolyline(_rect_points(piece.x, piece.y, piece.total_width, piece.total_height), dxfattribs={"layer": "BLEED"})
        tx, ty = piece.trim_origin(bleed)
        msp.add_lwpolyline(_rect_points(tx, ty, piece.width, piece.height), dxfattribs={"layer": "TRIM"})
        msp.add_text(str(i + 1), dxfattribs={"layer": "LABELS", "height": text_height}).set_placement(
            (tx + piece.width / 2, ty + piece.height / 2), align=ezdxf.enums.TextEntityAlignment.MIDDLE_CENTER
        )

    dxf_io = io.StringIO()
    doc.write(dxf_io)
    return dxf_io.getvalue()


def layout_to_dxf(result, bleed):
    """Production DXF: sheet outline, bleed boxes, trim boxes and piece numbers."""
    _require_layout(result)
    logger.info("Exporting DXF layout with %d pieces", len(result.pieces))
    return _layout_dxf_text(result, bleed).encode("utf-8")


def layout_to_svg(result, bleed):
    """Press-ready SVG in millimeters with trim boxes only.

    A flipping group keeps the bottom-left origin of the layout.
    """
    _require_layout(result)
    sheet_w = result.sheet_width
    sheet_h = result.sheet_height
    svg = ET.Element("svg", {
        "xmlns": "http://www.w3.org/2000/svg",
        "version": "1.1",
        "width": f"{sheet_w:g}mm",
        "height": f"{sheet_h:g}mm",
        "viewBox": f"0 0 {sheet_w:g} {sheet_h:g}",
    })
    group = ET.SubElement(svg, "g", {"transform": f"matrix(1 0 0 -1 0 {sheet_h:g})"})
    ET.SubElement(group, "rect", {
        "x": "0",
        "y": "0",
        "width": f"{sheet_w:g}",
        "height": f"{sheet_h:g}",
        "fill": "white",
        "stroke": "#000000",
        "stroke-width": f"{SVG_STROKE_MM:g}",
    })
    for piece in result.pieces:
        tx, ty = piece.trim_origin(bleed)
        ET.SubElement(group, "rect", {
            "x": f"{tx:g}",
            "y": f"{ty:g}",
            "width": f"{piece.width:g}",
            "height": f"{piece.height:g}",
            "fill": "none",
            "stroke": "#000000",
            "stroke-width": f"{SVG_STROKE_MM:g}",
        })
    logger.info("Exporting SVG layout with %d pieces", len(result.pieces))
    return ET.tostring(svg, encoding="utf-8", xml_declaration=True)


_DXF_MARKER_BEGIN = "IMPOSITION_JOB_PAYLOAD_BASE64_BEGIN"
_DXF_MARKER_END = "IMPOSITION_JOB_PAYLOAD_BASE64_END"


def payload_to_dxf(payload, result=None, bleed=None):
    """Save file: job payload in DXF comments, plus layout geometry when there is one."""
    payload_bytes = payload_to_json(payload).encode("utf-8")
    encoded_payload = base64.b64encode(payload_bytes).decode("ascii")
    chunks = [encoded_payload[i:i + 250] for i in range(0, len(encoded_payload), 250)]

    dxf_lines = ["999", _DXF_MARKER_BEGIN]
    for chunk in chunks:
        dxf_lines.extend(["999", chunk])
    dxf_lines.extend(["999", _DXF_MARKER_END])

    if result is not None and result.is_valid and result.pieces:
        body = _layout_dxf_text(result, bleed or BleedSpec())
        return ("\n".join(dxf_lines) + "\n" + body).encode("utf-8")

    dxf_lines.extend([
        "0", "SECTION",
        "2", "HEADER",
        "0", "ENDSEC",
        "0", "EOF",
    ])
    return ("\n".join(dxf_lines) + "\n").encode("utf-8")


def _polyline_bbox(points):
    xs = [float(point[0]) for point in points]
    ys = [float(point[1]) for point in points]
    return min(xs), min(ys), max(xs), max(ys)


def _payload_from_dxf_geometry(dxf_bytes):
    dxf_text = dxf_bytes.decode("utf-8", errors="ignore")
    try:
        doc = ezdxf.read(io.StringIO(dxf_text))
    except ezdxf.DXFStructureError as e:
        raise ValueError("No imposition job data found in DXF") from e
    msp = doc.modelspace()

    sheet = None
    trims = []
    bleeds = []

    for entity in msp.query("LWPOLYLINE"):
        layer = (entity.dxf.layer or "").upper()
        points = list(entity.get_points("xy"))
        if len(points) < 4:
            continue

        bbox = _polyline_bbox(points)
        if bbox[2] - bbox[0] <= 0 or bbox[3] - bbox[1] <= 0:
            continue

        if layer == "SHEET_BOUNDARY":
            sheet = bbox
        elif layer == "TRIM":
            trims.append(bbox)
        elif layer == "BLEED":
            bleeds.append(bbox)

    if sheet is None or not trims:
        raise ValueError("No imposition job data found in DXF")

    logger.warning("DXF has no embedded job payload, rebuilding job from geometry")
    trim = trims[0]
    bleed = {side: 0.0 for side in BLEED_FIELDS}
    # Pair the first trim box with the bleed box that contains it.
    for box in bleeds:
        if box[0] <= trim[0] and box[1] <= trim[1] and box[2] >= trim[2] and box[3] >= trim[3]:
            bleed = {
                "left": trim[0] - box[0],
                "bottom": trim[1] - box[1],
                "right": box[2] - trim[2],
                "top": box[3] - trim[3],
            }
            break

    sheet_w = sheet[2] - sheet[0]
    sheet_h = sheet[3] - sheet[1]
    config = LayoutConfig(
        piece=PieceSpec(trim[2] - trim[0], trim[3] - trim[1]),
        sheet=SheetSpec(sheet_w, sheet_h),
        bleed=BleedSpec(**bleed),
    )
    return build_job_payload({"title": "Imported DXF Job"}, config, paper=(sheet_w, sheet_h))


def dxf_to_payload(dxf_bytes):
    lines = dxf_bytes.decode("utf-8").splitlines()
    comments = []
    for i in range(0, len(lines) - 1, 2):
        if lines[i].strip() == "999":
            comments.append(lines[i + 1].strip())

    if _DXF_MARKER_BEGIN not in comments or _DXF_MARKER_END not in comments:
        return _payload_from_dxf_geometry(dxf_bytes)

    start = comments.index(_DXF_MARKER_BEGIN) + 1
    end = comments.index(_DXF_MARKER_END)
    encoded_payload = "".join(comments[start:end])
    payload_json = base64.b64decode(encoded_payload.encode("ascii")).decode("utf-8")
    payload = json.loads(payload_json)
    if not isinstance(payload, dict) or not isinstance(payload.get("config"), dict):
        raise ValueError("DXF does not contain an imposition job")
    return payload


def json_to_payload(json_bytes):
    try:
        payload = json.loads(json_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid job file: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("config"), dict):
        raise ValueError("JSON file does not contain an imposition job")
    return payload


def job_file_to_payload(file_name, file_bytes):
    ext = str(file_name or "").lower().rsplit(".", 1)[-1] if "." in str(file_name or "") else ""
    logger.info("Loading job file %s", file_name)
    if ext == "json":
        return json_to_payload(file_bytes)
    if ext == "dxf":
        return dxf_to_payload(file_bytes)
    raise ValueError(f"Unsupported job file type: {file_name}")


def _sanitize_file_part(value, fallback):
    raw = str(value or "").strip()
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "_", raw).strip("_")
    return cleaned or fallback


def _dims(width, height):
    return f"{width:g}x{height:g}"


def export_filename(kind, config, result=None, job_info=None, today=None):
    """Download names for the export kinds: svg, dxf, pdf, json, job."""
    today = today or _today()
    dims = _dims(config.piece.width, config.piece.height)
    units_total = result.units_total if result is not None else 0
    title = _sanitize_file_part(normalize_job_info(job_info)["title"], DEFAULT_JOB_TITLE)
    if kind == "svg":
        return f"imposition_{dims}_{units_total}pcs.svg"
    if kind == "dxf":
        return f"imposition_{dims}_{units_total}pcs.dxf"
    if kind == "pdf":
        return f"{title}_{dims}_{today}.pdf"
    if kind == "json":
        return f"imposition_data_{dims}_{today}.json"
    if kind == "job":
        return f"{title}.dxf"
    raise ValueError(f"Unknown export kind: {kind}")
