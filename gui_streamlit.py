"""Streamlit GUI for deckstudio: generate, edit and present a slide deck."""
from __future__ import annotations

import json
import logging
import tempfile
import threading
import time
from pathlib import Path

import streamlit as st
from dotenv import load_dotenv

from content_codec import decode
from editor import EditingSession
from errors import ConfigurationError
from export_pdf import export_pdf
from export_pptx import export_pptx
from generation import SlideGenerator
from images import ImageClient, ImageConfig, ImageSearchClient
from llm import init_llm, load_llm_config
from logging_utils import setup_logging
from models import (
    LAYOUTS,
    IMAGE_POSITIONS,
    SLOT_VARIANTS,
    ChartContent,
    FeatureIcon,
    FeaturesContent,
    HierarchyContent,
    ItemListContent,
    TimelineContent,
    deck_basename,
    slot_fields,
    supports_image_position,
)
from pdf_utils import extract_pdf_text
from pipeline import DeckJSONStore, GenerationFlow, fetch_images, normalize_slides
from renderer import Navigator, render_slide

APP_TITLE = "deckstudio"
CONFIG_PATH = Path.home() / ".deckstudio_gui.json"
SOURCES = ["Text", "Text file", "PDF", "Audio"]
LONG_SLOTS = {"body_a", "body_b", "strengths", "weaknesses", "opportunities", "threats", "quote", "body"}

logger = logging.getLogger("deckstudio")

SLIDE_CSS = """
<style>
.slide { background:#1e293b; color:#f1f5f9; aspect-ratio:16/9; border-radius:12px; overflow:hidden;
         background-size:cover; background-position:center; position:relative; }
.slide .content { padding:32px; flex:1; position:relative; }
.slide .image img { width:100%; height:100%; object-fit:cover; }
.slide .overlay { position:absolute; inset:0; background:rgba(15,23,42,0.6); }
.slide h2 { color:#f1f5f9; }
.slide li, .slide p { color:#cbd5e1; }
.slide .invalid { color:#f87171; }
.slide .comparison, .slide .swot, .slide .features, .slide .blocks.cols-2 { display:grid; gap:12px;
         grid-template-columns:1fr 1fr; }
.slide .circle { position:relative; height:60%; }
.slide .orbit { position:absolute; transform:translate(-50%,-50%); }
</style>
"""


class _LogBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        msg = self.format(record)
        self.lines.append(msg)
        if len(self.lines) > 1000:
            self.lines = self.lines[-1000:]


def _load_gui_config() -> dict:
    """Load gui config.

    Returns:
        dict:
    """
    if CONFIG_PATH.exists():
        try:
            return json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
        except Exception:
            return {}
    return {}


def _save_gui_config(data: dict) -> None:
    CONFIG_PATH.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _save_upload(f, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / f.name
    with target.open("wb") as fh:
        fh.write(f.getbuffer())
    return target


def _generate_in_background(flow: GenerationFlow, token: int, kind: str, payload, slide_count: int,
                            llm, image_client, max_workers: int) -> None:
    try:
        generator = SlideGenerator(llm)
        if kind == "audio":
            data, mime = payload
            raw = generator.generate_from_audio(data, mime, slide_count)
        else:
            raw = generator.generate_from_text(payload, slide_count)
        if not flow.is_current(token):
            return
        urls = fetch_images(raw, image_client.generate, max_workers) if image_client is not None else None
        flow.deliver(token, normalize_slides(raw, urls))
    except Exception as exc:
        logger.exception("Generation failed")
        flow.fail(token, exc)


def _bump() -> None:
    # Structural edits change widget keys so stale widget state is not written back.
    st.session_state["rev"] += 1


def _clients():
    cached = st.session_state.get("_clients")
    if cached:
        return cached
    llm_cfg = load_llm_config()
    clients = {
        "llm": init_llm(llm_cfg),
        "images": ImageClient(ImageConfig.from_env()),
        "search": ImageSearchClient.from_env(),
        "model": llm_cfg.model,
    }
    st.session_state["_clients"] = clients
    return clients


# ---------------------------------------------------------------------------
# Landing
# ---------------------------------------------------------------------------


def _landing(flow: GenerationFlow, clients: dict) -> None:
    st.subheader("Source")
    kind = st.radio("Source type", SOURCES, horizontal=True)
    payload = None
    if kind == "Text":
        text = st.text_area("Paste your text", height=240)
        payload = ("text", text) if text.strip() else None
    elif kind == "Text file":
        up = st.file_uploader("Upload a .txt file", type=["txt", "md"])
        if up is not None:
            payload = ("text", up.getvalue().decode("utf-8", errors="replace"))
    elif kind == "PDF":
        up = st.file_uploader("Upload a PDF", type=["pdf"])
        if up is not None:
            path = _save_upload(up, Path(st.session_state["work_dir"]) / "uploads")
            payload = ("text", extract_pdf_text(path))
    else:
        up = st.file_uploader("Upload an audio recording", type=["mp3", "wav", "m4a", "ogg", "webm"])
        if up is not None:
            payload = ("audio", (up.getvalue(), up.type or "audio/wav"))

    slide_count = st.number_input("Slides", min_value=1, max_value=40, value=8, step=1)
    with_images = st.checkbox("Generate images", value=True)
    max_workers = st.number_input("Concurrent image requests", min_value=1, max_value=16, value=4, step=1)

    if st.button("Generate presentation", type="primary", disabled=payload is None):
        token = flow.start()
        image_client = clients["images"] if with_images else None
        t = threading.Thread(
            target=_generate_in_background,
            args=(flow, token, payload[0], payload[1], int(slide_count), clients["llm"], image_client,
                  int(max_workers)),
            daemon=True,
        )
        t.start()
        st.rerun()


def _generating(flow: GenerationFlow, log_handler: _LogBufferHandler) -> None:
    with st.spinner("Generating your presentation..."):
        st.text_area("Live logs", value="\n".join(log_handler.lines[-200:]), height=240)
        time.sleep(0.5)
    st.rerun()


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------


def _edit_slot_fields(session: EditingSession, sid: str, decoded, rev: int) -> None:
    for i, name in enumerate(slot_fields(decoded)):
        current = getattr(decoded, name)
        label = name.replace("_", " ").capitalize()
        key = f"{sid}-{rev}-slot-{i}"
        if name in LONG_SLOTS:
            value = st.text_area(label, current, key=key)
        else:
            value = st.text_input(label, current, key=key)
        if value != current:
            session.update_structured_item(sid, i, value)


def _edit_items(session: EditingSession, sid: str, decoded: ItemListContent, rev: int) -> None:
    for i, item in enumerate(decoded.items):
        c1, c2 = st.columns([10, 1])
        value = c1.text_input(f"Item {i + 1}", item, key=f"{sid}-{rev}-item-{i}")
        if value != item:
            session.update_structured_item(sid, i, value)
        if c2.button("✕", key=f"{sid}-{rev}-rm-{i}"):
            session.remove_structured_item(sid, i)
            _bump()
            st.rerun()


def _edit_timeline(session: EditingSession, sid: str, decoded: TimelineContent, rev: int) -> None:
    for i, entry in enumerate(decoded.entries):
        c1, c2, c3 = st.columns([3, 8, 1])
        key = c1.text_input("Date", entry.key, key=f"{sid}-{rev}-tk-{i}")
        value = c2.text_input("Event", entry.value, key=f"{sid}-{rev}-tv-{i}")
        if key != entry.key or value != entry.value:
            session.update_structured_item(sid, i, {"key": key, "value": value})
        if c3.button("✕", key=f"{sid}-{rev}-rm-{i}"):
            session.remove_structured_item(sid, i)
            _bump()
            st.rerun()


def _edit_features(session: EditingSession, sid: str, decoded: FeaturesContent, rev: int) -> None:
    icons = [i.value for i in FeatureIcon]
    for i, entry in enumerate(decoded.entries):
        c1, c2, c3, c4 = st.columns([2, 3, 6, 1])
        icon = c1.selectbox("Icon", icons, index=icons.index(entry.icon_kind.value), key=f"{sid}-{rev}-fi-{i}")
        title = c2.text_input("Title", entry.title, key=f"{sid}-{rev}-ft-{i}")
        desc = c3.text_input("Description", entry.description, key=f"{sid}-{rev}-fd-{i}")
        if icon != entry.icon_kind.value or title != entry.title or desc != entry.description:
            session.update_structured_item(sid, i, {"icon": icon, "title": title, "description": desc})
        if c4.button("✕", key=f"{sid}-{rev}-rm-{i}"):
            session.remove_structured_item(sid, i)
            _bump()
            st.rerun()


def _edit_chart(session: EditingSession, sid: str, decoded: ChartContent, rev: int) -> None:
    if not decoded.points:
        st.warning("Invalid chart data. Add an item to start a new chart.")
    for i, point in enumerate(decoded.points):
        c1, c2, c3 = st.columns([6, 3, 1])
        label = c1.text_input("Label", point.label, key=f"{sid}-{rev}-cl-{i}")
        value = c2.number_input("Value", value=float(point.value), key=f"{sid}-{rev}-cv-{i}")
        if label != point.label or value != point.value:
            session.update_structured_item(sid, i, {"label": label, "value": value})
        if c3.button("✕", key=f"{sid}-{rev}-rm-{i}"):
            session.remove_structured_item(sid, i)
            _bump()
            st.rerun()


def _edit_hierarchy(session: EditingSession, sid: str, decoded: HierarchyContent, rev: int) -> None:
    if decoded.root is None:
        st.warning("Invalid hierarchy data.")
        if st.button("Create root node", key=f"{sid}-{rev}-root"):
            session.create_hierarchy_root(sid)
            _bump()
            st.rerun()
        return
    for i, row in enumerate(session.hierarchy_rows(sid)):
        cols = st.columns([0.5 + row.level, 8, 1, 1, 1, 1])
        name = cols[1].text_input("Name", row.name, key=f"{sid}-{rev}-hn-{i}", label_visibility="collapsed")
        if name != row.name:
            session.rename_node(sid, i, name)
        actions = [
            ("←", session.outdent_node),
            ("→", session.indent_node),
            ("+", session.insert_node_after),
            ("✕", session.remove_node),
        ]
        for col, (label, op) in zip(cols[2:], actions):
            if col.button(label, key=f"{sid}-{rev}-h{label}-{i}"):
                op(sid, i)
                _bump()
                st.rerun()


def _search_state(state, sid: str) -> dict:
    """Photo search results for one slide; each slide keeps its own."""
    return state.setdefault("image_search", {}).setdefault(sid, {"results": [], "searched": False})


def _image_panel(session: EditingSession, sid: str, search: ImageSearchClient | None) -> None:
    slide = session.get(sid)
    found = _search_state(st.session_state, sid)
    with st.expander("Image"):
        if slide.image_url:
            st.image(slide.image_url, use_container_width=True)
            if st.button("Remove image", key=f"{sid}-noimg"):
                session.set_image(sid, None)
                st.rerun()
        if search is None:
            st.info("Set PEXELS_API_KEY to search stock photos.")
            return
        query = st.text_input("Search photos", slide.image_prompt, key=f"{sid}-q")
        if st.button("Search", key=f"{sid}-search"):
            try:
                found["results"] = search.search(query)
            except Exception as exc:
                st.error(f"Image search failed: {exc}")
                found["results"] = []
            found["searched"] = True
        results = found["results"]
        if found["searched"] and not results:
            st.write("No images found.")
        cols = st.columns(4)
        for n, cand in enumerate(results):
            col = cols[n % 4]
            col.image(cand.thumbnail_url, caption=cand.alt or None)
            if col.button("Use", key=f"{sid}-use-{cand.id}-{n}"):
                session.set_image(sid, cand.full_url)
                found["results"] = []
                found["searched"] = False
                st.rerun()


def _editor(session: EditingSession, clients: dict) -> None:
    slides = session.slides
    labels = [f"{n + 1}. {s.title or '(untitled)'}" for n, s in enumerate(slides)]
    nav = Navigator(len(slides), st.session_state.get("nav_index", 0))
    with st.sidebar:
        st.header("Slides")
        picked = st.radio("Slide", range(len(slides)), index=nav.index, format_func=lambda n: labels[n])
        nav.go(picked)
        st.session_state["nav_index"] = nav.index
    slide = slides[nav.index]
    sid = slide.id
    rev = st.session_state["rev"]

    title = st.text_input("Title", slide.title, key=f"{sid}-{rev}-title")
    if title != slide.title:
        session.update_field(sid, "title", title)

    c1, c2 = st.columns(2)
    layout = c1.selectbox("Layout", LAYOUTS, index=LAYOUTS.index(slide.layout), key=f"{sid}-{rev}-layout")
    if layout != slide.layout:
        session.change_layout(sid, layout)
        _bump()
        st.rerun()
    if supports_image_position(slide.layout):
        pos = c2.selectbox("Image position", IMAGE_POSITIONS, index=IMAGE_POSITIONS.index(slide.image_position),
                           key=f"{sid}-{rev}-pos")
        if pos != slide.image_position:
            session.set_image_position(sid, pos)

    decoded = decode(slide.layout, slide.content)
    st.markdown("**Content**")
    if isinstance(decoded, SLOT_VARIANTS):
        _edit_slot_fields(session, sid, decoded, rev)
    elif isinstance(decoded, ItemListContent):
        _edit_items(session, sid, decoded, rev)
    elif isinstance(decoded, TimelineContent):
        _edit_timeline(session, sid, decoded, rev)
    elif isinstance(decoded, FeaturesContent):
        _edit_features(session, sid, decoded, rev)
    elif isinstance(decoded, ChartContent):
        _edit_chart(session, sid, decoded, rev)
    elif isinstance(decoded, HierarchyContent):
        _edit_hierarchy(session, sid, decoded, rev)
    if not isinstance(decoded, SLOT_VARIANTS + (HierarchyContent,)):
        if st.button("Add item", key=f"{sid}-{rev}-add"):
            session.add_structured_item(sid)
            _bump()
            st.rerun()

    _image_panel(session, sid, clients.get("search"))

    st.divider()
    st.markdown(SLIDE_CSS + render_slide(session.get(sid)).to_html(), unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# Presenter
# ---------------------------------------------------------------------------


def _presenter(session: EditingSession) -> None:
    slides = session.slides
    nav = Navigator(len(slides), st.session_state.get("nav_index", 0))
    c1, c2, c3 = st.columns([1, 6, 1])
    if c1.button("◀ Prev", disabled=nav.at_start):
        st.session_state["nav_index"] = nav.prev()
        st.rerun()
    c2.markdown(f"<p style='text-align:center'>{nav.index + 1} / {nav.count}</p>", unsafe_allow_html=True)
    if c3.button("Next ▶", disabled=nav.at_end):
        st.session_state["nav_index"] = nav.next()
        st.rerun()
    st.markdown(SLIDE_CSS + render_slide(slides[nav.index]).to_html(), unsafe_allow_html=True)

    st.divider()
    if st.button("Prepare downloads"):
        out_dir = Path(st.session_state["work_dir"]) / "exports"
        base = deck_basename(slides)
        with st.spinner("Exporting..."):
            DeckJSONStore(out_dir).save(slides)
            st.session_state["exports"] = [
                export_pptx(slides, out_dir / f"{base}.pptx"),
                export_pdf(slides, out_dir / f"{base}.pdf"),
            ]
    for result in st.session_state.get("exports") or []:
        mime = (
            "application/vnd.openxmlformats-officedocument.presentationml.presentation"
            if result.path.suffix == ".pptx"
            else "application/pdf"
        )
        st.download_button(f"Download {result.path.name}", data=result.path.read_bytes(),
                           file_name=result.path.name, mime=mime)
        if result.failed:
            st.warning(f"{len(result.failed)} slide(s) could not be rendered and were replaced by a placeholder.")


def main() -> None:
    st.set_page_config(page_title=APP_TITLE, layout="wide")
    st.title(APP_TITLE)
    st.caption("Turn text, PDFs and recordings into an editable slide deck.")
    load_dotenv(Path(__file__).parent / ".env", override=False)

    if "work_dir" not in st.session_state:
        st.session_state["work_dir"] = tempfile.mkdtemp(prefix="deckstudio_gui_")
    if "gui_config" not in st.session_state:
        st.session_state["gui_config"] = _load_gui_config()
    if "flow" not in st.session_state:
        st.session_state["flow"] = GenerationFlow()
        st.session_state["rev"] = 0
    if "log_handler" not in st.session_state:
        out_root = Path(st.session_state["gui_config"].get("root_dir", str(Path.home() / "deckstudio_runs")))
        setup_logging(False, log_path=out_root.expanduser() / "gui.log")
        handler = _LogBufferHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logging.getLogger().addHandler(handler)
        st.session_state["log_handler"] = handler

    try:
        clients = _clients()
    except ConfigurationError as exc:
        st.error(str(exc))
        st.stop()

    flow: GenerationFlow = st.session_state["flow"]

    with st.sidebar:
        st.caption(f"Model: {clients['model']}")
        default_root = st.session_state["gui_config"].get("root_dir", str(Path.home() / "deckstudio_runs"))
        root_dir = st.text_input("Log directory", value=default_root)
        if st.button("Save as default"):
            st.session_state["gui_config"]["root_dir"] = root_dir
            _save_gui_config(st.session_state["gui_config"])
            st.success("Default saved")
        if flow.stage != "landing" and st.button("Start over"):
            flow.reset()
            for key in ("session", "exports", "image_search", "nav_index"):
                st.session_state.pop(key, None)
            _bump()
            st.rerun()

    if flow.stage == "landing":
        _landing(flow, clients)
    elif flow.stage == "generating":
        _generating(flow, st.session_state["log_handler"])
    elif flow.stage == "error":
        st.error(flow.error)
        if st.button("Try again"):
            flow.reset()
            st.rerun()
    else:
        if "session" not in st.session_state:
            st.session_state["session"] = EditingSession(flow.slides)
            st.session_state["nav_index"] = 0
        session: EditingSession = st.session_state["session"]
        tab_edit, tab_present = st.tabs(["Edit", "Present"])
        with tab_edit:
            _editor(session, clients)
        with tab_present:
            _presenter(session)

    st.divider()
    st.caption("Tip: set NVIDIA_API_KEY (and optionally PEXELS_API_KEY) before launching Streamlit.")


if __name__ == "__main__":
    main()
