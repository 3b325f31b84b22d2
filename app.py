from __future__ import annotations

from pathlib import Path
import streamlit as st

import sys
import subprocess

from src.markswap.batch_runner import run_batch
from src.markswap.config import VARIANTS, settings_for_variant
from src.markswap.ffmpeg_tools import ToolNotFoundError
from src.markswap.paths import RUNS_DIRNAME
from src.markswap.report_store import load_run_log


# -----------------------------
# Utils
# -----------------------------

def _progress_callback(progress_bar, status_box):
    def cb(done: int, total: int, message: str) -> None:
        if total > 0:
            progress_bar.progress(min(done / total, 1.0))
        status_box.write(message)
    return cb


def _pick_directory_dialog() -> str:
    """
    Native folder picker.
    - macOS: AppleScript (stable with Streamlit)
    - other OS: empty string (manual paste fallback)
    """
    if sys.platform == "darwin":
        script = 'POSIX path of (choose folder with prompt "Select video folder")'
        try:
            out = subprocess.check_output(
                ["osascript", "-e", script],
                text=True
            ).strip()
            return out or ""
        except (OSError, subprocess.CalledProcessError):
            return ""
    return ""


def _latest_run_log(output_dir: Path) -> Path | None:
    runs_dir = output_dir / RUNS_DIRNAME
    if not runs_dir.is_dir():
        return None
    logs = sorted(runs_dir.glob("run_*.json"))
    return logs[-1] if logs else None


# -----------------------------
# Page setup
# -----------------------------

st.set_page_config(page_title="Watermark Swap", layout="wide")

st.title("Watermark Swap")
st.caption("Batch watermark detection + brand replacement (local, resumable).")


# -----------------------------
# Sidebar
# -----------------------------

with st.sidebar:
    st.header("Settings")

    st.subheader("💾 I/O Paths")

    if "input_dir_value" not in st.session_state:
        st.session_state["input_dir_value"] = str(Path.cwd() / "data" / "videos")

    # Apply pending update BEFORE widget creation
    pending = st.session_state.pop("input_dir_pending", None)
    if pending:
        st.session_state["input_dir_value"] = pending

    st.text_input(
        "Input folder (videos)",
        value=st.session_state["input_dir_value"],
        key="input_dir_widget",
    )

    browse_btn = st.button("Browse…", use_container_width=True)

    st.session_state["input_dir_value"] = st.session_state.get(
        "input_dir_widget",
        st.session_state["input_dir_value"],
    )

    if browse_btn:
        chosen = _pick_directory_dialog()
        if chosen:
            st.session_state["input_dir_pending"] = chosen
            st.rerun()
        else:
            st.warning("Folder picker cancelled. Paste the path manually.")

    variant = st.selectbox(
        "Variant",
        options=sorted(VARIANTS),
        index=sorted(VARIANTS).index("enhanced-ai"),
        help="Presets change output naming and detection constants.",
    )

    default_output = str(Path(st.session_state["input_dir_value"]).expanduser().parent / f"videos-{variant}")
    output_dir_str = st.text_input("Output folder", value=default_output)

    st.divider()

    st.subheader("🏷️ Brand")
    preset = VARIANTS[variant]
    brand_text = st.text_input("Brand text", value=preset.brand_text)
    limit = st.number_input("Limit (0 = all)", min_value=0, max_value=100000, value=5, step=1)

    st.divider()

    advanced = st.toggle("Advanced settings", value=False)

    threshold = preset.detection_threshold
    image_delta_cap = preset.image_delta_cap
    item_delay = preset.item_delay_sec
    batch_delay = preset.batch_delay_sec
    batch_size = preset.batch_size

    if advanced:
        st.subheader("🔎 Detection")
        threshold = st.slider("Detection threshold", 0.0, 1.0, preset.detection_threshold, 0.05)
        image_delta_cap = st.slider("Image signal cap", 0.0, 0.3, preset.image_delta_cap, 0.05)

        st.divider()

        st.subheader("⏳ Throttling")
        item_delay = st.number_input("Pause between videos (sec)", 0.0, 60.0, preset.item_delay_sec, 0.5)
        batch_delay = st.number_input("Pause between batches (sec)", 0.0, 600.0, preset.batch_delay_sec, 1.0)
        batch_size = st.number_input("Batch size", 1, 1000, preset.batch_size, 1)

    run_btn = st.button("Process folder", type="primary")


# -----------------------------
# Run
# -----------------------------

if run_btn:
    input_dir = Path(st.session_state["input_dir_value"]).expanduser()
    output_dir = Path(output_dir_str).expanduser()

    try:
        settings = settings_for_variant(
            variant,
            brand_text=brand_text,
            detection_threshold=float(threshold),
            image_delta_cap=float(image_delta_cap),
            item_delay_sec=float(item_delay),
            batch_delay_sec=float(batch_delay),
            batch_size=int(batch_size),
        )
    except ValueError as e:
        st.error(f"Invalid settings: {e}")
        st.stop()

    st.subheader("Progress")
    progress_bar = st.progress(0.0)
    status_box = st.empty()

    try:
        run = run_batch(
            input_dir=input_dir,
            output_dir=output_dir,
            settings=settings,
            limit=int(limit) or None,
            progress_callback=_progress_callback(progress_bar, status_box),
        )
    except (ToolNotFoundError, FileNotFoundError) as e:
        st.error(str(e))
        st.stop()

    st.success(f"Run completed: {run.run_id}")
    st.session_state["last_output_dir"] = str(run.output_dir)


# -----------------------------
# Results
# -----------------------------

st.divider()
st.subheader("Results")

last_output_dir = st.session_state.get("last_output_dir")

if not last_output_dir:
    st.info("No runs yet. Click 'Process folder' to start a batch.")
else:
    log_path = _latest_run_log(Path(last_output_dir))

    if log_path is None:
        st.warning("No run log found in the output folder.")
    else:
        data = load_run_log(log_path)
        st.caption(f"Run ID: {data['run_id']} | Input: {data['input_dir']}")

        cols = st.columns(5)
        cols[0].metric("Processed", data["processed"])
        cols[1].metric("Successful", data["successful"])
        cols[2].metric("Failed", data["failed"])
        cols[3].metric("Skipped", data["skipped"])
        cols[4].metric("Success", f"{data['success_rate'] * 100:.0f}%")

        for o in data.get("outcomes", []):
            name = Path(o["input_path"]).name
            if o["state"] == "skipped":
                continue

            loc = o.get("location") or {}
            region = loc.get("region") or {}
            header = f"{name} | {o['state']}"
            if loc:
                header += f" | {loc['decision']}: {region.get('label')} ({loc['score']:.2f})"

            with st.expander(header):
                if o.get("error"):
                    st.error(o["error"])
                st.write(f"Frames sampled: {o['frames_sampled']} | elapsed: {o['elapsed_sec']:.1f}s")
                rows = [
                    {"region": s["region"]["label"], "score": round(s["score"], 2), "frame": s["frame_tag"]}
                    for s in o.get("top_regions", [])
                ]
                if rows:
                    st.table(rows)
