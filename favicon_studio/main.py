import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from favicon_studio.core.editor_session import EditSession
from favicon_studio.core.errors import IconStudioError, user_message
from favicon_studio.core.exporter import write_bundle
from favicon_studio.core.models import BorderType, FaviconSet, StyleOptions
from favicon_studio.core.pipeline import GenerationSession
from favicon_studio.services.brand_analyzer import GeminiBrandAnalyzer
from favicon_studio.utils.archive import ArchiveStore
from favicon_studio.utils.config import AppConfig

EDIT_FLAGS = {
    "scale": "scale",
    "padding": "padding",
    "rotation": "rotation",
    "position_x": "position_x",
    "position_y": "position_y",
    "background": "background_color",
    "radius": "border_radius",
}


def print_progress(percent: int, message: str):
    print(f"[{percent:3d}%] {message}")


def apply_edit(favicon_set: FaviconSet, args) -> None:
    try:
        icon = favicon_set.icon(args.edit)
    except KeyError:
        print(f"Error: No icon named {args.edit}. Available: {', '.join(i.label for i in favicon_set.icons)}")
        sys.exit(1)
    changes = {field: getattr(args, flag) for flag, field in EDIT_FLAGS.items() if getattr(args, flag) is not None}
    session = EditSession()
    session.open(icon)
    state = session.update(changes)
    session.commit()
    print(f"[OK] Edited {icon.label} (scale {state.scale:g}, rotation {state.rotation:g}, padding {state.padding:g})")


def run_generate(args, config: AppConfig):
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}")
        sys.exit(1)

    analyzer = None
    api_key = os.getenv("GEMINI_API_KEY")
    if not args.no_ai:
        if api_key:
            analyzer = GeminiBrandAnalyzer(api_key=api_key, model=args.model or config.gemini_model)
        else:
            print("No GEMINI_API_KEY set; using default brand colors.")

    try:
        style = StyleOptions(
            border_type=BorderType(args.border or config.border_type),
            outline_enabled=args.outline,
            outline_color=args.outline_color or config.outline_color,
            outline_intensity=args.outline_intensity or config.outline_intensity,
        )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    archive = ArchiveStore(Path(args.archive)) if args.archive else None
    session = GenerationSession(analyzer=analyzer, style=style, on_progress=print_progress, archive=archive)
    try:
        favicon_set = asyncio.run(session.generate(input_path.read_bytes(), input_path.name))
    except IconStudioError as e:
        print(f"Error: {user_message(e)}")
        sys.exit(1)
    if favicon_set is None:
        print("Generation cancelled.")
        return

    if session.last_analysis and session.last_analysis.short_description:
        print(f"Brand: {session.last_analysis.short_description}")

    if args.edit:
        try:
            apply_edit(favicon_set, args)
        except IconStudioError as e:
            print(f"Error: Failed to edit {args.edit}: {user_message(e)}")
            sys.exit(1)

    out_dir = Path(args.out_dir) if args.out_dir else input_path.parent
    try:
        bundle = write_bundle(favicon_set, out_dir, include_ico=not args.no_ico)
    except OSError as e:
        print(f"Error: Failed to write bundle: {e}")
        sys.exit(1)

    config.add_recent_file(input_path.resolve())
    config.save()
    print(f"Exported {len(favicon_set.icons)} icons: {bundle}")


def run_list_archive(args):
    archive = ArchiveStore(Path(args.archive)) if args.archive else ArchiveStore()
    sets = archive.load()
    if not sets:
        print("No archived icon sets.")
        return
    for s in sets:
        created = datetime.fromtimestamp(s.created_at / 1000).strftime("%Y-%m-%d %H:%M")
        edited = sum(1 for icon in s.icons if icon.is_edited)
        print(f"{created}  {s.original_file_name}  {len(s.icons)} icons ({edited} edited)  {s.id}")


def main():
    parser = argparse.ArgumentParser(description="Favicon & app icon set generator")
    parser.add_argument("--input", type=str, help="Logo image (PNG, JPEG, WEBP or SVG)")
    parser.add_argument("--out-dir", type=str, help="Directory for the ZIP bundle (default: next to input)")
    parser.add_argument("--border", type=str, choices=[b.value for b in BorderType],
                        help="Background shape for non-favicon icons")
    parser.add_argument("--outline", action="store_true", help="Draw a soft glow behind the logo")
    parser.add_argument("--outline-color", type=str, help="Glow color (hex)")
    parser.add_argument("--outline-intensity", type=int, help="Glow intensity 1-25")
    parser.add_argument("--no-ai", action="store_true", help="Skip AI brand analysis and use defaults")
    parser.add_argument("--model", type=str, help="Gemini model for brand analysis")
    parser.add_argument("--no-ico", action="store_true", help="Do not add favicon.ico to the bundle")
    parser.add_argument("--archive", type=str, help="Archive file to record generated sets in")
    parser.add_argument("--list-archive", action="store_true", help="List archived icon sets and exit")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    # Single-icon edit
    parser.add_argument("--edit", type=str, help="Icon label to edit, e.g. apple-180x180.png")
    parser.add_argument("--scale", type=float, help="Logo scale 0.1-2.0")
    parser.add_argument("--padding", type=float, help="Padding in pixels 0-50")
    parser.add_argument("--rotation", type=float, help="Rotation in degrees")
    parser.add_argument("--position-x", type=float, help="Horizontal offset -100..100")
    parser.add_argument("--position-y", type=float, help="Vertical offset -100..100")
    parser.add_argument("--background", type=str, help="Background hex color or 'transparent'")
    parser.add_argument("--radius", type=float, help="Corner radius percent 0-50")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    if args.list_archive:
        run_list_archive(args)
        return
    if not args.input:
        parser.error("--input is required (or use --list-archive)")
    run_generate(args, AppConfig())


if __name__ == "__main__":
    main()
