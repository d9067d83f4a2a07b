import logging
import zipfile
from io import BytesIO
from pathlib import Path

from favicon_studio.core.icon_generator import save_ico_from_images
from favicon_studio.core.image_handler import decode_raster
from favicon_studio.core.models import FaviconSet, IconGroup, IconResult
from favicon_studio.utils.helpers import file_stem

logger = logging.getLogger(__name__)

README_EDITED = """# FaviconGen Icons Package

## Edited Icons
The following icons have been customized using the FaviconGen editor:

{files}

### Folder Structure
- `/` - Non-edited icons (ready to use)
- `/edited/` - Your customized versions
- `/original/` - Original versions of edited icons (for comparison)

Use the files in `/edited/` folder for the icons you customized.
All other icons can be used directly from the root folder.
"""

README_PLAIN = """# FaviconGen Icons Package

All icons are ready to use!

## Integration
See `integration.html` for code to add to your website's <head> section.
See `manifest.json` for the PWA manifest file.
"""


def build_ico(favicon_set: FaviconSet) -> bytes:
    """Multi-resolution favicon.ico from the displayed favicon-group rasters."""
    images = [(icon.size, decode_raster(icon.display_raster)) for icon in favicon_set.group(IconGroup.FAVICON)]
    buf = BytesIO()
    save_ico_from_images(images, buf)
    return buf.getvalue()


def build_bundle(favicon_set: FaviconSet, include_ico: bool = True) -> bytes:
    edited: list[str] = []
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for icon in favicon_set.icons:
            if icon.is_edited:
                zf.writestr(f"edited/{icon.label}", icon.edited_raster)
                zf.writestr(f"original/{icon.label}", icon.raster)
                edited.append(icon.label)
            else:
                zf.writestr(icon.label, icon.raster)
        zf.writestr("integration.html", favicon_set.html_snippet)
        zf.writestr("manifest.json", favicon_set.manifest_json)
        if edited:
            zf.writestr("README.md", README_EDITED.format(files="\n".join(f"- {label}" for label in edited)))
        else:
            zf.writestr("README.md", README_PLAIN)
        if include_ico:
            zf.writestr("favicon.ico", build_ico(favicon_set))
    return buf.getvalue()


def bundle_file_name(favicon_set: FaviconSet) -> str:
    return f"{file_stem(favicon_set.original_file_name)}-icons.zip"


def write_bundle(favicon_set: FaviconSet, out_dir: str | Path, include_ico: bool = True) -> Path:
    out_path = Path(out_dir) / bundle_file_name(favicon_set)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(build_bundle(favicon_set, include_ico=include_ico))
    logger.info("Wrote %s", out_path)
    return out_path


def export_icon(icon: IconResult, out_dir: str | Path) -> Path:
    name = f"{icon.label.removesuffix('.png')}-edited.png" if icon.is_edited else icon.label
    out_path = Path(out_dir) / name
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(icon.display_raster)
    return out_path
