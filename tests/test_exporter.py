import zipfile
from io import BytesIO

from PIL import Image

from favicon_studio.core.editor_session import EditSession
from favicon_studio.core.exporter import build_bundle, build_ico, bundle_file_name, export_icon, write_bundle


def zip_names(data: bytes) -> set[str]:
    with zipfile.ZipFile(BytesIO(data)) as zf:
        return set(zf.namelist())


def test_bundle_without_edits(favicon_set):
    data = build_bundle(favicon_set)
    names = zip_names(data)
    assert {icon.label for icon in favicon_set.icons} <= names
    assert {"integration.html", "manifest.json", "README.md", "favicon.ico"} <= names
    assert not any(name.startswith(("edited/", "original/")) for name in names)
    with zipfile.ZipFile(BytesIO(data)) as zf:
        assert "All icons are ready to use!" in zf.read("README.md").decode()
        assert zf.read("manifest.json").decode() == favicon_set.manifest_json


def test_bundle_separates_edited_icons(favicon_set):
    icon = favicon_set.icon("apple-180x180.png")
    session = EditSession()
    session.open(icon)
    session.update(rotation=90)
    session.commit()

    data = build_bundle(favicon_set, include_ico=False)
    names = zip_names(data)
    assert "edited/apple-180x180.png" in names
    assert "original/apple-180x180.png" in names
    assert "apple-180x180.png" not in names
    assert "favicon.ico" not in names
    with zipfile.ZipFile(BytesIO(data)) as zf:
        assert zf.read("edited/apple-180x180.png") == icon.edited_raster
        assert zf.read("original/apple-180x180.png") == icon.raster
        assert "- apple-180x180.png" in zf.read("README.md").decode()


def test_ico_contains_favicon_sizes(favicon_set):
    ico = Image.open(BytesIO(build_ico(favicon_set)))
    assert ico.format == "ICO"
    assert (256, 256) in ico.info["sizes"]
    assert (16, 16) in ico.info["sizes"]


def test_write_bundle_uses_stem(favicon_set, tmp_path):
    assert bundle_file_name(favicon_set) == "logo-icons.zip"
    path = write_bundle(favicon_set, tmp_path / "out")
    assert path == tmp_path / "out" / "logo-icons.zip"
    assert zipfile.is_zipfile(path)


def test_export_icon_names_edited_files(favicon_set, tmp_path):
    icon = favicon_set.icon("favicon-32x32.png")
    assert export_icon(icon, tmp_path).name == "favicon-32x32.png"
    icon.edited_raster = icon.raster
    path = export_icon(icon, tmp_path)
    assert path.name == "favicon-32x32-edited.png"
    assert path.read_bytes() == icon.raster
