import io
import mimetypes
from pathlib import Path
from typing import Any, Optional

from PyQt5.QtCore import Qt
from PyQt5.QtGui import QPixmap
from PyQt5.QtWidgets import (
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from CS_Libs.constants import DEFAULT_FONT_FAMILY, DEFAULT_FONT_POINTS, FONT_OPTIONS, FONT_SIZE_PRESETS
from CS_Libs.EditingLib.adjustments import FILTERS, AdjustmentSettings, FilterEffect
from CS_Libs.EditingLib.editor_session import TOOL_CROP, TOOL_OVERLAYS, EditorSession
from CS_Libs.EditingLib.image_codec import decode_image
from CS_Libs.EditingLib.overlay_engine import points_to_font_size
from CS_Libs.errors import StudioError
from CS_Libs.settings import StudioSettings
from CS_Libs.VersionStoreLib.asset_storage import LocalAssetStorage
from CS_Libs.VersionStoreLib.version_store import VersionStore


class StudioWindow(QMainWindow):
    def __init__(self, settings: Optional[StudioSettings] = None) -> None:
        super().__init__()
        self.settings = settings or StudioSettings()
        self.setWindowTitle("Canvas Studio")
        self.resize(self.settings.window_width, self.settings.window_height)

        self.storage = LocalAssetStorage(Path(self.settings.storage_dir))
        self.store = VersionStore(self.storage, max_workers=self.settings.max_apply_workers)
        self.session: Optional[EditorSession] = None

        self._build_ui()
        self._connect_signals()
        self.refresh_assets()

    def _build_ui(self) -> None:
        central = QWidget(self)
        self.setCentralWidget(central)

        root = QHBoxLayout(central)
        controls_col = QVBoxLayout()

        self.btn_import = QPushButton("Import Asset")
        self.assets_list = QListWidget()
        self.versions_list = QListWidget()
        self.btn_delete_version = QPushButton("Delete Version")

        self.btn_rotate_left = QPushButton("Rotate Left")
        self.btn_rotate_right = QPushButton("Rotate Right")
        self.btn_apply_crop = QPushButton("Apply Rotation")

        self.text_input = QLineEdit()
        self.text_input.setPlaceholderText("Overlay text")
        self.font_combo = QComboBox()
        self.font_combo.addItems(FONT_OPTIONS)
        self.font_combo.setCurrentText(DEFAULT_FONT_FAMILY)
        self.font_size_combo = QComboBox()
        self.font_size_combo.addItems([str(points) for points in FONT_SIZE_PRESETS])
        self.font_size_combo.setCurrentText(str(DEFAULT_FONT_POINTS))
        self.btn_add_text = QPushButton("Add Text")
        self.btn_add_logo = QPushButton("Add Logo")
        self.btn_apply_overlays = QPushButton("Apply Overlays")

        self.brightness_slider = QSlider(Qt.Horizontal)
        self.brightness_slider.setRange(0, 200)
        self.brightness_slider.setValue(100)
        self.filter_combo = QComboBox()
        self.filter_combo.addItem("(none)")
        self.filter_combo.addItems(sorted(FILTERS))
        self.btn_apply_adjustments = QPushButton("Apply Adjustments")

        self.label_preview = QLabel("Preview")
        self.label_preview.setAlignment(Qt.AlignCenter)
        self.label_preview.setMinimumSize(700, 500)
        self.label_preview.setStyleSheet("border: 1px solid #888;")

        controls_col.addWidget(self.btn_import)
        controls_col.addWidget(QLabel("Assets"))
        controls_col.addWidget(self.assets_list)
        controls_col.addWidget(QLabel("Versions"))
        controls_col.addWidget(self.versions_list)
        controls_col.addWidget(self.btn_delete_version)
        controls_col.addWidget(self.btn_rotate_left)
        controls_col.addWidget(self.btn_rotate_right)
        controls_col.addWidget(self.btn_apply_crop)
        controls_col.addWidget(self.text_input)
        controls_col.addWidget(self.font_combo)
        controls_col.addWidget(self.font_size_combo)
        controls_col.addWidget(self.btn_add_text)
        controls_col.addWidget(self.btn_add_logo)
        controls_col.addWidget(self.btn_apply_overlays)
        controls_col.addWidget(QLabel("Brightness"))
        controls_col.addWidget(self.brightness_slider)
        controls_col.addWidget(self.filter_combo)
        controls_col.addWidget(self.btn_apply_adjustments)

        root.addLayout(controls_col, stretch=1)
        root.addWidget(self.label_preview, stretch=2)

    def _connect_signals(self) -> None:
        self.btn_import.clicked.connect(self.import_asset)
        self.assets_list.currentRowChanged.connect(self.on_asset_selected)
        self.versions_list.itemClicked.connect(self.on_version_clicked)
        self.btn_delete_version.clicked.connect(self.delete_selected_version)
        self.btn_rotate_left.clicked.connect(lambda: self.rotate(clockwise=False))
        self.btn_rotate_right.clicked.connect(lambda: self.rotate(clockwise=True))
        self.btn_apply_crop.clicked.connect(self.apply_crop)
        self.btn_add_text.clicked.connect(self.add_text)
        self.btn_add_logo.clicked.connect(self.add_logo)
        self.btn_apply_overlays.clicked.connect(self.apply_overlays)
        self.btn_apply_adjustments.clicked.connect(self.apply_adjustments)

    # ------------------------------------------------------------------
    # Assets and versions
    # ------------------------------------------------------------------

    def import_asset(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Import Image",
            "",
            "Images (*.png *.jpg *.jpeg *.webp *.bmp)",
        )
        if file_path:
            self.import_file(Path(file_path))

    def import_file(self, path: Path) -> None:
        mime_type = mimetypes.guess_type(path.name)[0] or ""
        try:
            self.storage.create_asset(path.read_bytes(), mime_type)
        except (StudioError, OSError) as e:
            QMessageBox.warning(self, "Import Failed", str(e))
            return
        self.refresh_assets()
        self.assets_list.setCurrentRow(self.assets_list.count() - 1)

    def refresh_assets(self) -> None:
        self.assets_list.clear()
        for asset in self.storage.list_assets():
            item = QListWidgetItem(f"{asset.kind}: {asset.asset_id[:8]}")
            item.setData(Qt.UserRole, asset.asset_id)
            self.assets_list.addItem(item)

    def on_asset_selected(self, index: int) -> None:
        item = self.assets_list.item(index)
        if item is None:
            self.session = None
            self.versions_list.clear()
            self.label_preview.setText("Preview")
            return
        self.session = EditorSession(self.store, item.data(Qt.UserRole))
        self.refresh_versions()

    def refresh_versions(self) -> None:
        self.versions_list.clear()
        if self.session is None:
            return
        try:
            entries = self.store.version_entries(self.session.asset_id, refresh=True)
        except StudioError as e:
            QMessageBox.warning(self, "Versions", str(e))
            return

        viewing = self.store.viewing_version(self.session.asset_id)
        for version in entries:
            label = "Original" if version.is_original else f"Version {version.version_num}"
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, version.version_num)
            self.versions_list.addItem(item)
            if version.version_num == viewing:
                self.versions_list.setCurrentItem(item)
        self.refresh_preview()

    def on_version_clicked(self, item: QListWidgetItem) -> None:
        if self.session is None:
            return
        if not self.session.view_version(item.data(Qt.UserRole)):
            self._report_error()
            self.refresh_versions()
            return
        self.refresh_preview()

    def delete_selected_version(self) -> None:
        item = self.versions_list.currentItem()
        if self.session is None or item is None:
            return
        self.session.delete_version(item.data(Qt.UserRole))
        self._report_error()
        self.refresh_versions()

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def rotate(self, clockwise: bool) -> None:
        if self.session is None:
            return
        if self.session.active_tool != TOOL_CROP and self.session.open_crop() is None:
            self._report_error()
            return
        if clockwise:
            self.session.crop.rotate_right()
        else:
            self.session.crop.rotate_left()
        self.refresh_preview()

    def apply_crop(self) -> None:
        if self.session is None:
            return
        self.session.apply_crop()
        self._after_apply()

    def add_text(self) -> None:
        if self.session is None:
            return
        if self.session.active_tool != TOOL_OVERLAYS:
            self.session.open_overlays()
        self.session.overlays.add_text_overlay(
            self.text_input.text() or "Text",
            font_size=points_to_font_size(int(self.font_size_combo.currentText())),
            font_family=self.font_combo.currentText(),
        )
        self.refresh_preview()

    def add_logo(self) -> None:
        if self.session is None:
            return
        file_path, _ = QFileDialog.getOpenFileName(self, "Select Logo", "", "Images (*.png *.jpg *.jpeg *.webp)")
        if file_path:
            self.add_logo_file(Path(file_path))

    def add_logo_file(self, path: Path) -> None:
        if self.session is None:
            return
        try:
            logo_ref = self.storage.add_library_image(path.read_bytes(), mimetypes.guess_type(path.name)[0] or "")
        except (StudioError, OSError) as e:
            QMessageBox.warning(self, "Logo", str(e))
            return
        if self.session.active_tool != TOOL_OVERLAYS:
            self.session.open_overlays()
        self.session.overlays.add_image_overlay(logo_ref, name=path.stem)
        self.refresh_preview()

    def apply_overlays(self) -> None:
        if self.session is None:
            return
        self.session.apply_overlays()
        self._after_apply()

    def apply_adjustments(self) -> None:
        if self.session is None or not self.session.open_adjustments():
            self._report_error()
            return
        settings = AdjustmentSettings(brightness=self.brightness_slider.value())
        effects = []
        if self.filter_combo.currentIndex() > 0:
            effects.append(FilterEffect(self.filter_combo.currentText()))
        self.session.apply_adjustments(settings, effects)
        self._after_apply()

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def refresh_preview(self) -> None:
        if self.session is None:
            self.label_preview.setText("Preview")
            return
        try:
            image = self._current_preview()
        except StudioError as e:
            self.label_preview.setText(str(e))
            return
        self._set_preview(self.label_preview, image)

    def _current_preview(self) -> Any:
        session = self.session
        if session.active_tool == TOOL_CROP:
            return session.crop.render_preview(session.base_bytes())
        base = session.base_bytes()
        if session.active_tool == TOOL_OVERLAYS and len(session.overlays):
            base = session.overlays.flatten_all(base, resolve_asset=self.storage.fetch_raster)
        return decode_image(base, "preview")

    def _set_preview(self, label: QLabel, image: Any) -> None:
        image_rgb = image.convert("RGB")
        pixmap = QPixmap()
        if not pixmap.loadFromData(self._to_png_bytes(image_rgb), "PNG"):
            label.setText("Preview failed")
            return

        scaled = pixmap.scaled(
            label.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        label.setPixmap(scaled)

    def _to_png_bytes(self, image: Any) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def _after_apply(self) -> None:
        self._report_error()
        self.refresh_versions()

    def _report_error(self) -> None:
        if self.session is not None and self.session.error_message:
            QMessageBox.warning(self, "Canvas Studio", self.session.error_message)
            self.session.dismiss_error()

    def closeEvent(self, event: Any) -> None:
        self.store.shutdown(wait=False)
        super().closeEvent(event)
