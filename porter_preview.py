import logging
import os
import sys

import numpy as np
from PIL import Image
from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtGui import QImage, QPixmap
from PyQt5.QtWidgets import (
    QAction,
    QApplication,
    QButtonGroup,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMenu,
    QMessageBox,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

import config
from pixel_properties import SortProperty
from pixel_sorter import sort_buffer, sort_pixels

logger = logging.getLogger(__name__)


def clamp_thresholds(lower, higher, previous_higher, upper_bound):
    """
    Keep the threshold pair ordered and inside [0, upper_bound].

    The lower value may not pass the previous higher one; the higher value
    may not drop below the (already clamped) lower one.
    """
    lower = max(0, min(lower, previous_higher, upper_bound))
    higher = max(lower, min(higher, upper_bound))
    return lower, higher


def buffer_to_qimage(buffer):
    """Wrap an (H, W, 4) uint8 buffer in a QImage that owns its own copy."""
    buffer = np.ascontiguousarray(buffer)
    height, width, _ = buffer.shape
    image = QImage(buffer.tobytes(), width, height, 4 * width, QImage.Format_RGBA8888)
    return image.copy()


class PorterApp(QMainWindow):
    def __init__(self):
        super().__init__()
        self.input_path = None
        self.source = None  # Downscaled, unsorted RGBA buffer
        self.sort_property = SortProperty.parse(config.DEFAULT_PROPERTY)
        self.lower_threshold = config.DEFAULT_LOWER_THRESHOLD
        self.higher_threshold = self.sort_property.upper_bound
        self.recent_files = []
        self.is_processing = False
        self.load_recent_files()
        self.init_ui()

        self.preview_timer = QTimer(self)
        self.preview_timer.setSingleShot(True)
        self.preview_timer.timeout.connect(self.update_preview)

    def init_ui(self):
        self.setWindowTitle("Porter")
        self.resize(*config.WINDOW_SIZE)

        self.create_menu_bar()

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        main_layout = QVBoxLayout()
        central_widget.setLayout(main_layout)

        # File selection group
        file_group = QGroupBox("File Selection")
        file_layout = QHBoxLayout()

        self.select_btn = QPushButton("Select Input File")
        self.select_btn.clicked.connect(self.select_file)
        file_layout.addWidget(self.select_btn)

        self.file_label = QLabel("No file selected")
        file_layout.addWidget(self.file_label)
        file_layout.addStretch()

        self.save_btn = QPushButton("Save Sorted")
        self.save_btn.clicked.connect(self.save_sorted)
        file_layout.addWidget(self.save_btn)

        file_group.setLayout(file_layout)
        main_layout.addWidget(file_group)

        # Parameters group
        params_group = QGroupBox("Sorting Parameters")
        params_layout = QHBoxLayout()

        params_layout.addWidget(QLabel("Lower threshold:"))
        self.lower_slider = QSlider(Qt.Horizontal)
        self.lower_label = QLabel()
        self.lower_label.setStyleSheet("font-weight: bold; min-width: 30px;")
        params_layout.addWidget(self.lower_slider)
        params_layout.addWidget(self.lower_label)

        params_layout.addWidget(QLabel("Higher threshold:"))
        self.higher_slider = QSlider(Qt.Horizontal)
        self.higher_label = QLabel()
        self.higher_label.setStyleSheet("font-weight: bold; min-width: 30px;")
        params_layout.addWidget(self.higher_slider)
        params_layout.addWidget(self.higher_label)

        self.property_group = QButtonGroup(self)
        self.property_group.setExclusive(True)
        for prop in SortProperty:
            button = QPushButton(prop.value.capitalize())
            button.setCheckable(True)
            button.setChecked(prop is self.sort_property)
            button.clicked.connect(lambda _, p=prop: self.set_property(p))
            self.property_group.addButton(button)
            params_layout.addWidget(button)

        params_group.setLayout(params_layout)
        main_layout.addWidget(params_group)

        self.sync_sliders()
        self.lower_slider.valueChanged.connect(self.on_lower_changed)
        self.higher_slider.valueChanged.connect(self.on_higher_changed)

        # Preview
        self.preview_label = QLabel("Preview will appear here")
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setMinimumSize(*config.PREVIEW_SIZE)
        main_layout.addWidget(self.preview_label, stretch=1)

        self.status_label = QLabel("Ready")
        main_layout.addWidget(self.status_label)

    def create_menu_bar(self):
        """Create the menu bar with File menu."""
        file_menu = self.menuBar().addMenu("&File")

        open_action = QAction("&Open...", self)
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.select_file)
        file_menu.addAction(open_action)

        self.recent_menu = QMenu("Open &Recent", self)
        file_menu.addMenu(self.recent_menu)
        self.update_recent_menu()

        save_action = QAction("&Save Sorted...", self)
        save_action.setShortcut("Ctrl+S")
        save_action.triggered.connect(self.save_sorted)
        file_menu.addAction(save_action)

        file_menu.addSeparator()

        quit_action = QAction("&Quit", self)
        quit_action.setShortcut("Ctrl+Q")
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

    def load_recent_files(self):
        """Load recent files list from a config file."""
        if not os.path.exists(config.RECENT_FILES_PATH):
            return
        try:
            with open(config.RECENT_FILES_PATH, "r") as f:
                self.recent_files = [line.strip() for line in f if line.strip()]
        except OSError as e:
            logger.warning("Error loading recent files: %s", e)
            self.recent_files = []
        self.recent_files = [f for f in self.recent_files if os.path.exists(f)]

    def save_recent_files(self):
        """Save recent files list to a config file."""
        try:
            with open(config.RECENT_FILES_PATH, "w") as f:
                for file_path in self.recent_files[: config.MAX_RECENT_FILES]:
                    f.write(file_path + "\n")
        except OSError as e:
            logger.warning("Error saving recent files: %s", e)

    def add_recent_file(self, file_path):
        if file_path in self.recent_files:
            self.recent_files.remove(file_path)
        self.recent_files.insert(0, file_path)
        self.recent_files = self.recent_files[: config.MAX_RECENT_FILES]

        self.save_recent_files()
        self.update_recent_menu()

    def update_recent_menu(self):
        self.recent_menu.clear()

        if not self.recent_files:
            empty_action = QAction("No recent files", self)
            empty_action.setEnabled(False)
            self.recent_menu.addAction(empty_action)
            return

        for file_path in self.recent_files:
            action = QAction(os.path.basename(file_path), self)
            action.setToolTip(file_path)
            action.triggered.connect(lambda _, p=file_path: self.load_file(p))
            self.recent_menu.addAction(action)

    def select_file(self):
        extensions = " ".join(f"*{ext}" for ext in config.SUPPORTED_FORMATS)
        filename, _ = QFileDialog.getOpenFileName(
            self, "Select Image", "", f"Images ({extensions});;All Files (*.*)"
        )
        if filename:
            self.load_file(filename)

    def load_file(self, filename):
        try:
            with Image.open(filename) as img:
                img.thumbnail(config.PREVIEW_SIZE, Image.Resampling.LANCZOS)
                self.source = np.array(img.convert("RGBA"))
        except (OSError, Image.DecompressionBombError) as e:
            QMessageBox.critical(self, "Error", f"Failed to load {filename}: {e}")
            return

        self.input_path = filename
        self.file_label.setText(os.path.basename(filename))
        self.add_recent_file(filename)
        self.schedule_preview_update()

    def set_property(self, prop):
        self.sort_property = prop
        self.sync_sliders()
        self.schedule_preview_update()

    def sync_sliders(self):
        """Re-range both sliders for the active property and re-clamp."""
        bound = self.sort_property.upper_bound
        self.lower_threshold, self.higher_threshold = clamp_thresholds(
            self.lower_threshold, self.higher_threshold, self.higher_threshold, bound
        )
        for slider, value in (
            (self.lower_slider, self.lower_threshold),
            (self.higher_slider, self.higher_threshold),
        ):
            slider.blockSignals(True)
            slider.setRange(0, bound)
            slider.setValue(value)
            slider.blockSignals(False)
        self.lower_label.setText(str(self.lower_threshold))
        self.higher_label.setText(str(self.higher_threshold))

    def on_lower_changed(self, value):
        self.lower_threshold, self.higher_threshold = clamp_thresholds(
            value,
            self.higher_threshold,
            self.higher_threshold,
            self.sort_property.upper_bound,
        )
        self.sync_sliders()
        self.schedule_preview_update()

    def on_higher_changed(self, value):
        self.lower_threshold, self.higher_threshold = clamp_thresholds(
            self.lower_threshold,
            value,
            self.higher_threshold,
            self.sort_property.upper_bound,
        )
        self.sync_sliders()
        self.schedule_preview_update()

    def schedule_preview_update(self):
        """Restart the debounce timer; the preview re-sorts once it fires."""
        if self.source is not None:
            self.preview_timer.start(config.PREVIEW_DEBOUNCE_MS)

    def update_preview(self):
        if self.source is None or self.is_processing:
            return

        self.is_processing = True
        self.status_label.setText("Processing preview...")
        try:
            # Always sort a fresh copy of the unsorted source
            buffer = sort_buffer(
                self.source.copy(),
                self.sort_property,
                self.lower_threshold,
                self.higher_threshold,
                config.DEFAULT_LUMINANCE_FORMULA,
            )
            pixmap = QPixmap.fromImage(buffer_to_qimage(buffer))
            self.preview_label.setPixmap(
                pixmap.scaled(
                    self.preview_label.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation
                )
            )
            self.status_label.setText(
                f"{self.sort_property.value}: {self.lower_threshold}-{self.higher_threshold}"
            )
        except ValueError as e:
            QMessageBox.critical(self, "Error", f"Sorting failed: {e}")
            self.status_label.setText("Error occurred")
        finally:
            self.is_processing = False

    def save_sorted(self):
        if not self.input_path:
            QMessageBox.warning(self, "No File", "Please select an input file first")
            return

        directory, name = os.path.split(self.input_path)
        default_name = os.path.join(directory, config.OUTPUT_PREFIX + name)
        output_path, _ = QFileDialog.getSaveFileName(
            self, "Save Sorted Image", default_name, "PNG (*.png);;JPEG (*.jpg);;All Files (*.*)"
        )
        if not output_path:
            return

        self.is_processing = True
        self.status_label.setText("Processing...")
        QApplication.processEvents()
        try:
            sort_pixels(
                self.input_path,
                output_path,
                self.sort_property,
                self.lower_threshold,
                self.higher_threshold,
                config.DEFAULT_LUMINANCE_FORMULA,
            )
            self.status_label.setText(f"Saved to {os.path.basename(output_path)}")
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            QMessageBox.critical(self, "Error", f"Failed to sort image {self.input_path}: {e}")
            self.status_label.setText("Error occurred")
        finally:
            self.is_processing = False


def main():
    app = QApplication(sys.argv)
    window = PorterApp()
    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
