from __future__ import annotations

import os
from pathlib import Path

from PySide6.QtCore import QObject, QSettings, QThread, Signal
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from .compress import iter_compress_files
from .errors import ConfigError
from .files import build_output_path, collect_files, write_output
from .models import AUTO_FORMAT, CompressionOptions, ItemResult

FORMAT_LABELS = {
    "自动": AUTO_FORMAT,
    "JPEG": "image/jpeg",
    "WebP": "image/webp",
    "PNG": "image/png",
}


class CompressWorker(QObject):
    progress = Signal(int, str, ItemResult)
    finished = Signal(list)

    def __init__(self, files: list[Path], input_dir: Path, output_dir: Path, options: CompressionOptions) -> None:
        super().__init__()
        self.files = files
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.options = options

    def run(self) -> None:
        results = []
        total = len(self.files)
        items = iter_compress_files(self.files, self.options)
        try:
            for index, (path, item) in enumerate(zip(self.files, items), start=1):
                if item.success:
                    output = build_output_path(path, self.output_dir, item.result.output_format, self.input_dir)
                    write_output(output, item.result.data)
                results.append(item)
                percent = int(index * 100 / total)
                self.progress.emit(percent, path.name, item)
        finally:
            self.finished.emit(results)


class MainWindow(QMainWindow):

    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Imgfit")
        self.resize(900, 600)
        self.thread: QThread | None = None
        self.worker: CompressWorker | None = None
        self.settings = QSettings("Imgfit", "Imgfit")
        self.selected_files: list[Path] = []
        self.input_line = QLineEdit()
        self.output_line = QLineEdit()
        self.files_line = QLineEdit()
        self.target_spin = QDoubleSpinBox()
        self.max_width_spin = QSpinBox()
        self.max_height_spin = QSpinBox()
        self.format_combo = QComboBox()
        self.sharpen_checkbox = QCheckBox("缩小后锐化")
        self.start_button = QPushButton("开始压缩")
        self.progress_bar = QProgressBar()
        self.log_area = QPlainTextEdit()
        self.setup_ui()

    def setup_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout()
        layout.addWidget(self.build_path_group())
        layout.addWidget(self.build_options_group())
        layout.addWidget(self.build_action_group())
        layout.addWidget(self.progress_bar)
        layout.addWidget(self.log_area)
        central.setLayout(layout)
        self.setCentralWidget(central)
        self.log_area.setReadOnly(True)
        self.files_line.setReadOnly(True)
        self.progress_bar.setValue(0)
        self.target_spin.setRange(1, 100000)
        self.target_spin.setDecimals(0)
        self.target_spin.setSuffix(" KB")
        self.target_spin.setValue(50)
        for spin in (self.max_width_spin, self.max_height_spin):
            spin.setRange(CompressionOptions.min_dimension, 16384)
            spin.setValue(4096)
        self.format_combo.addItems(list(FORMAT_LABELS))
        self.sharpen_checkbox.setChecked(True)
        self.load_settings()
        self.start_button.clicked.connect(self.on_start)
        exit_action = QAction("退出", self)
        exit_action.triggered.connect(self.close)
        self.menuBar().addAction(exit_action)

    def build_path_group(self) -> QGroupBox:
        group = QGroupBox("路径")
        layout = QGridLayout()
        input_button = QPushButton("选择输入目录")
        file_button = QPushButton("选择图片文件")
        output_button = QPushButton("选择输出目录")
        input_button.clicked.connect(self.pick_input_dir)
        file_button.clicked.connect(self.pick_input_files)
        output_button.clicked.connect(self.pick_output_dir)
        layout.addWidget(QLabel("输入目录"), 0, 0)
        layout.addWidget(self.input_line, 0, 1)
        layout.addWidget(input_button, 0, 2)
        layout.addWidget(QLabel("图片文件"), 1, 0)
        layout.addWidget(self.files_line, 1, 1)
        layout.addWidget(file_button, 1, 2)
        layout.addWidget(QLabel("输出目录"), 2, 0)
        layout.addWidget(self.output_line, 2, 1)
        layout.addWidget(output_button, 2, 2)
        group.setLayout(layout)
        return group

    def build_options_group(self) -> QGroupBox:
        group = QGroupBox("压缩选项")
        layout = QFormLayout()
        size_layout = QHBoxLayout()
        size_layout.addWidget(self.max_width_spin)
        size_layout.addWidget(QLabel("×"))
        size_layout.addWidget(self.max_height_spin)
        layout.addRow("目标大小", self.target_spin)
        layout.addRow("最大尺寸", size_layout)
        layout.addRow("输出格式", self.format_combo)
        layout.addRow(self.sharpen_checkbox)
        group.setLayout(layout)
        return group

    def build_action_group(self) -> QWidget:
        group = QWidget()
        layout = QHBoxLayout()
        layout.addWidget(self.start_button)
        group.setLayout(layout)
        return group

    def pick_input_dir(self) -> None:
        path = QFileDialog.getExistingDirectory(self, "选择输入目录")
        if path:
            self.input_line.setText(path)
            self.selected_files = []
            self.files_line.setText("")

    def pick_input_files(self) -> None:
        files, _ = QFileDialog.getOpenFileNames(
            self,
            "选择图片文件",
            "",
            "Images (*.jpg *.jpeg *.png *.webp *.gif *.bmp *.tif *.tiff)",
        )
        if files:
            self.selected_files = [Path(file) for file in files]
            self.files_line.setText(f"已选 {len(self.selected_files)} 个文件")
            self.input_line.setText("")

    def pick_output_dir(self) -> None:
        default_dir = self.output_line.text().strip() or self.settings.value("output_dir", "")
        path = QFileDialog.getExistingDirectory(self, "选择输出目录", default_dir)
        if path:
            self.output_line.setText(path)
            self.settings.setValue("output_dir", path)

    def build_options(self) -> CompressionOptions:
        return CompressionOptions(
            target_size_kb=self.target_spin.value(),
            max_width=self.max_width_spin.value(),
            max_height=self.max_height_spin.value(),
            output_format=FORMAT_LABELS[self.format_combo.currentText()],
            sharpen=self.sharpen_checkbox.isChecked(),
        )

    def on_start(self) -> None:
        if self.thread is not None:
            return
        output_text = self.output_line.text().strip()
        if not output_text:
            self.append_log("请输入有效的输出目录")
            return
        output_dir = Path(output_text)
        if output_dir.exists() and not output_dir.is_dir():
            self.append_log("请输入有效的输出目录")
            return
        files = self.get_target_files()
        if not files:
            self.append_log("未找到可压缩图片")
            return
        try:
            options = self.build_options()
        except ConfigError as exc:
            self.append_log(f"参数无效：{exc}")
            return
        output_dir.mkdir(parents=True, exist_ok=True)
        self.settings.setValue("output_dir", str(output_dir))
        self.settings.setValue("target_kb", options.target_size_kb)
        self.start_compression(files, self.get_input_dir(files), output_dir, options)

    def start_compression(self, files: list[Path], input_dir: Path, output_dir: Path, options: CompressionOptions) -> None:
        self.start_button.setEnabled(False)
        self.progress_bar.setValue(0)
        self.log_area.clear()
        self.append_log(f"开始压缩 {len(files)} 张图片，目标 {options.target_size_kb:.0f} KB")
        self.thread = QThread()
        self.worker = CompressWorker(files, input_dir, output_dir, options)
        self.worker.moveToThread(self.thread)
        self.thread.started.connect(self.worker.run)
        self.worker.progress.connect(self.on_progress)
        self.worker.finished.connect(self.on_finished)
        self.worker.finished.connect(self.thread.quit)
        self.thread.finished.connect(self.on_thread_finished)
        self.thread.start()

    def get_target_files(self) -> list[Path]:
        if self.selected_files:
            return collect_files(self.selected_files)
        input_text = self.input_line.text().strip()
        if not input_text:
            return []
        input_dir = Path(input_text)
        if not input_dir.is_dir():
            return []
        return collect_files([input_dir])

    def get_input_dir(self, files: list[Path]) -> Path:
        common_path = Path(os.path.commonpath([str(path) for path in files]))
        if common_path.is_file():
            return common_path.parent
        return common_path

    def on_progress(self, percent: int, name: str, item: ItemResult) -> None:
        self.progress_bar.setValue(percent)
        self.append_log(format_item(name, item))

    def on_finished(self, results: list[ItemResult]) -> None:
        done = [item.result for item in results if item.success]
        total_before = sum(result.original_size_kb for result in done)
        total_after = sum(result.compressed_size_kb for result in done)
        ratio = (total_before - total_after) / total_before if total_before else 0
        self.append_log(f"完成：成功 {len(done)} 张，失败 {len(results) - len(done)} 张，节省 {ratio:.1%}")
        self.progress_bar.setValue(100)

    def on_thread_finished(self) -> None:
        self.start_button.setEnabled(True)
        self.thread = None
        self.worker = None

    def append_log(self, text: str) -> None:
        self.log_area.appendPlainText(text)

    def load_settings(self) -> None:
        output_dir = self.settings.value("output_dir", "")
        if output_dir:
            self.output_line.setText(output_dir)
        target_kb = self.settings.value("target_kb", None)
        if target_kb is not None:
            self.target_spin.setValue(float(target_kb))


def format_item(name: str, item: ItemResult) -> str:
    if not item.success:
        return f"{name} 压缩失败：{item.message}"
    result = item.result
    if result.is_original:
        return f"{name} 保留原图（{result.original_size_kb:.1f} KB）"
    line = (
        f"{name} {result.original_size_kb:.1f} KB → {result.compressed_size_kb:.1f} KB，"
        f"节省 {result.compression_ratio:.2f}%"
    )
    if not result.target_met:
        line += "（未达到目标大小）"
    return line


def main() -> None:
    app = QApplication([])
    window = MainWindow()
    window.show()
    app.exec()
