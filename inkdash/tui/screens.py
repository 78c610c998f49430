import sys
import subprocess
from pathlib import Path
from typing import cast, Tuple
from PIL import Image
from textual.app import ComposeResult
from textual.containers import Container, VerticalScroll
from textual.widgets import Button, Header, Footer, Label, Switch, Select, Input, Static, ListItem, ListView
from textual.binding import Binding
from textual.screen import Screen
from rich.text import Text
from rich.style import Style

from ..constants import DITHER_PATTERNS, HYBRID_LOW, HYBRID_HIGH, MAX_SAMPLE, DitherPattern
from ..core.pipeline import image_to_bitmap
from ..core.utils import get_output_filename
from ..processing.bitmap import threshold_monochrome
from ..processing.dither import MonochromeImage, dither, to_pil

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp'}


class FileSelectionScreen(Screen):
    CSS = """
    FileSelectionScreen {
        layout: vertical;
        align: center middle;
    }
    #file-list-container {
        width: 80%;
        height: 80%;
        border: solid $accent;
        background: $surface;
    }
    .header-label {
        text-align: center;
        padding: 1;
        background: $primary;
        color: $text;
        text-style: bold;
    }
    ListView {
        height: 1fr;
    }
    """

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="file-list-container"):
            yield Label("Select an image to preview on the panel", classes="header-label")
            yield ListView(id="file-list")
        yield Label("Tip: 'inkdash tui <image>' opens an image directly", classes="header-label")
        yield Footer()

    def on_mount(self):
        files = sorted([
            f for f in Path('.').iterdir()
            if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
            and '-mono' not in f.stem and not f.stem.endswith('-preview')  # skip our own output
        ])

        list_view = self.query_one("#file-list", ListView)
        for f in files:
            list_view.append(ListItem(Label(f.name)))

        if not files:
            list_view.append(ListItem(Label("No image files found in current directory")))

    def on_list_view_selected(self, event: ListView.Selected):
        label = event.item.query_one(Label)
        filename = str(label.render())
        if filename.startswith("No image files"):
            return

        self.app.push_screen(DitheringScreen(Path(filename).resolve()))


class DitheringScreen(Screen):
    CSS = """
    DitheringScreen {
        layout: horizontal;
    }
    #sidebar {
        width: 36;
        height: 100%;
        dock: left;
        border-right: solid $accent;
        padding: 1 2;
        background: $surface;
    }
    #preview-container {
        width: 1fr;
        height: 100%;
        align: center middle;
        overflow: auto;
    }
    #preview {
        width: auto;
        height: auto;
    }
    Label {
        margin-bottom: 1;
        color: $text-muted;
    }
    .header-label {
        color: $text;
        text-style: bold;
        margin-top: 1;
    }
    Input, Switch, Select {
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("escape", "back", "Back/Quit"),
        Binding("o", "open_viewer", "Open Viewer"),
        Binding("s", "save_output", "Save BMP"),
    ]

    def __init__(self, image_path: Path):
        super().__init__()
        self.image_path = image_path
        with Image.open(self.image_path) as img:
            self.original_image = img.convert('RGB')
        self.update_timer = None

    def compose(self) -> ComposeResult:
        yield Header()

        with VerticalScroll(id="sidebar"):
            yield Label("Dithering Controls", classes="header-label")

            yield Label("Pattern")
            yield Select.from_values(DITHER_PATTERNS, value="floyd-steinberg", id="pattern")

            yield Label("Invert")
            yield Switch(value=False, id="invert")

            yield Label("Direct (50% cut, no dither)")
            yield Switch(value=False, id="direct")

            yield Label("--- Hybrid band (0 - 65535) ---", classes="header-label")
            yield Label("Low: always black below")
            yield Input(value=str(HYBRID_LOW), id="low")

            yield Label("High: always white above")
            yield Input(value=str(HYBRID_HIGH), id="high")

            yield Label("")
            yield Button("Open External Viewer (o)", id="btn-open", variant="primary")
            yield Label("")
            yield Button("Save BMP & Quit (s)", id="btn-save", variant="success")

        with Container(id="preview-container"):
            yield Static(id="preview")

        yield Footer()

    def on_mount(self):
        self.update_preview()

    def on_input_changed(self, event):
        self.update_preview_debounced()

    def on_switch_changed(self, event):
        self.update_preview()

    def on_select_changed(self, event):
        self.update_preview()

    def on_button_pressed(self, event):
        if event.button.id == "btn-open":
            self.action_open_viewer()
        elif event.button.id == "btn-save":
            self.action_save_output()

    def action_quit_app(self):
        self.app.exit()

    def action_back(self):
        if len(self.app.screen_stack) > 1:
            self.app.pop_screen()
        else:
            self.app.exit()

    def update_preview_debounced(self):
        if self.update_timer:
            self.update_timer.stop()
        self.update_timer = self.set_timer(0.5, self.update_preview)

    def _read_band_value(self, widget_id: str, default: int) -> float:
        try:
            value = float(self.query_one(widget_id, Input).value)
        except ValueError:
            return float(default)
        return min(max(value, 0.0), float(MAX_SAMPLE))

    def _get_dither_params(self) -> dict:
        """Helper to extract current dithering parameters from widgets."""
        pattern_val = self.query_one("#pattern", Select).value
        pattern = cast(DitherPattern, str(pattern_val) if pattern_val != Select.BLANK else "floyd-steinberg")

        low = self._read_band_value("#low", HYBRID_LOW)
        high = self._read_band_value("#high", HYBRID_HIGH)
        if low > high:
            low, high = high, low

        return {
            "pattern": pattern,
            "invert": self.query_one("#invert", Switch).value,
            "direct": self.query_one("#direct", Switch).value,
            "low": low,
            "high": high,
        }

    def _monochrome(self, img: Image.Image, params: dict) -> MonochromeImage:
        if params["direct"]:
            return threshold_monochrome(img)
        return dither(img, params["pattern"], params["invert"], params["low"], params["high"])

    def _get_preview_target_size(self) -> Tuple[int, int]:
        """Pixel size of the preview: one character cell shows 1x2 pixels."""
        container = self.query_one("#preview-container")
        width = max(20, (container.size.width or 80) - 4)
        height = max(10, (container.size.height or 40) - 2)

        img_w, img_h = self.original_image.size
        scale = min(width / img_w, (height * 2) / img_h)

        new_w = int(img_w * scale)
        new_h = int(img_h * scale)
        if new_h % 2 != 0:
            new_h -= 1

        return max(1, new_w), max(2, new_h)

    def update_preview(self):
        try:
            params = self._get_dither_params()
            # Dither at preview resolution so the pattern is what the cells show
            preview_input = self.original_image.resize(self._get_preview_target_size(), Image.Resampling.BILINEAR)
            mono = self._monochrome(preview_input, params)
            self.query_one("#preview", Static).update(self.mono_to_text(mono))
        except (OSError, ValueError) as e:
            self.notify(f"Error updating preview: {e}", severity="error")

    @staticmethod
    def mono_to_text(mono: MonochromeImage) -> Text:
        """Render a monochrome grid with upper half blocks, two pixel rows per line."""
        height, width = mono.shape
        text = Text()
        for y in range(0, height, 2):
            for x in range(width):
                top = "black" if mono[y, x] else "white"
                bottom = "black" if (y + 1 < height and mono[y + 1, x]) else "white"
                text.append("▀", style=Style(color=top, bgcolor=bottom))
            text.append("\n")
        return text

    def action_open_viewer(self):
        """Open a full resolution preview in an external viewer."""
        try:
            self.notify("Generating full resolution preview...")
            mono = self._monochrome(self.original_image, self._get_dither_params())
            full_preview_path = self.image_path.parent / f"{self.image_path.stem}-preview.png"
            to_pil(mono).save(full_preview_path)

            if sys.platform == "linux":
                subprocess.Popen(["xdg-open", str(full_preview_path)])
            elif sys.platform == "darwin":
                subprocess.Popen(["open", str(full_preview_path)])
            elif sys.platform == "win32":
                subprocess.Popen(["start", str(full_preview_path)], shell=True)
            self.notify("Opened external viewer")
        except (OSError, ValueError) as e:
            self.notify(f"Failed to open viewer: {e}", severity="error")

    def action_save_output(self):
        """Encode at full resolution, save the BMP and quit."""
        try:
            data = image_to_bitmap(self.original_image, **self._get_dither_params())
            final_path = get_output_filename(self.image_path)
            final_path.write_bytes(data)
            self.app.exit(str(final_path))
        except (OSError, ValueError) as e:
            self.notify(f"Error saving: {e}", severity="error")
