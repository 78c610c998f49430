from pathlib import Path
from typing import Optional, Union

from textual.app import App

from .screens import FileSelectionScreen, DitheringScreen


class DitherApp(App):
    """Preview how images come out on the monochrome panel before deploying them."""

    TITLE = "inkdash preview"
    SUB_TITLE = "1-bit e-paper dithering"

    def __init__(self, initial_image: Optional[Union[str, Path]] = None):
        super().__init__()
        self.initial_image = Path(initial_image) if initial_image else None

    def on_mount(self):
        if self.initial_image is not None:
            self.push_screen(DitheringScreen(self.initial_image))
        else:
            self.push_screen(FileSelectionScreen())
