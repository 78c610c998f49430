from datetime import datetime
from pathlib import Path
from typing import Union


def get_output_filename(input_path: Union[str, Path]) -> Path:
    """
    Generate output filename with -mono.bmp suffix, avoiding overwrites.

    Args:
        input_path: Path to input image

    Returns:
        Path object for output file
    """
    path = Path(input_path)
    stem = path.stem
    directory = path.parent

    output_path = directory / f"{stem}-mono.bmp"

    # If file exists, append number
    counter = 1
    while output_path.exists():
        output_path = directory / f"{stem}-mono-{counter}.bmp"
        counter += 1

    return output_path


def minutes_since_midnight(now: datetime) -> int:
    return now.hour * 60 + now.minute
