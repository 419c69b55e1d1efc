import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, Union

PathLike = Union[str, "os.PathLike[str]"]


def read_lines(path: PathLike) -> Iterator[str]:
    """Yield the lines of ``path`` without terminators. A missing file yields nothing."""
    path = Path(path)
    if not path.exists():
        return
    with open(path, "r", encoding="utf-8", errors="replace", newline="\n") as f:
        for line in f:
            yield line.rstrip("\n")


def write_lines(path: PathLike, lines: Iterable[str]) -> None:
    """Replace ``path`` with one line per item.

    The data goes to a temporary file in the same directory which is then
    renamed over the target, so a crash mid-write leaves the old file intact.
    """
    path = Path(path)
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line)
                f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.remove(tmp_name)
        except OSError:
            pass
        raise
