# corot/streams.py
"""
ANALYSIS STREAMS: Opening and Closing the Run's Output Files
============================================================

A run writes five text streams:

    log            run log (errors, "Solution failed")
    displacements  per-increment displacement rows
    truss          per-increment averaged truss forces
    frame          per-increment averaged frame forces
    shell          per-increment averaged shell forces

Each file is opened exactly once. If any open fails the streams opened so
far are closed and AnalysisIOError is raised; whether to retry is the
caller's decision.
"""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, TextIO, Union

logger = logging.getLogger(__name__)

STREAM_NAMES = ('log', 'displacements', 'truss', 'frame', 'shell')

DEFAULT_FILE_NAMES = {
    'log': 'analysis.log',
    'displacements': 'displacements.txt',
    'truss': 'truss_forces.txt',
    'frame': 'frame_forces.txt',
    'shell': 'shell_forces.txt',
}


class AnalysisIOError(OSError):
    """A run file could not be opened or written."""
    pass


class AnalysisStreams:
    """
    The open output streams of one analysis run.

    Usable as a context manager; leaving the block through an exception
    closes the streams as a failed run.

    Examples:
    ---------
    >>> with AnalysisStreams.open("out/") as streams:
    ...     streams['displacements'].write("...")
    """

    def __init__(self, streams: Mapping[str, TextIO]):
        missing = [name for name in STREAM_NAMES if name not in streams]
        if missing:
            raise ValueError(f"missing streams: {missing}")
        self._streams: Dict[str, TextIO] = dict(streams)
        self.closed = False

    @classmethod
    def open(
        cls,
        directory: Union[str, Path],
        file_names: Optional[Mapping[str, str]] = None,
    ) -> "AnalysisStreams":
        """
        Open every run stream for writing, one attempt per file.

        Raises:
        -------
        AnalysisIOError
            If a file cannot be opened (already-opened streams are closed)
        """
        directory = Path(directory)
        names = dict(DEFAULT_FILE_NAMES)
        if file_names:
            names.update(file_names)

        opened: Dict[str, TextIO] = {}
        for key in STREAM_NAMES:
            path = directory / names[key]
            try:
                opened[key] = open(path, "w")
            except OSError as exc:
                for stream in opened.values():
                    stream.close()
                raise AnalysisIOError(f"Cannot open {key} stream {path}: {exc}") from exc
        logger.debug("Opened analysis streams in %s", directory)
        return cls(opened)

    def __getitem__(self, name: str) -> TextIO:
        return self._streams[name]

    @property
    def log(self) -> TextIO:
        return self._streams['log']

    def close(self, failed: bool = False) -> None:
        """
        Close every stream; a failed run first writes "Solution failed" to the log.

        Closing twice is a no-op.
        """
        if self.closed:
            return
        if failed:
            self.log.write("\nSolution failed\n")
            logger.error("Solution failed")
        for stream in self._streams.values():
            stream.close()
        self.closed = True

    def __enter__(self) -> "AnalysisStreams":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(failed=exc_type is not None)
