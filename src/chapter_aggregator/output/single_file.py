"""Single file output writer."""

from pathlib import Path

import aiofiles

from chapter_aggregator.output.reader import ReaderDocument


class SingleFileOutput:
    """Write a reader document as one HTML file."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    async def write(self, document: ReaderDocument) -> Path:
        """Write the document into the output directory and return its path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / document.filename

        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(document.html)

        return path
