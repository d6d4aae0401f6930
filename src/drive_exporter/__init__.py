"""Drive Exporter - mirror Google Drive folders as Office documents.

This package walks a Google Drive folder tree and writes a local copy in
which Google Docs, Sheets and Slides are exported to docx, xlsx and pptx.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
