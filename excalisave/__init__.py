from .core import MAX_BACKUPS, Backup, Drawing
from .export import excalidraw_file, export_excalidraw, export_png

__all__ = [
    "MAX_BACKUPS",
    "Backup",
    "Drawing",
    "excalidraw_file",
    "export_excalidraw",
    "export_png",
]
