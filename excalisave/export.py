import base64
import json

DEFAULT_SOURCE = "https://excalidraw.com"


def excalidraw_file(data, source=DEFAULT_SOURCE):
    """Scene file contents for a stored content payload.

    This is the only place the element and state blobs are parsed, since the
    file format embeds them as JSON rather than as strings.
    """
    app_state = json.loads(data["appState"] or "{}")
    if not isinstance(app_state, dict):
        raise ValueError("appState is not a JSON object")
    app_state["collaborators"] = []
    return {
        "type": "excalidraw",
        "version": 2,
        "source": source,
        "elements": json.loads(data["elements"]),
        "appState": app_state,
        "files": {},
    }


def export_excalidraw(drawing, source=DEFAULT_SOURCE):
    """Returns (filename, json text) for a ``.excalidraw`` download."""
    content = excalidraw_file(drawing.data, source=source)
    return f"{drawing.name}.excalidraw", json.dumps(content, indent=2)


def decode_data_url(data_url):
    header, _, payload = data_url.partition(",")
    if not header.startswith("data:") or not payload:
        raise ValueError("Not a data URL")
    media_type = header[len("data:") :].split(";")[0] or "text/plain"
    if header.endswith(";base64"):
        return media_type, base64.b64decode(payload)
    return media_type, payload.encode("utf-8")


def export_png(drawing):
    """Returns (filename, bytes) for the stored preview, or None without one."""
    if not drawing.preview:
        return None
    _, content = decode_data_url(drawing.preview)
    return f"{drawing.name}.png", content
