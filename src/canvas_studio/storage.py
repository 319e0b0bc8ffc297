from __future__ import annotations

import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from canvas_studio.config import settings
from canvas_studio.errors import ApiError
from canvas_studio.presets import DEFAULT_GUIDE_ID, get_preset

logger = logging.getLogger(__name__)

ACTIVE_POINTER = "_active.json"

CHARACTER_FIELDS = (
    "role",
    "product",
    "description",
    "setting",
    "expression",
    "outfitDescription",
    "brandAccentColor",
    "heroImage",
    "referenceImage",
    "provider",
)

_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def slugify(text: str) -> str:
    s = (text or "").strip().lower()
    s = re.sub(r"[^\w\s-]", "", s, flags=re.ASCII)
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"-+", "-", s)
    return s.strip("-")


def _write_json(path: Path, payload: Any) -> None:
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), "utf-8")
    tmp.replace(path)


class JsonDocumentStore:
    """
    One JSON file per document, named `<id>.json`. Files starting with `_` are
    bookkeeping (pointers etc.) and never listed as documents.
    """

    kind = "document"

    def __init__(self, root_dir: Path | str | None = None, subdir: str = "documents") -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.dir = self.root_dir / subdir

    def _ensure_dir(self) -> Path:
        self.dir.mkdir(parents=True, exist_ok=True)
        return self.dir

    def _path(self, doc_id: str) -> Path:
        if not doc_id or not _ID_RE.match(doc_id):
            raise ApiError("INVALID_ID", f"invalid {self.kind} id: {doc_id!r}", 400)
        return self._ensure_dir() / f"{doc_id}.json"

    def exists(self, doc_id: str) -> bool:
        return self._path(doc_id).exists()

    def list(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for path in sorted(self._ensure_dir().glob("*.json")):
            if path.name.startswith("_"):
                continue
            try:
                out.append(json.loads(path.read_text("utf-8")))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("skipping unreadable %s file %s: %s", self.kind, path.name, exc)
        return out

    def read(self, doc_id: str) -> dict[str, Any]:
        path = self._path(doc_id)
        if not path.exists():
            raise ApiError("NOT_FOUND", f'{self.kind} "{doc_id}" not found', 404)
        return json.loads(path.read_text("utf-8"))

    def write(self, doc: dict[str, Any]) -> dict[str, Any]:
        _write_json(self._path(doc["id"]), doc)
        return doc

    def update(self, doc_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        current = self.read(doc_id)
        merged = {**current, **changes, "id": doc_id, "updatedAt": _now_iso()}
        return self.write(merged)

    def delete(self, doc_id: str) -> None:
        path = self._path(doc_id)
        if not path.exists():
            raise ApiError("NOT_FOUND", f'{self.kind} "{doc_id}" not found', 404)
        path.unlink()

    def _new_id(self, body: dict[str, Any]) -> str:
        explicit = str(body.get("id") or "").strip()
        if explicit:
            if self.exists(explicit):
                raise ApiError("DUPLICATE_ID", f'A {self.kind} with id "{explicit}" already exists', 409)
            return explicit

        base = slugify(body.get("name") or "")
        if not base:
            raise ApiError("INVALID_NAME", "name must contain at least one letter or digit", 400)
        candidate, n = base, 2
        while self.exists(candidate):
            candidate = f"{base}-{n}"
            n += 1
        return candidate


def _require_name(body: dict[str, Any]) -> str:
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ApiError("INVALID_NAME", "name is required and must be a non-empty string", 400)
    return name


class CharacterStore(JsonDocumentStore):
    kind = "character"

    def __init__(self, root_dir: Path | str | None = None) -> None:
        super().__init__(root_dir, "characters")

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        name = _require_name(body)
        now = _now_iso()
        doc: dict[str, Any] = {"id": self._new_id(body), "name": name}
        for key in CHARACTER_FIELDS:
            doc[key] = body.get(key) or ""
        doc["createdAt"] = body.get("createdAt") or now
        doc["updatedAt"] = body.get("updatedAt") or now
        return self.write(doc)


class StyleGuideStore(JsonDocumentStore):
    kind = "style guide"

    def __init__(self, root_dir: Path | str | None = None) -> None:
        super().__init__(root_dir, "style-guides")

    def _ensure_dir(self) -> Path:
        if not self.dir.exists():
            self.dir.mkdir(parents=True, exist_ok=True)
            seeded = get_preset(DEFAULT_GUIDE_ID)
            if seeded:
                seeded["accountId"] = "default"
                _write_json(self.dir / f"{DEFAULT_GUIDE_ID}.json", seeded)
            _write_json(self.dir / ACTIVE_POINTER, {"activeGuideId": DEFAULT_GUIDE_ID})
            logger.info("seeded style guides in %s", self.dir)
        return self.dir

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        name = _require_name(body)
        now = _now_iso()
        guide = {
            "id": self._new_id(body),
            "name": name,
            "description": body.get("description"),
            "sourceUrl": body.get("sourceUrl"),
            "logo": body.get("logo"),
            "colors": body.get("colors")
            or {"primary": [], "secondary": [], "accent": [], "forbidden": [], "background": "#ffffff"},
            "typography": body.get("typography") or {},
            "visualStyle": body.get("visualStyle")
            or {"styleKeywords": [], "mood": [], "description": "", "avoidKeywords": []},
            "industry": body.get("industry"),
            "metadata": body.get("metadata"),
            "accountId": body.get("accountId") or "default",
            "createdAt": body.get("createdAt") or now,
            "updatedAt": body.get("updatedAt") or now,
        }
        return self.write(guide)

    def _read_pointer(self) -> str | None:
        pointer = self._ensure_dir() / ACTIVE_POINTER
        try:
            data = json.loads(pointer.read_text("utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        active = data.get("activeGuideId") if isinstance(data, dict) else None
        return active if isinstance(active, str) and active else None

    def active_id(self) -> str:
        return self._read_pointer() or DEFAULT_GUIDE_ID

    def set_active(self, guide_id: str) -> dict[str, Any]:
        guide = self.read(guide_id)
        _write_json(self._ensure_dir() / ACTIVE_POINTER, {"activeGuideId": guide_id})
        return guide

    def get_active(self) -> dict[str, Any]:
        """The active guide, or the default preset when its file has gone missing."""
        active = self.active_id()
        try:
            return self.read(active)
        except ApiError:
            logger.warning("active style guide %r is missing, using %s preset", active, DEFAULT_GUIDE_ID)
            return get_preset(DEFAULT_GUIDE_ID) or {}

    def load(self, guide_id: str | None = None) -> dict[str, Any]:
        if not guide_id:
            return self.get_active()
        try:
            return self.read(guide_id)
        except ApiError:
            preset = get_preset(guide_id)
            if preset is None:
                raise
            return preset

    def delete(self, doc_id: str) -> None:
        active = self._read_pointer()
        super().delete(doc_id)
        if active is None or active == doc_id:
            _write_json(self.dir / ACTIVE_POINTER, {"activeGuideId": DEFAULT_GUIDE_ID})
            logger.info("deleted style guide %s, active pointer reset to %s", doc_id, DEFAULT_GUIDE_ID)


class HistoryStore:
    """Newest-first log of single-image generations; image bytes live beside it in `generated/`."""

    _EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}

    def __init__(self, root_dir: Path | str | None = None, limit: int | None = None) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.path = self.root_dir / "history.json"
        self.images_dir = self.root_dir / "generated"
        self.limit = limit or settings.history_limit

    def list(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text("utf-8"))
        except json.JSONDecodeError:
            logger.warning("history file is corrupt, starting over")
            return []
        return data if isinstance(data, list) else []

    def append(self, entry: dict[str, Any], image: bytes | None = None, mime_type: str = "image/png") -> dict[str, Any]:
        entry_id = uuid.uuid4().hex[:12]
        entry = {"id": entry_id, "timestamp": _now_iso(), **entry}
        if image is not None:
            self.images_dir.mkdir(parents=True, exist_ok=True)
            filename = f"{entry_id}.{self._EXTENSIONS.get(mime_type, 'png')}"
            (self.images_dir / filename).write_bytes(image)
            entry["file"] = filename
            entry["mimeType"] = mime_type

        history = [entry, *self.list()]
        kept, evicted = history[: self.limit], history[self.limit :]
        self.root_dir.mkdir(parents=True, exist_ok=True)
        _write_json(self.path, kept)

        for old in evicted:
            if old.get("file"):
                (self.images_dir / os.path.basename(old["file"])).unlink(missing_ok=True)
        return entry

    def image_path(self, entry_id: str) -> tuple[Path, str]:
        for entry in self.list():
            if entry.get("id") == entry_id and entry.get("file"):
                path = self.images_dir / os.path.basename(entry["file"])
                if path.exists():
                    return path, entry.get("mimeType") or "image/png"
                break
        raise ApiError("NOT_FOUND", f'history image "{entry_id}" not found', 404)
