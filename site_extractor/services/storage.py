import logging, os, re, shutil, tempfile
from pathlib import Path
from typing import List, Optional
from site_extractor.config import settings
from site_extractor.exceptions import InvalidProjectError
from site_extractor.models.schemas import StoredFile

logger = logging.getLogger(__name__)

PROJECT_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]{0,63}")
FILENAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")
TMP_PREFIX = ".tmp-"

class AssetStorage:
    """Per-project asset namespace on disk, served as {public_prefix}/{project_id}/{filename}."""

    def __init__(self, root: Optional[Path] = None, public_prefix: Optional[str] = None):
        self.root = Path(root if root is not None else settings.ASSETS_DIR)
        self.public_prefix = (public_prefix or settings.ASSETS_PUBLIC_PREFIX).rstrip("/")

    @staticmethod
    def validate_project_id(project_id) -> str:
        if not isinstance(project_id, str) or not PROJECT_ID_RE.fullmatch(project_id):
            raise InvalidProjectError(f"invalid project id: {project_id!r}")
        return project_id

    def project_dir(self, project_id: str) -> Path:
        return self.root / self.validate_project_id(project_id)

    def stored_url(self, project_id: str, filename: str) -> str:
        return f"{self.public_prefix}/{project_id}/{filename}"

    def write(self, project_id: str, filename: str, data: bytes) -> Path:
        if not FILENAME_RE.fullmatch(filename):
            raise ValueError(f"unsafe filename: {filename!r}")
        directory = self.project_dir(project_id)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / filename
        # names are content addressed, an existing file of the same size is the same asset
        if target.exists() and target.stat().st_size == len(data):
            return target
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=TMP_PREFIX)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        return target

    def list_assets(self, project_id: str) -> List[StoredFile]:
        directory = self.project_dir(project_id)
        if not directory.is_dir():
            return []
        return [
            StoredFile(filename=p.name, stored_url=self.stored_url(project_id, p.name), size_bytes=p.stat().st_size)
            for p in sorted(directory.iterdir())
            if p.is_file() and not p.name.startswith(TMP_PREFIX)
        ]

    def cleanup(self, project_id: str) -> int:
        directory = self.project_dir(project_id)
        if not directory.is_dir():
            return 0
        removed = sum(1 for p in directory.iterdir() if p.is_file())
        shutil.rmtree(directory)
        logger.info("removed %d stored assets for project %s", removed, project_id)
        return removed
