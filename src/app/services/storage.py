"""
Object Storage: 업로드 파일 저장 + 공개 URL.

로컬 디렉터리 구현 (files/<user_id>/<path>), URL = /files/<user_id>/<path>.
경로는 항상 사용자 디렉터리 아래로 제한 (경로 순회 차단).
"""

import logging
from pathlib import Path, PurePosixPath

from src.core.atomic import atomic_write_bytes
from src.core.ids import is_safe_id
from src.domain.errors import CertificateError, ErrorCodes

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/files"


class ObjectStorage:
    """
    업로드 저장소.

    Usage:
        storage = ObjectStorage(Path("files"))
        url = storage.upload(user_id, "templates/a.png", data, "image/png")
        data = storage.read(url)
    """

    def __init__(self, root: Path, public_prefix: str = PUBLIC_PREFIX):
        self.root = root
        self.public_prefix = public_prefix.rstrip("/")

    def upload(self, user_id: str, path: str, data: bytes, content_type: str) -> str:
        """
        파일 저장 (같은 경로면 덮어씀).

        Returns:
            공개 URL

        Raises:
            CertificateError: UPLOAD_FAILED
        """
        target = self._resolve(f"{user_id}/{path}")
        if not path or target is None or not is_safe_id(user_id):
            raise CertificateError(
                ErrorCodes.UPLOAD_FAILED,
                "Invalid upload path",
                path=path,
            )

        try:
            atomic_write_bytes(target, data)
        except OSError as e:
            logger.error(f"Upload failed for {user_id}/{path}: {e}")
            raise CertificateError(
                ErrorCodes.UPLOAD_FAILED,
                "Failed to upload file",
                path=path,
                error=str(e),
            ) from e

        logger.info(f"Uploaded {len(data)} bytes ({content_type}) to {user_id}/{path}")
        return f"{self.public_prefix}/{user_id}/{path}"

    def read(self, url: str) -> bytes | None:
        """
        공개 URL → 파일 내용.

        이 저장소 URL이 아니거나 파일이 없으면 None.
        """
        path = self.path_for(url)
        if path is None or not path.is_file():
            return None
        return path.read_bytes()

    def path_for(self, url: str) -> Path | None:
        """공개 URL → 로컬 경로 (저장소 밖이면 None)."""
        prefix = f"{self.public_prefix}/"
        if not url or not url.startswith(prefix):
            return None
        return self._resolve(url[len(prefix):])

    def _resolve(self, relative: str) -> Path | None:
        parts = PurePosixPath(relative).parts
        if not parts or any(part in ("..", ".", "") or part.startswith("/") for part in parts):
            return None
        target = self.root.joinpath(*parts)
        try:
            target.resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        return target
