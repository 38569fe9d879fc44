# =============================================================================
# Stored Upload Serving — GET /uploads/{file_id}
# =============================================================================
#
# Uploads are not type-checked, so the stored name's extension says nothing
# about the bytes. PDFs are served inline as application/pdf; anything else
# is forced to a download so it can never render from the API origin.
# =============================================================================

from __future__ import annotations

import os

from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope


class UploadedFiles(StaticFiles):
    """StaticFiles with fixed, non-sniffable content types."""

    def file_response(
        self,
        full_path: str | os.PathLike[str],
        stat_result: os.stat_result,
        scope: Scope,
        status_code: int = 200,
    ) -> Response:
        response = super().file_response(full_path, stat_result, scope, status_code)
        name = os.path.basename(full_path)
        if name.lower().endswith(".pdf"):
            response.headers["content-type"] = "application/pdf"
        else:
            response.headers["content-type"] = "application/octet-stream"
            response.headers["content-disposition"] = f'attachment; filename="{name}"'
        response.headers["x-content-type-options"] = "nosniff"
        return response
