# API routes

import logging
from typing import Any, Dict, Generator, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from duckit.catalog.store import MetadataStore, MetadataStoreError, SqlMetadataStore
from duckit.config.settings import get_settings
from duckit.publish.transfer import TransferClient

logger = logging.getLogger(__name__)

router = APIRouter()


class DbOperationRequest(BaseModel):
    """Body of POST /db. Operation parameters are passed as extra fields."""
    model_config = ConfigDict(extra="allow")

    operation: Optional[str] = None
    email: Optional[str] = None

    def params(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


def get_metadata_store() -> Generator[MetadataStore, None, None]:
    """
    Dependency providing the SQL metadata store with remote purge.

    The transfer client used for the purge is closed when the request ends.
    """
    transfer_client = TransferClient()
    try:
        yield SqlMetadataStore(remote_deleter=transfer_client.delete_remote)
    finally:
        transfer_client.close()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _bearer_token(authorization: Optional[str]) -> str:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return ""


def _dispatch(store: MetadataStore, operation: str, email: str, params: Dict[str, Any]):
    if operation == "user.check":
        check = store.check_user(email, params.get("userId") or params.get("user_id"))
        return {"allowed": check.allowed, "role": check.role, "limits": check.limits}

    if operation == "user.role":
        return {"role": store.get_role(email)}

    if operation == "user.limits":
        check = store.get_limits(email)
        return {"role": check.role, "limits": check.limits}

    if operation == "files.list":
        return {"files": [f.to_dict() for f in store.list_files(email)]}

    if operation == "files.count":
        return {"count": store.count_files(email)}

    if operation == "files.add":
        record = store.add_file(
            email,
            server_filename=params.get("server_filename"),
            download_url=params.get("download_url"),
            format=params.get("format"),
            display_name=params.get("display_name"),
            size_mb=params.get("size_mb"),
            user_id=params.get("user_id"),
        )
        return {"file": record.to_dict()}

    if operation == "files.rename":
        success = store.rename_file(email, params.get("id"), params.get("display_name"))
        return {"success": success}

    if operation == "files.delete":
        return {"success": store.delete_file(email, params.get("id"))}

    return None


@router.post("/db")
def db_operation(
    request: DbOperationRequest,
    authorization: Optional[str] = Header(None),
    store: MetadataStore = Depends(get_metadata_store),
):
    """
    Single endpoint for all metadata operations.

    - **operation**: user.check, user.role, user.limits, files.list,
      files.count, files.add, files.rename or files.delete
    - **email**: identity the operation is scoped to
    - remaining fields are operation parameters
    """
    token = _bearer_token(authorization)
    expected = get_settings().metadata_api_token
    if not token or (expected and token != expected):
        return _error(401, "Authorization required")

    if not request.operation:
        return _error(400, "Missing operation")
    if not request.email:
        return _error(400, "Missing email")

    try:
        result = _dispatch(store, request.operation, request.email, request.params())
    except MetadataStoreError as e:
        logger.error(f"[DB API] {request.operation} failed: {e}")
        return _error(500, str(e) or "Internal error")

    if result is None:
        return _error(400, f"Unknown operation: {request.operation}")
    return result

