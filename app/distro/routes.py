from flask import Blueprint, abort, current_app, request, send_file

from app.distro.storage import LocalStorage, StorageError, storage_from_config

bp = Blueprint("routes", __name__)


@bp.get("/health")
@bp.get("/api/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True, "status": "ok"}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200


def _local_storage_or_404() -> LocalStorage:
    storage = storage_from_config(current_app.config)
    if not isinstance(storage, LocalStorage):
        abort(404)
    return storage


@bp.put("/storage/<token>")
def local_storage_put(token: str):
    """Receives a direct upload for a URL issued by LocalStorage.presigned_upload_url."""
    storage = _local_storage_or_404()
    try:
        key = storage.resolve_token(token, op="put")
    except StorageError as e:
        return {"error": str(e)}, 403
    data = request.get_data(cache=False)
    storage.put_bytes(key, data, content_type=request.mimetype or None)
    current_app.logger.info("Local storage PUT key=%s size=%s", key, len(data))
    return {"ok": True, "key": key}, 200


@bp.get("/storage/<token>")
def local_storage_get(token: str):
    storage = _local_storage_or_404()
    try:
        key = storage.resolve_token(token, op="get")
        fobj = storage.open(key)
    except StorageError as e:
        return {"error": str(e)}, 404
    return send_file(fobj, as_attachment=True, download_name=key.rsplit("/", 1)[-1], max_age=0)
