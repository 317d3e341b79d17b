import os
import json
import time

from core.config import s3, s3_presign_client, R2_BUCKET, R2_CUSTOM_DOMAIN, STATIC_DIR, logger

# Simple in-process cache for presigned URLs
_URL_CACHE: dict[str, tuple[str, float]] = {}
_CACHE_TTL = int(os.getenv("URL_CACHE_TTL_SEC", "300") or "300")

# Seller documents are private; their links are short-lived
DOCUMENT_URL_TTL_SEC = int(os.getenv("DOCUMENT_URL_TTL_SEC", str(7 * 24 * 3600)) or str(7 * 24 * 3600))


def _local_path(key: str) -> str:
    path = os.path.abspath(os.path.join(STATIC_DIR, key))
    if not path.startswith(STATIC_DIR + os.sep):
        raise ValueError(f"invalid storage key: {key}")
    return path


def write_json_key(key: str, payload: dict):
    data = json.dumps(payload, ensure_ascii=False, default=str)
    if s3 and R2_BUCKET:
        bucket = s3.Bucket(R2_BUCKET)
        bucket.put_object(Key=key, Body=data.encode('utf-8'), ContentType='application/json', ACL='private')
    else:
        path = _local_path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(data)


def upload_bytes(key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
    """Store bytes under key and return a retrieval URL (presigned on R2, /static/... locally)."""
    if not s3 or not R2_BUCKET:
        local_path = _local_path(key)
        os.makedirs(os.path.dirname(local_path), exist_ok=True)
        with open(local_path, "wb") as f:
            f.write(data)
        logger.info(f"[storage] R2 not configured, saved locally: {local_path}")
        return f"/static/{key}"

    bucket = s3.Bucket(R2_BUCKET)
    bucket.put_object(Key=key, Body=data, ContentType=content_type, ACL="private")

    try:
        url = get_presigned_url(key, expires_in=DOCUMENT_URL_TTL_SEC)
        if url:
            return url
        return f"/static/{key}"
    except Exception as ex:
        logger.warning(f"presigned url generation failed for {key}: {ex}")
        return f"/static/{key}"


def get_presigned_url(key: str, expires_in: int = 3600) -> str:
    """Returns cached presigned URL if available, otherwise generates one."""
    try:
        k = f"{key}|{int(expires_in)}"
        now = time.time()
        cached = _URL_CACHE.get(k)
        if cached and cached[1] > now:
            return cached[0]

        url = ""
        if R2_CUSTOM_DOMAIN and s3_presign_client:
            url = s3_presign_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": R2_BUCKET, "Key": key},
                ExpiresIn=expires_in,
            )
        elif s3:
            url = s3.meta.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": R2_BUCKET, "Key": key},
                ExpiresIn=expires_in,
            )

        if url:
            _URL_CACHE[k] = (url, now + max(1, min(_CACHE_TTL, int(expires_in))))
        return url
    except Exception as ex:
        logger.warning(f"get_presigned_url failed for {key}: {ex}")
        return ""
