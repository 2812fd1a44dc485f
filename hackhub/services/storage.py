import os
from uuid import uuid4
from werkzeug.utils import secure_filename
from flask import current_app
import boto3
from botocore.client import Config

from ..errors import ValidationError

# bucket name -> accepted extensions
BUCKETS = {
    "team-presentations": {".pdf", ".ppt", ".pptx", ".key"},
    "project-screenshots": {".png", ".jpg", ".jpeg", ".gif", ".webp"},
}


def _ensure_local_dir():
    d = current_app.config['LOCAL_STORAGE_DIR']
    os.makedirs(d, exist_ok=True)
    return d


def _s3_client():
    # endpoint_url may be empty in AWS-managed S3
    s3_kwargs = {}
    endpoint = current_app.config.get('S3_ENDPOINT')
    if endpoint:
        s3_kwargs['endpoint_url'] = endpoint
    region = current_app.config.get('S3_REGION')
    if region:
        s3_kwargs['region_name'] = region
    s3_config = Config(signature_version='s3v4', s3={'addressing_style': 'virtual'})
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config.get('S3_ACCESS_KEY'),
        aws_secret_access_key=current_app.config.get('S3_SECRET_KEY'),
        config=s3_config,
        **s3_kwargs,
    )


def _save_local(file_storage, key):
    d = _ensure_local_dir()
    path = os.path.join(d, key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    file_storage.save(path)
    return f"file://{os.path.abspath(path)}"


def save_file(file_storage, bucket, owner_id):
    """Store an upload under ``<bucket>/<owner_id>/`` and return its storage url."""
    filename = secure_filename(file_storage.filename or "")
    ext = os.path.splitext(filename)[1].lower()
    allowed = BUCKETS.get(bucket)
    if allowed is None:
        raise ValueError(f"Unknown bucket {bucket}")
    if not filename or ext not in allowed:
        raise ValidationError(f"Unsupported file type for {bucket}: {ext or filename or 'empty'}")
    key = f"{bucket}/{owner_id}/{uuid4().hex[:8]}-{filename}"

    if current_app.config.get('STORAGE_BACKEND', 'local') == 's3':
        s3 = _s3_client()
        s3_bucket = current_app.config.get('S3_BUCKET')
        stream = getattr(file_storage, 'stream', file_storage)
        try:
            s3.upload_fileobj(stream, s3_bucket, key)
            return f"s3://{s3_bucket}/{key}"
        except Exception:
            current_app.logger.exception('S3 upload failed, falling back to local storage')
            try:
                stream.seek(0)
            except Exception:
                pass
            return _save_local(file_storage, key)
    return _save_local(file_storage, key)


def public_url(storage_url, expires_in=3600):
    """Browser-usable url for a storage url (presigned for s3)."""
    if not storage_url:
        return None
    if storage_url.startswith('s3://'):
        bucket, key = storage_url.replace('s3://', '').split('/', 1)
        return _s3_client().generate_presigned_url(
            'get_object', Params={'Bucket': bucket, 'Key': key}, ExpiresIn=expires_in)
    return storage_url
