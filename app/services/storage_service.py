from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.services.errors import StorageError
from app.services.spreadsheet_service import XLSX_MEDIA_TYPE, workbook_filename

logger = logging.getLogger(__name__)


def storage_enabled() -> bool:
    return bool(settings.po_files_bucket)


def _s3_client():
    kwargs: dict = {}
    if settings.aws_region:
        kwargs['region_name'] = settings.aws_region
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs['aws_access_key_id'] = settings.aws_access_key_id
        kwargs['aws_secret_access_key'] = settings.aws_secret_access_key
    return boto3.client('s3', **kwargs)


def _bucket() -> str:
    if not settings.po_files_bucket:
        raise StorageError('PO_FILES_BUCKET is not configured')
    return settings.po_files_bucket


def put_order_file(order_number: str, content: bytes) -> str:
    key = workbook_filename(order_number)
    try:
        _s3_client().put_object(Bucket=_bucket(), Key=key, Body=content, ContentType=XLSX_MEDIA_TYPE)
    except (BotoCoreError, ClientError) as exc:
        logger.warning('Upload of %s failed: %s', key, exc)
        raise StorageError(f'Could not upload {key}') from exc
    logger.info('Uploaded %s to %s', key, settings.po_files_bucket)
    return key

