"""Object storage for project documents and ticket attachments (Google Drive).

Layout: Root / <bucket> / <owner id> / <generated id>.<ext>
where bucket is 'documents' (owner = project) or 'ticket-attachments'
(owner = ticket). The Drive file id is stored as the row's storage_path
and the web view link as its url.
"""
import io
import os
import json
import base64
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from atelier.config import get_config

logger = logging.getLogger('atelier.core.services.storage')

SCOPES = ['https://www.googleapis.com/auth/drive.file']

DOCUMENTS_BUCKET = 'documents'
ATTACHMENTS_BUCKET = 'ticket-attachments'

ALLOWED_MIME_TYPES = {
    'application/pdf': 'pdf',
    'application/msword': 'doc',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': 'docx',
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
}

EXTENSION_MIME = {
    'pdf': 'application/pdf',
    'doc': 'application/msword',
    'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
}


class StorageError(Exception):
    """Upload or delete against the object store failed."""


@dataclass
class Upload:
    """A file received from a request, read into memory."""
    filename: str
    mime_type: str
    content: bytes

    @property
    def size(self):
        return len(self.content)

    @classmethod
    def from_file_storage(cls, file_storage):
        """Build from a werkzeug FileStorage (request.files entry)."""
        filename = file_storage.filename or ''
        return cls(filename=filename,
                   mime_type=guess_mime_type(filename, file_storage.mimetype),
                   content=file_storage.read())

    def validation_error(self):
        return validate_upload(self.filename, self.mime_type, self.size)


def guess_mime_type(filename, declared=None):
    """Prefer the declared MIME type; fall back to the file extension."""
    if declared and declared in ALLOWED_MIME_TYPES:
        return declared
    ext = filename.rsplit('.', 1)[-1].lower() if filename and '.' in filename else ''
    return EXTENSION_MIME.get(ext, declared or 'application/octet-stream')


def validate_upload(filename, mime_type, size, max_size=None) -> Optional[str]:
    """Return an error message, or None when the file is acceptable."""
    max_size = max_size or get_config().max_upload_bytes
    if not filename:
        return 'Nom de fichier invalide'
    if size <= 0:
        return 'Le fichier est vide'
    if size > max_size:
        return f'Le fichier dépasse la taille maximale de {max_size // (1024 * 1024)} MB'
    if mime_type not in ALLOWED_MIME_TYPES:
        return ('Type de fichier non autorisé. Types acceptés : '
                'PDF, Word, JPEG, PNG, GIF, WebP')
    return None


def _load_credentials():
    """OAuth user token first, then service account. Raises FileNotFoundError if neither is set."""
    oauth_token = os.environ.get('GOOGLE_OAUTH_TOKEN')
    if oauth_token:
        from google.oauth2.credentials import Credentials
        from google.auth.transport.requests import Request

        try:
            token_info = json.loads(base64.b64decode(oauth_token).decode('utf-8'))
        except (ValueError, UnicodeDecodeError):
            token_info = json.loads(oauth_token)
        credentials = Credentials.from_authorized_user_info(token_info, SCOPES)
        if credentials.expired and credentials.refresh_token:
            credentials.refresh(Request())
        return credentials

    from google.oauth2 import service_account as sa

    service_account_json = os.environ.get('GOOGLE_SERVICE_ACCOUNT_JSON')
    service_account_file = os.environ.get('GOOGLE_SERVICE_ACCOUNT_FILE')
    if service_account_json:
        return sa.Credentials.from_service_account_info(
            json.loads(service_account_json), scopes=SCOPES
        )
    if service_account_file and os.path.exists(service_account_file):
        return sa.Credentials.from_service_account_file(service_account_file, scopes=SCOPES)

    raise FileNotFoundError(
        'Google Drive credentials not found. Set GOOGLE_OAUTH_TOKEN, '
        'GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_SERVICE_ACCOUNT_FILE.'
    )


def get_drive_service():
    """Authenticated Drive v3 client."""
    return build('drive', 'v3', credentials=_load_credentials(), cache_discovery=False)


def find_or_create_folder(service, folder_name: str, parent_id: str) -> str:
    """Find a folder by name under parent_id, creating it if missing. Returns its id."""
    query = (f"name='{folder_name}' and '{parent_id}' in parents "
             f"and mimeType='application/vnd.google-apps.folder' and trashed=false")
    results = service.files().list(
        q=query,
        fields='files(id, name)',
        supportsAllDrives=True,
        includeItemsFromAllDrives=True,
    ).execute()
    files = results.get('files', [])
    if files:
        return files[0]['id']

    folder = service.files().create(
        body={
            'name': folder_name,
            'mimeType': 'application/vnd.google-apps.folder',
            'parents': [parent_id],
        },
        fields='id',
        supportsAllDrives=True,
    ).execute()
    return folder['id']


class StorageService:
    """Upload/delete objects in the Drive buckets."""

    def __init__(self, root_folder_id=None, service_factory=get_drive_service):
        self.root_folder_id = root_folder_id or get_config().DRIVE_ROOT_FOLDER_ID or 'root'
        self._service_factory = service_factory
        self._service = None

    @property
    def service(self):
        if self._service is None:
            self._service = self._service_factory()
        return self._service

    def upload(self, bucket, owner_id, file_bytes, filename, mime_type):
        """Store a file and describe it for the database row.

        Returns dict(nom, type, taille, storage_path, url).
        """
        ext = ALLOWED_MIME_TYPES.get(mime_type) or filename.rsplit('.', 1)[-1].lower()
        object_name = f'{uuid.uuid4().hex}.{ext}'
        try:
            bucket_folder = find_or_create_folder(self.service, bucket, self.root_folder_id)
            owner_folder = find_or_create_folder(self.service, str(owner_id), bucket_folder)

            media = MediaIoBaseUpload(io.BytesIO(file_bytes), mimetype=mime_type, resumable=True)
            drive_file = self.service.files().create(
                body={'name': object_name, 'parents': [owner_folder]},
                media_body=media,
                fields='id, webViewLink',
                supportsAllDrives=True,
            ).execute()
        except (HttpError, FileNotFoundError, OSError) as e:
            logger.error(f'Upload of {filename} to {bucket}/{owner_id} failed: {e}')
            raise StorageError(f'Upload failed: {e}') from e

        file_id = drive_file['id']
        logger.info(f'Stored {filename} as {bucket}/{owner_id}/{object_name} ({file_id})')
        return {
            'nom': filename,
            'type': mime_type,
            'taille': len(file_bytes),
            'storage_path': file_id,
            'url': drive_file.get('webViewLink', f'https://drive.google.com/file/d/{file_id}/view'),
        }

    def delete(self, storage_path):
        """Delete a stored object. A missing object counts as deleted."""
        if not storage_path:
            return False
        try:
            self.service.files().delete(fileId=storage_path, supportsAllDrives=True).execute()
            return True
        except HttpError as e:
            if getattr(e, 'resp', None) is not None and e.resp.status == 404:
                logger.info(f'Storage object {storage_path} already gone')
                return False
            logger.error(f'Failed to delete storage object {storage_path}: {e}')
            raise StorageError(f'Delete failed: {e}') from e
        except (FileNotFoundError, OSError) as e:
            logger.error(f'Failed to delete storage object {storage_path}: {e}')
            raise StorageError(f'Delete failed: {e}') from e
