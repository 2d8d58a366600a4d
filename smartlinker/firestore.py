"""Firestore REST client used as the remote cache and document mirror.

The client signs its own RS256 bearer token from a service-account JSON and
talks to the Firestore v1 REST API with httpx. It is treated purely as a
cache: every failure is raised as ``BackendUnavailable`` so callers can log
it and carry on with local state.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from .engine.errors import BackendUnavailable

logger = logging.getLogger(__name__)

REQUIRED_CREDENTIAL_FIELDS = ('type', 'project_id', 'private_key', 'client_email', 'private_key_id')
TOKEN_AUDIENCE = 'https://firestore.googleapis.com/'
TOKEN_LIFETIME = 3600
TOKEN_REFRESH_MARGIN = 300
BASE_URL = 'https://firestore.googleapis.com/v1/projects/{project}/databases/(default)/documents'

CACHE_COLLECTION = 'suggestion_cache'
POSTS_COLLECTION = 'posts'


def load_credentials(raw: str | None) -> Optional[Dict[str, Any]]:
    """Parse service-account credentials given inline as JSON or as a file path."""

    if not raw or not raw.strip():
        return None
    text = raw.strip()
    if not text.startswith('{'):
        path = Path(text)
        if not path.exists():
            logger.warning('Firestore credentials file %s does not exist', path)
            return None
        text = path.read_text(encoding='utf-8')
    try:
        credentials = json.loads(text)
    except ValueError:
        logger.warning('Firestore credentials are not valid JSON')
        return None
    return credentials if isinstance(credentials, dict) else None


def credentials_are_valid(credentials: Optional[Dict[str, Any]]) -> bool:
    return bool(credentials) and all(credentials.get(name) for name in REQUIRED_CREDENTIAL_FIELDS)


def to_firestore_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {'nullValue': None}
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, str):
        return {'stringValue': value}
    if isinstance(value, dict):
        return {'mapValue': {'fields': {str(key): to_firestore_value(item) for key, item in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {'arrayValue': {'values': [to_firestore_value(item) for item in value]}}
    raise TypeError(f'Unsupported value type for Firestore: {type(value).__name__}')


def from_firestore_value(value: Any) -> Any:
    if not isinstance(value, dict) or not value:
        return None
    kind, inner = next(iter(value.items()))
    if kind == 'booleanValue':
        return bool(inner)
    if kind == 'integerValue':
        return int(inner)
    if kind == 'doubleValue':
        return float(inner)
    if kind == 'stringValue':
        return str(inner)
    if kind == 'mapValue':
        fields = (inner or {}).get('fields', {})
        return {key: from_firestore_value(item) for key, item in fields.items()}
    if kind == 'arrayValue':
        return [from_firestore_value(item) for item in (inner or {}).get('values', [])]
    return None


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {'fields': {key: to_firestore_value(value) for key, value in data.items()}}


def decode_fields(document: Dict[str, Any]) -> Dict[str, Any]:
    return {key: from_firestore_value(value) for key, value in document.get('fields', {}).items()}


class FirestoreClient:
    """Minimal Firestore document client: get, set, create and delete."""

    def __init__(
        self,
        credentials: Dict[str, Any],
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not credentials_are_valid(credentials):
            raise ValueError('Firestore credentials are missing required fields')
        self.credentials = credentials
        self.timeout = timeout
        self.clock = clock
        self.base_url = BASE_URL.format(project=credentials['project_id'])
        self._client = client
        self._token: str | None = None
        self._token_expires = 0.0

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _access_token(self) -> str:
        now = self.clock()
        if self._token is None or now >= self._token_expires - TOKEN_REFRESH_MARGIN:
            issued = int(now)
            claims = {
                'iss': self.credentials['client_email'],
                'sub': self.credentials['client_email'],
                'aud': TOKEN_AUDIENCE,
                'iat': issued,
                'exp': issued + TOKEN_LIFETIME,
            }
            try:
                self._token = jwt.encode(
                    claims,
                    self.credentials['private_key'],
                    algorithm='RS256',
                    headers={'kid': self.credentials['private_key_id']},
                )
            except (jwt.PyJWTError, ValueError, TypeError) as exc:
                raise BackendUnavailable(f'Could not sign Firestore token: {exc}') from exc
            self._token_expires = issued + TOKEN_LIFETIME
        return self._token

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        params: Dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{path}"
        headers = {
            'Authorization': f"Bearer {self._access_token()}",
            'Accept': 'application/json',
        }
        logger.debug('Firestore %s %s', method, url)
        try:
            return self.client.request(method, url, headers=headers, json=json_body, params=params, timeout=self.timeout)
        except httpx.RequestError as exc:
            raise BackendUnavailable(f'Firestore request failed: {exc}') from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code != 200:
            raise BackendUnavailable(f'Firestore error {response.status_code}: {response.text[:200]}')

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        response = self._request('GET', f"{collection}/{document_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        try:
            return decode_fields(response.json())
        except ValueError as exc:
            raise BackendUnavailable(f'Firestore returned an unreadable document: {exc}') from exc

    def set(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """Create or replace a document."""

        response = self._request('PATCH', f"{collection}/{document_id}", json_body=encode_fields(data))
        self._raise_for_status(response)

    def create(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        response = self._request(
            'POST',
            collection,
            json_body=encode_fields(data),
            params={'documentId': document_id},
        )
        self._raise_for_status(response)

    def delete(self, collection: str, document_id: str) -> None:
        response = self._request('DELETE', f"{collection}/{document_id}")
        if response.status_code == 404:
            return
        self._raise_for_status(response)


class FirestoreCacheBackend:
    """Engine cache backend storing entries in one Firestore collection."""

    def __init__(
        self,
        client: FirestoreClient,
        *,
        collection: str = CACHE_COLLECTION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.collection = collection
        self.clock = clock

    @staticmethod
    def document_id(key: str) -> str:
        return hashlib.md5(key.encode('utf-8')).hexdigest()

    def get(self, key: str) -> Any:
        document = self.client.get(self.collection, self.document_id(key))
        if not document:
            return None
        expires = document.get('expires')
        if isinstance(expires, (int, float)) and expires <= self.clock():
            return None
        return document.get('value')

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        data: Dict[str, Any] = {'key': key, 'value': value}
        if ttl:
            data['expires'] = self.clock() + ttl
        self.client.set(self.collection, self.document_id(key), data)

    def delete(self, key: str) -> None:
        self.client.delete(self.collection, self.document_id(key))


def mirror_payload(document: Any) -> Dict[str, Any]:
    return {
        'title': document.title,
        'content': document.content,
        'excerpt': document.get_excerpt(),
        'modified': document.modified_at.isoformat() if document.modified_at else None,
        'categories': sorted(category.name for category in document.categories.all()),
    }


def mirror_document(client: FirestoreClient, document: Any) -> None:
    client.set(POSTS_COLLECTION, str(document.pk), mirror_payload(document))
    logger.debug('Mirrored document %s to Firestore', document.pk)


def delete_mirror(client: FirestoreClient, document_id: int) -> None:
    client.delete(POSTS_COLLECTION, str(document_id))
