"""
Account backup storage.

One JSON file per account under the accounts directory, named
``<email>.json`` and holding exactly one field: the opaque agent-state
string under its original database key. Backups are never edited in place.

Also handles password-protected export/import of all backups at once.
"""

import base64
import json
import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ...domain.errors import (
    AccountNotFoundError,
    DecodeError,
    NotFoundError,
    StorageIOError,
    ValidationError,
)
from ...domain.models.account import AccountBackup, ExportedAccountFile, ImportResult
from ...utils.config_paths import get_accounts_dir
from ..target.constants import AGENT_STATE_KEY
from .json_file import read_json, write_json

logger = logging.getLogger("switchboard.account_backups")

BACKUP_EXTENSION = ".json"
EXPORT_FORMAT_VERSION = 1
_SALT_SIZE = 16
_KDF_ITERATIONS = 100000


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode('utf-8')))


def _check_name(name: str) -> str:
    """Reject names that would escape the accounts directory."""
    if not name or name in ('.', '..') or '/' in name or '\\' in name or '\x00' in name:
        raise ValidationError(f"Invalid account name: {name!r}")
    return name


class AccountBackupRepository:
    """File-per-account storage of agent-state backups."""

    def __init__(self, accounts_dir: Optional[Path] = None, state_key: str = AGENT_STATE_KEY):
        self.accounts_dir = Path(accounts_dir) if accounts_dir else get_accounts_dir()
        self.state_key = state_key

    def path_for(self, account_id: str) -> Path:
        return self.accounts_dir / f"{_check_name(account_id)}{BACKUP_EXTENSION}"

    def exists(self, account_id: str) -> bool:
        return self.path_for(account_id).is_file()

    def _extract_state(self, data: Any, source: str) -> str:
        """
        Pull the agent-state string out of a backup document.

        Files written by this agent use the database key; a document with a
        single string field under another name is accepted too.
        """
        if not isinstance(data, dict):
            raise DecodeError(f"Backup {source} is not a JSON object")
        value = data.get(self.state_key)
        if value is None and len(data) == 1:
            value = next(iter(data.values()))
        if not isinstance(value, str) or not value:
            raise DecodeError(f"Backup {source} is missing {self.state_key}")
        return value

    def save(self, account_id: str, agent_state: str) -> Path:
        """Write (or overwrite) the backup for ``account_id``."""
        path = self.path_for(account_id)
        write_json(path, {self.state_key: agent_state})
        logger.info(f"Saved account backup {path.name}")
        return path

    def load(self, account_id: str) -> AccountBackup:
        """
        Read one backup.

        Raises:
            AccountNotFoundError: no backup file for this account
            DecodeError: the file is malformed
        """
        path = self.path_for(account_id)
        try:
            data = read_json(path)
        except NotFoundError as e:
            raise AccountNotFoundError(f"No backup found for account '{account_id}'") from e
        return AccountBackup(account_id=account_id, agent_state=self._extract_state(data, path.name))

    def list_backups(self) -> List[Tuple[AccountBackup, datetime]]:
        """
        All readable backups, newest first.

        Malformed files are skipped individually with a warning.
        """
        if not self.accounts_dir.is_dir():
            logger.info("Backup directory does not exist, returning empty list")
            return []

        entries = []
        for path in self.accounts_dir.glob(f"*{BACKUP_EXTENSION}"):
            if not path.is_file():
                continue
            try:
                backup = AccountBackup(
                    account_id=path.stem,
                    agent_state=self._extract_state(read_json(path), path.name),
                )
                modified = datetime.fromtimestamp(path.stat().st_mtime)
            except (DecodeError, StorageIOError, NotFoundError, OSError) as e:
                logger.warning(f"Skipping unreadable backup {path.name}: {e}")
                continue
            entries.append((backup, modified))

        entries.sort(key=lambda entry: entry[1], reverse=True)
        return entries

    def delete(self, account_id: str) -> None:
        path = self.path_for(account_id)
        if not path.exists():
            raise AccountNotFoundError(f"No backup found for account '{account_id}'")
        try:
            path.unlink()
        except OSError as e:
            raise StorageIOError(f"Failed to delete {path.name}: {e}") from e
        logger.info(f"Deleted account backup {path.name}")

    def clear_all(self) -> int:
        """Delete every backup file; returns how many were removed."""
        if not self.accounts_dir.is_dir():
            return 0
        deleted = 0
        for path in self.accounts_dir.glob(f"*{BACKUP_EXTENSION}"):
            try:
                path.unlink()
                deleted += 1
            except OSError as e:
                raise StorageIOError(f"Failed to delete {path.name}: {e}") from e
        logger.info(f"Cleared all account backups, deleted {deleted} files")
        return deleted

    # --- Export / import ---------------------------------------------------------

    def collect_files(self) -> List[ExportedAccountFile]:
        """Raw content of every parsable backup file."""
        files = []
        if not self.accounts_dir.is_dir():
            return files
        now = int(time.time())
        for path in sorted(self.accounts_dir.glob(f"*{BACKUP_EXTENSION}")):
            try:
                content = read_json(path)
            except (DecodeError, StorageIOError, NotFoundError) as e:
                logger.warning(f"Failed to read {path.name} for export: {e}")
                continue
            files.append(ExportedAccountFile(filename=path.name, content=content, timestamp=now))
        return files

    def export_bundle(self, password: str) -> str:
        """
        Encrypt every backup into one text token.

        Raises:
            ValidationError: empty password
        """
        if not password:
            raise ValidationError("Password cannot be empty")

        payload = json.dumps({
            'version': EXPORT_FORMAT_VERSION,
            'files': [
                {'filename': f.filename, 'content': f.content, 'timestamp': f.timestamp}
                for f in self.collect_files()
            ],
        }, ensure_ascii=False).encode('utf-8')

        salt = os.urandom(_SALT_SIZE)
        token = Fernet(_derive_key(password, salt)).encrypt(payload)
        logger.info("Exported account backups")
        return base64.urlsafe_b64encode(salt + token).decode('ascii')

    def decrypt_bundle(self, bundle: str, password: str) -> List[ExportedAccountFile]:
        """
        Decrypt an export token.

        Raises:
            ValidationError: empty password
            DecodeError: wrong password or corrupted bundle
        """
        if not password:
            raise ValidationError("Password cannot be empty")
        try:
            raw = base64.urlsafe_b64decode(bundle.strip().encode('ascii'))
        except (ValueError, UnicodeEncodeError) as e:
            raise DecodeError(f"Bundle is not valid Base64: {e}") from e
        if len(raw) <= _SALT_SIZE:
            raise DecodeError("Bundle is too short")

        salt, token = raw[:_SALT_SIZE], raw[_SALT_SIZE:]
        try:
            payload = Fernet(_derive_key(password, salt)).decrypt(token)
        except InvalidToken as e:
            raise DecodeError("Decryption failed, wrong password or corrupted data") from e

        try:
            data: Dict[str, Any] = json.loads(payload.decode('utf-8'))
            return [
                ExportedAccountFile(
                    filename=entry['filename'],
                    content=entry['content'],
                    timestamp=entry.get('timestamp'),
                )
                for entry in data['files']
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"Bundle content is malformed: {e}") from e

    def import_bundle(self, bundle: str, password: str) -> ImportResult:
        """Write every file of an export token; per-file failures are collected."""
        result = ImportResult()
        for exported in self.decrypt_bundle(bundle, password):
            try:
                name = _check_name(exported.filename)
                if not name.endswith(BACKUP_EXTENSION):
                    raise ValidationError(f"Not a backup file: {name}")
                self._extract_state(exported.content, name)
                write_json(self.accounts_dir / name, exported.content)
                result.restored_count += 1
            except (ValidationError, DecodeError, StorageIOError) as e:
                logger.warning(f"Failed to import {exported.filename}: {e}")
                result.failed.append((exported.filename, str(e)))
        logger.info(f"Imported {result.restored_count} account backups, {len(result.failed)} failed")
        return result
