"""Client facade: one object per account, with a method per store verb."""

from __future__ import annotations

import itertools
import platform
import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Union

import requests

from .auth import StaticTokenProvider, TokenProvider
from .constants import DEFAULT_BUFFER_SIZE, DEFAULT_TIMEOUT, MAX_APPEND_SIZE, VERSION
from .core.acl import AclEntry
from .core.latency import LatencyTracker
from .core.model import (
    AclStatus,
    ArgumentError,
    CallOptions,
    ContentSummary,
    DirectoryEntry,
    DirectoryEntryType,
    PathNotFoundError,
    StoreError,
)
from .core.retry import ExponentialOnThrottlePolicy, NoRetryPolicy, RetryPolicy
from .io.read_buffer import ReadBuffer
from .io.write_buffer import WriteBuffer, WriteMode
from .logger import log
from .protocol import operations
from .protocol.dispatcher import RequestDispatcher

_client_ids = itertools.count(1)

UPLOAD_CHUNK = 4 * 1000 * 1000


def default_user_agent() -> str:
    return "adlstore-{}/{}-{}/{}/{}-{}".format(
        VERSION,
        platform.system().replace(" ", ""),
        platform.release(),
        platform.machine(),
        platform.python_implementation(),
        platform.python_version(),
    )


def _millis(value: Optional[datetime]) -> int:
    return -1 if value is None else int(value.timestamp() * 1000)


class StoreClient:
    """Access to the files of one store account.

    Idempotent verbs use the client's retry policy (exponential backoff on
    throttling by default). Appends and creates without overwrite are never
    retried.
    """

    def __init__(self, account: str, token: Union[str, TokenProvider], *,
                 scheme: str = "https",
                 user_agent_suffix: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 read_buffer_size: int = DEFAULT_BUFFER_SIZE,
                 write_buffer_size: int = DEFAULT_BUFFER_SIZE,
                 retry_policy: Optional[RetryPolicy] = None,
                 tracker: Optional[LatencyTracker] = None,
                 session: Optional[requests.Session] = None):
        if not account or not account.strip():
            raise ArgumentError("account name is required")
        if token is None:
            raise ArgumentError("token is required")
        provider = StaticTokenProvider(token) if isinstance(token, str) else token

        self.client_id = next(_client_ids)
        self.timeout = timeout
        self.read_buffer_size = read_buffer_size
        self.write_buffer_size = write_buffer_size
        self.retry_policy = retry_policy if retry_policy is not None else ExponentialOnThrottlePolicy()
        self.dispatcher = RequestDispatcher(account, provider, user_agent=default_user_agent(),
                                            client_id=self.client_id, scheme=scheme, tracker=tracker,
                                            session=session)
        if user_agent_suffix:
            self.set_user_agent_suffix(user_agent_suffix)
        log.debug("StoreClient %d created for %s", self.client_id, account)

    @classmethod
    def from_config(cls, config, **kwargs) -> StoreClient:
        """Build a client from an adlstore.config.Config."""
        retry = ExponentialOnThrottlePolicy(
            max_retries=config.retry.max_retries,
            linear_interval=config.retry.linear_interval,
            exponential_interval=config.retry.exponential_interval,
        )
        params = dict(
            scheme=config.account.scheme,
            user_agent_suffix=config.account.user_agent_suffix or None,
            timeout=config.io.timeout,
            read_buffer_size=config.io.read_buffer_size,
            write_buffer_size=config.io.write_buffer_size,
            retry_policy=retry,
        )
        params.update(kwargs)
        return cls(config.account.name, config.account.token, **params)

    # --- settings ---

    @property
    def account(self) -> str:
        return self.dispatcher.account

    @property
    def user_agent(self) -> str:
        return self.dispatcher.user_agent

    def set_user_agent_suffix(self, suffix: str) -> None:
        if suffix and suffix.strip():
            self.dispatcher.user_agent = f"{default_user_agent()}/{suffix.strip()}"

    def update_token(self, token: str) -> None:
        provider = self.dispatcher.token_provider
        if isinstance(provider, StaticTokenProvider):
            provider.update(token)
        else:
            self.dispatcher.token_provider = StaticTokenProvider(token)
        log.debug("token updated for client %d", self.client_id)

    def _options(self, policy: Optional[RetryPolicy] = None) -> CallOptions:
        return CallOptions(timeout=self.timeout, retry_policy=policy if policy is not None else self.retry_policy)

    def close(self) -> None:
        self.dispatcher.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- streams ---

    def create_file(self, path: str, overwrite: bool = False, permission: Optional[str] = None) -> WriteBuffer:
        """Open a stream that creates `path` on first flush (or on close if nothing was written)."""
        if permission and not operations.is_valid_octal(permission):
            raise ArgumentError(f"Invalid file permissions specified: {permission}")
        return WriteBuffer(self.dispatcher, path, WriteMode.CREATE, overwrite=overwrite, permission=permission,
                           buffer_size=self.write_buffer_size, retry_policy=self.retry_policy,
                           timeout=self.timeout)

    def get_append_stream(self, path: str) -> WriteBuffer:
        return WriteBuffer(self.dispatcher, path, WriteMode.APPEND, buffer_size=self.write_buffer_size,
                           timeout=self.timeout)

    def get_concurrent_append_stream(self, path: str, autocreate: bool = True) -> WriteBuffer:
        return WriteBuffer(self.dispatcher, path, WriteMode.CONCURRENT_APPEND, autocreate=autocreate,
                           buffer_size=self.write_buffer_size, timeout=self.timeout)

    def get_read_stream(self, path: str) -> ReadBuffer:
        entry = self.get_directory_entry(path)
        if entry.type is not DirectoryEntryType.FILE:
            raise StoreError(f"Path is not a file: {path}")
        return ReadBuffer(self.dispatcher, path, entry.length, buffer_size=self.read_buffer_size,
                          retry_policy=self.retry_policy, timeout=self.timeout)

    # --- namespace ---

    def get_directory_entry(self, path: str) -> DirectoryEntry:
        return operations.get_file_status(self.dispatcher, path, self._options())

    def enumerate_directory(self, path: str, max_entries: int = 0, start_after: Optional[str] = None,
                            end_before: Optional[str] = None) -> List[DirectoryEntry]:
        return operations.list_status(self.dispatcher, path, start_after, end_before, max_entries, self._options())

    def get_content_summary(self, path: str) -> ContentSummary:
        return operations.get_content_summary(self.dispatcher, path, self._options())

    def create_directory(self, path: str, permission: Optional[str] = None) -> bool:
        return operations.mkdirs(self.dispatcher, path, permission, self._options())

    def delete(self, path: str) -> bool:
        return operations.delete(self.dispatcher, path, False, self._options())

    def delete_recursive(self, path: str) -> bool:
        return operations.delete(self.dispatcher, path, True, self._options())

    def rename(self, path: str, destination: str) -> bool:
        return operations.rename(self.dispatcher, path, destination, self._options())

    def concatenate_files(self, path: str, sources: Sequence[str], delete_source_directory: bool = False) -> None:
        operations.concat(self.dispatcher, path, list(sources), delete_source_directory, self._options())

    # --- metadata ---

    def set_owner(self, path: str, owner: Optional[str] = None, group: Optional[str] = None) -> None:
        operations.set_owner(self.dispatcher, path, owner, group, self._options())

    def set_times(self, path: str, atime: Optional[datetime] = None, mtime: Optional[datetime] = None) -> None:
        operations.set_times(self.dispatcher, path, _millis(atime), _millis(mtime), self._options())

    def set_permission(self, path: str, permission: str) -> None:
        operations.set_permission(self.dispatcher, path, permission, self._options())

    def check_access(self, path: str, rwx: str) -> bool:
        try:
            operations.check_access(self.dispatcher, path, rwx, self._options())
        except StoreError as e:
            if e.status_code in (401, 403):
                return False
            raise
        return True

    def can_read(self, path: str) -> bool:
        return self.check_access(path, "r--")

    def can_write(self, path: str) -> bool:
        return self.check_access(path, "-w-")

    def can_execute(self, path: str) -> bool:
        return self.check_access(path, "--x")

    # --- ACLs ---

    def modify_acl_entries(self, path: str, acl_spec: Union[str, Sequence[AclEntry]]) -> None:
        operations.modify_acl_entries(self.dispatcher, path, acl_spec, self._options())

    def set_acl(self, path: str, acl_spec: Union[str, Sequence[AclEntry]]) -> None:
        operations.set_acl(self.dispatcher, path, acl_spec, self._options())

    def remove_acl_entries(self, path: str, acl_spec: Union[str, Sequence[AclEntry]]) -> None:
        operations.remove_acl_entries(self.dispatcher, path, acl_spec, self._options())

    def remove_default_acls(self, path: str) -> None:
        operations.remove_default_acl(self.dispatcher, path, self._options())

    def remove_all_acls(self, path: str) -> None:
        operations.remove_acl(self.dispatcher, path, self._options())

    def get_acl_status(self, path: str) -> AclStatus:
        return operations.get_acl_status(self.dispatcher, path, self._options())

    # --- helpers ---

    def check_exists(self, path: str) -> bool:
        if not path or not path.strip():
            raise ArgumentError("path is required")
        try:
            self.get_directory_entry(path)
        except PathNotFoundError:
            return False
        return True

    def create_empty_file(self, path: str) -> None:
        self.create_file(path, overwrite=False).close()

    def append_bytes(self, path: str, data: bytes) -> None:
        """Append one record with a concurrent append, creating the file if needed."""
        if not data:
            return
        if len(data) > MAX_APPEND_SIZE:
            raise ArgumentError(f"maximum of {MAX_APPEND_SIZE} bytes can be appended in one request")
        operations.concurrent_append(self.dispatcher, path, data, True, self._options(NoRetryPolicy()))

    def upload(self, path: str, source: Union[str, Path, BinaryIO], overwrite: bool = False) -> int:
        """Copy a local file (or open binary file) to `path`. Returns bytes written."""
        if hasattr(source, "read"):
            return self._upload_stream(path, source, overwrite)
        with open(source, "rb") as f:
            return self._upload_stream(path, f, overwrite)

    def _upload_stream(self, path: str, source: BinaryIO, overwrite: bool) -> int:
        total = 0
        with self.create_file(path, overwrite=overwrite) as out:
            while True:
                chunk = source.read(UPLOAD_CHUNK)
                if not chunk:
                    break
                total += out.write(chunk)
        return total

    def download(self, path: str, target: Union[str, Path, BinaryIO]) -> int:
        """Copy `path` to a local file (or open binary file). Returns bytes read."""
        with self.get_read_stream(path) as stream:
            if hasattr(target, "write"):
                shutil.copyfileobj(stream, target, self.read_buffer_size)
            else:
                with open(target, "wb") as f:
                    shutil.copyfileobj(stream, f, self.read_buffer_size)
            return stream.tell()
