"""One function per store verb: marshal parameters, dispatch, parse the reply.

Every function raises StoreError (or a subclass) when the call fails, and
ArgumentError before touching the network when its arguments are invalid.
"""

from __future__ import annotations

import re
from contextlib import closing
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

import requests

from ..core.acl import AclEntry, acl_spec_to_string, is_valid_rwx
from ..core.model import (
    AclStatus,
    ArgumentError,
    CallOptions,
    CallResult,
    ContentSummary,
    DirectoryEntry,
    DirectoryEntryType,
    StoreError,
)
from .dispatcher import Operation, RequestDispatcher

AclSpec = Union[str, Sequence[AclEntry]]

_OCTAL_RE = re.compile(r"^[0-7]{3}$")


def is_valid_octal(permission: str) -> bool:
    return bool(_OCTAL_RE.match(permission or ""))


def _call(dispatcher: RequestDispatcher, op: Operation, path: str, params=None, body: Optional[bytes] = None,
          options: Optional[CallOptions] = None, error_message: str = "") -> CallResult:
    result = dispatcher.execute(op, path, params, body, options)
    if not result.successful:
        raise StoreError.from_result(result, error_message or f"Error during {op.name} on {path}")
    return result


def _read_json(result: CallResult, what: str, key: Optional[str] = None) -> Dict[str, Any]:
    """Parse the reply as a JSON object, optionally returning the object under `key`."""
    with closing(result.body) as response:
        try:
            payload = response.json()
        except (ValueError, requests.RequestException) as e:
            result.message = f"Unexpected error reading or parsing JSON from {what}"
            raise StoreError.from_result(result, result.message) from e
    if key is not None and isinstance(payload, dict):
        payload = payload.get(key, {})
    if not isinstance(payload, dict):
        result.message = f"Unexpected JSON from {what}: expected an object"
        raise StoreError.from_result(result, result.message)
    return payload


def _read_boolean(result: CallResult, what: str) -> bool:
    return bool(_read_json(result, what).get("boolean", False))


def _from_millis(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value or 0) / 1000, tz=timezone.utc)


def _entry_from_json(node: Dict[str, Any], path: str) -> DirectoryEntry:
    name = node.get("pathSuffix") or ""
    if name:
        full_name = path + name if path.endswith("/") else f"{path}/{name}"
    else:
        full_name = path
        name = path.rsplit("/", 1)[-1]
    entry_type = DirectoryEntryType.FILE if node.get("type") == "FILE" else DirectoryEntryType.DIRECTORY
    return DirectoryEntry(
        name=name,
        full_name=full_name,
        length=int(node.get("length") or 0),
        group=node.get("group", ""),
        user=node.get("owner", ""),
        last_access_time=_from_millis(node.get("accessTime")),
        last_modified_time=_from_millis(node.get("modificationTime")),
        type=entry_type,
        permission=node.get("permission", ""),
    )


def _acl_param(acl_spec: AclSpec, remove: bool, what: str) -> str:
    if isinstance(acl_spec, str):
        acl_spec = [AclEntry.parse(item, remove) for item in acl_spec.split(",") if item.strip()]
    text = acl_spec_to_string(acl_spec or [], remove=remove)
    if not text:
        raise ArgumentError(f"null or empty AclSpec passed in to {what}")
    return text


# --- data ---

def create(dispatcher: RequestDispatcher, path: str, overwrite: bool, contents: bytes = b"",
           permission: Optional[str] = None, options: Optional[CallOptions] = None) -> None:
    """Create `path` with `contents` as its full initial content."""
    params = [("overwrite", "true" if overwrite else "false"), ("write", "true")]
    if permission:
        if not is_valid_octal(permission):
            raise ArgumentError(f"Invalid permission specified: {permission}")
        params.append(("permission", permission))
    _call(dispatcher, Operation.CREATE, path, params, bytes(contents), options, f"Error creating file {path}")


def append(dispatcher: RequestDispatcher, path: str, contents: bytes,
           options: Optional[CallOptions] = None) -> None:
    """Append `contents` at the end of `path` as one server-side write."""
    _call(dispatcher, Operation.APPEND, path, [("append", "true")], bytes(contents), options,
          f"Error appending to file {path}")


def concurrent_append(dispatcher: RequestDispatcher, path: str, contents: bytes, autocreate: bool = False,
                      options: Optional[CallOptions] = None) -> None:
    """Append where the server picks the offset; several writers may do this at once."""
    params = [("appendMode", "autocreate")] if autocreate else []
    result = _call(dispatcher, Operation.CONCURRENTAPPEND, path, params, bytes(contents), options,
                   f"Error appending to file {path}")
    if result.body is not None:
        result.body.close()  # reply carries nothing we use


def open(dispatcher: RequestDispatcher, path: str, offset: int = 0, length: int = 0,
         options: Optional[CallOptions] = None) -> Optional[requests.Response]:
    """Start a ranged read. Returns the open streamed response, or None at end of file.

    The caller owns the returned response and must close it.
    """
    if offset < 0 or length < 0:
        raise ArgumentError(f"invalid range offset={offset} length={length}")
    params = [("read", "true")]
    if offset > 0:
        params.append(("offset", str(offset)))
    if length > 0:
        params.append(("length", str(length)))
    result = _call(dispatcher, Operation.OPEN, path, params, None, options, f"Error reading from file {path}")
    if result.is_eof:
        return None
    return result.body


def concat(dispatcher: RequestDispatcher, path: str, sources: Sequence[str], delete_source_directory: bool = False,
           options: Optional[CallOptions] = None) -> None:
    if not sources:
        raise ArgumentError("No source files specified to concatenate")
    if path in sources:
        raise ArgumentError("One of the source files to concatenate is the destination file")
    body = ("sources=" + ",".join(sources)).encode("utf-8")
    params = [("deleteSourceDirectory", "true" if delete_source_directory else "false")]
    _call(dispatcher, Operation.MSCONCAT, path, params, body, options, f"Error concatenating files into {path}")


# --- namespace ---

def delete(dispatcher: RequestDispatcher, path: str, recursive: bool = False,
           options: Optional[CallOptions] = None) -> bool:
    params = [("recursive", "true" if recursive else "false")]
    result = _call(dispatcher, Operation.DELETE, path, params, None, options, f"Error deleting {path}")
    return _read_boolean(result, "delete()")


def rename(dispatcher: RequestDispatcher, path: str, destination: str,
           options: Optional[CallOptions] = None) -> bool:
    if not destination or not destination.strip():
        raise ArgumentError("destination is required")
    result = _call(dispatcher, Operation.RENAME, path, [("destination", destination)], None, options,
                   f"Error renaming {path}")
    return _read_boolean(result, "rename()")


def mkdirs(dispatcher: RequestDispatcher, path: str, permission: Optional[str] = None,
           options: Optional[CallOptions] = None) -> bool:
    params = []
    if permission:
        if not is_valid_octal(permission):
            raise ArgumentError(f"Invalid directory permissions specified: {permission}")
        params.append(("permission", permission))
    result = _call(dispatcher, Operation.MKDIRS, path, params, None, options, f"Error creating directory {path}")
    return _read_boolean(result, "mkdirs()")


def get_file_status(dispatcher: RequestDispatcher, path: str,
                    options: Optional[CallOptions] = None) -> DirectoryEntry:
    result = _call(dispatcher, Operation.MSGETFILESTATUS, path, None, None, options,
                   f"Error getting info for file {path}")
    return _entry_from_json(_read_json(result, "getFileStatus()", "FileStatus"), path)


def list_status(dispatcher: RequestDispatcher, path: str, list_after: Optional[str] = None,
                list_before: Optional[str] = None, list_size: int = 0,
                options: Optional[CallOptions] = None) -> List[DirectoryEntry]:
    """One page of a directory listing; paging is left to the caller."""
    params = []
    if list_after:
        params.append(("listAfter", list_after))
    if list_before:
        params.append(("listBefore", list_before))
    if list_size > 0:
        params.append(("listSize", str(list_size)))
    result = _call(dispatcher, Operation.MSLISTSTATUS, path, params, None, options,
                   f"Error enumerating directory {path}")
    nodes = _read_json(result, "listStatus()", "FileStatuses").get("FileStatus", [])
    return [_entry_from_json(node, path) for node in nodes]


def get_content_summary(dispatcher: RequestDispatcher, path: str,
                        options: Optional[CallOptions] = None) -> ContentSummary:
    result = _call(dispatcher, Operation.GETCONTENTSUMMARY, path, None, None, options,
                   f"Error getting content summary for {path}")
    node = _read_json(result, "getContentSummary()", "ContentSummary")
    return ContentSummary(
        length=int(node.get("length") or 0),
        directory_count=int(node.get("directoryCount") or 0),
        file_count=int(node.get("fileCount") or 0),
        space_consumed=int(node.get("spaceConsumed") or 0),
    )


# --- metadata ---

def set_times(dispatcher: RequestDispatcher, path: str, atime: int = -1, mtime: int = -1,
              options: Optional[CallOptions] = None) -> None:
    """Set access/modification times in epoch millis; -1 leaves a time unchanged."""
    if atime < -1:
        raise ArgumentError("Invalid Access Time specified")
    if mtime < -1:
        raise ArgumentError("Invalid Modification Time specified")
    if atime == -1 and mtime == -1:
        raise ArgumentError("Access time and Modification time cannot both be unspecified")
    params = []
    if mtime != -1:
        params.append(("modificationtime", str(mtime)))
    if atime != -1:
        params.append(("accesstime", str(atime)))
    _call(dispatcher, Operation.SETTIMES, path, params, None, options, f"Error setting times for {path}")


def set_owner(dispatcher: RequestDispatcher, path: str, owner: Optional[str] = None, group: Optional[str] = None,
              options: Optional[CallOptions] = None) -> None:
    params = []
    if owner and owner.strip():
        params.append(("owner", owner))
    if group and group.strip():
        params.append(("group", group))
    if not params:
        raise ArgumentError("Both owner and group names cannot be blank")
    _call(dispatcher, Operation.SETOWNER, path, params, None, options, f"Error setting owner for {path}")


def set_permission(dispatcher: RequestDispatcher, path: str, permission: str,
                   options: Optional[CallOptions] = None) -> None:
    if not is_valid_octal(permission):
        raise ArgumentError(f"Specified permissions are not valid Octal Permissions: {permission}")
    _call(dispatcher, Operation.SETPERMISSION, path, [("permission", permission)], None, options,
          f"Error setting permission for {path}")


def check_access(dispatcher: RequestDispatcher, path: str, rwx: str,
                 options: Optional[CallOptions] = None) -> None:
    """Succeeds when the caller holds `rwx` on `path`, raises StoreError otherwise."""
    if not rwx or not rwx.strip():
        raise ArgumentError("null or empty access specification passed in to check access for")
    if not is_valid_rwx(rwx):
        raise ArgumentError(f"invalid access specification passed in to check access for: {rwx}")
    result = _call(dispatcher, Operation.CHECKACCESS, path, [("fsaction", rwx.strip().lower())], None, options,
                   f"Error checking access for {path}")
    if result.body is not None:
        result.body.close()


# --- ACLs ---

def modify_acl_entries(dispatcher: RequestDispatcher, path: str, acl_spec: AclSpec,
                       options: Optional[CallOptions] = None) -> None:
    aclspec = _acl_param(acl_spec, False, "modifyAclEntries")
    _call(dispatcher, Operation.MODIFYACLENTRIES, path, [("aclspec", aclspec)], None, options,
          f"Error modifying ACLs for {path}")


def remove_acl_entries(dispatcher: RequestDispatcher, path: str, acl_spec: AclSpec,
                       options: Optional[CallOptions] = None) -> None:
    aclspec = _acl_param(acl_spec, True, "removeAclEntries")
    _call(dispatcher, Operation.REMOVEACLENTRIES, path, [("aclspec", aclspec)], None, options,
          f"Error removing ACLs for {path}")


def set_acl(dispatcher: RequestDispatcher, path: str, acl_spec: AclSpec,
            options: Optional[CallOptions] = None) -> None:
    aclspec = _acl_param(acl_spec, False, "setAcl")
    _call(dispatcher, Operation.SETACL, path, [("aclspec", aclspec)], None, options,
          f"Error setting ACLs for {path}")


def remove_default_acl(dispatcher: RequestDispatcher, path: str, options: Optional[CallOptions] = None) -> None:
    _call(dispatcher, Operation.REMOVEDEFAULTACL, path, None, None, options,
          f"Error removing default ACLs for {path}")


def remove_acl(dispatcher: RequestDispatcher, path: str, options: Optional[CallOptions] = None) -> None:
    _call(dispatcher, Operation.REMOVEACL, path, None, None, options, f"Error removing all ACLs for {path}")


def get_acl_status(dispatcher: RequestDispatcher, path: str, options: Optional[CallOptions] = None) -> AclStatus:
    result = _call(dispatcher, Operation.GETACLSTATUS, path, None, None, options,
                   f"Error getting ACL status for {path}")
    node = _read_json(result, "getAclStatus()", "AclStatus")
    return AclStatus(
        entries=[AclEntry.parse(text) for text in node.get("entries", []) if text],
        owner=node.get("owner", ""),
        group=node.get("group", ""),
        permission=node.get("permission", ""),
    )


__all__ = [
    "create", "append", "concurrent_append", "open", "concat",
    "delete", "rename", "mkdirs", "get_file_status", "list_status", "get_content_summary",
    "set_times", "set_owner", "set_permission", "check_access",
    "modify_acl_entries", "remove_acl_entries", "set_acl", "remove_default_acl", "remove_acl",
    "get_acl_status", "is_valid_octal",
]
