"""Request dispatcher: one HTTP attempt at a time, retried under a policy."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from ..constants import API_VERSION, HEADER_CLIENT_LATENCY, HEADER_CLIENT_REQUEST_ID, HEADER_REQUEST_ID
from ..core.latency import LatencyTracker, default_tracker
from ..core.model import ArgumentError, CallOptions, CallResult
from ..core.retry import NoRetryPolicy
from ..logger import log, summarize

QueryParams = Sequence[Tuple[str, str]]


class Operation(Enum):
    # verb is part of the value, otherwise members with equal flags become aliases
    #                    verb                 method    body   returns is_ext
    OPEN              = ("OPEN",              "GET",    False, True,  False)
    GETFILESTATUS     = ("GETFILESTATUS",     "GET",    False, True,  False)
    MSGETFILESTATUS   = ("MSGETFILESTATUS",   "GET",    False, True,  False)
    LISTSTATUS        = ("LISTSTATUS",        "GET",    False, True,  False)
    MSLISTSTATUS      = ("MSLISTSTATUS",      "GET",    False, True,  False)
    GETCONTENTSUMMARY = ("GETCONTENTSUMMARY", "GET",    False, True,  False)
    GETACLSTATUS      = ("GETACLSTATUS",      "GET",    False, True,  False)
    CHECKACCESS       = ("CHECKACCESS",       "GET",    False, True,  False)
    CREATE            = ("CREATE",            "PUT",    True,  False, False)
    MKDIRS            = ("MKDIRS",            "PUT",    False, True,  False)
    RENAME            = ("RENAME",            "PUT",    False, True,  False)
    SETOWNER          = ("SETOWNER",          "PUT",    False, False, False)
    SETPERMISSION     = ("SETPERMISSION",     "PUT",    False, False, False)
    SETTIMES          = ("SETTIMES",          "PUT",    False, False, False)
    MODIFYACLENTRIES  = ("MODIFYACLENTRIES",  "PUT",    False, False, False)
    REMOVEACLENTRIES  = ("REMOVEACLENTRIES",  "PUT",    False, False, False)
    REMOVEDEFAULTACL  = ("REMOVEDEFAULTACL",  "PUT",    False, False, False)
    REMOVEACL         = ("REMOVEACL",         "PUT",    False, False, False)
    SETACL            = ("SETACL",            "PUT",    False, False, False)
    APPEND            = ("APPEND",            "POST",   True,  False, False)
    MSCONCAT          = ("MSCONCAT",          "POST",   True,  False, False)
    DELETE            = ("DELETE",            "DELETE", False, True,  False)
    CONCURRENTAPPEND  = ("CONCURRENTAPPEND",  "POST",   True,  True,  True)

    def __init__(self, verb: str, method: str, requires_body: bool, returns_body: bool, is_ext: bool):
        self.verb = verb
        self.method = method
        self.requires_body = requires_body
        self.returns_body = returns_body
        self.is_ext = is_ext


def is_successful(result: CallResult, op: Operation) -> bool:
    """Classify one attempt. 403/416 on OPEN means end of file, not failure."""
    if result.error is not None:
        return False
    if 100 <= result.status_code < 300:
        return True
    return op is Operation.OPEN and result.status_code in (403, 416)


def _parse_error_body(response: requests.Response, result: CallResult) -> None:
    try:
        payload = response.json()
    except ValueError:
        return  # not JSON; status code alone describes the failure
    remote = payload.get("RemoteException") if isinstance(payload, dict) else None
    if not isinstance(remote, dict):
        return
    result.remote_exception_name = remote.get("exception")
    result.remote_exception_message = remote.get("message")
    result.remote_exception_class_name = remote.get("javaClassName")


class RequestDispatcher:
    """Executes store operations against one account.

    Everything a request needs besides the operation itself (account, token,
    user agent, latency tracker) lives here, so the dispatcher can be built
    directly in tests without a full client.
    """

    def __init__(self, account: str, token_provider, *, user_agent: str = "adlstore",
                 client_id: int = 0, scheme: str = "https",
                 tracker: Optional[LatencyTracker] = None,
                 session: Optional[requests.Session] = None):
        self.account = account
        self.token_provider = token_provider
        self.user_agent = user_agent
        self.client_id = client_id
        self.scheme = scheme
        self.tracker = tracker if tracker is not None else default_tracker
        self.session = session if session is not None else requests.Session()

    def url_for(self, op: Operation, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        root = "/WebHdfsExt" if op.is_ext else "/webhdfs/v1"
        return f"{self.scheme}://{self.account}{root}{quote(path, safe='/')}"

    def execute(self, op: Operation, path: str, params: Optional[QueryParams] = None,
                body: Optional[bytes] = None, options: Optional[CallOptions] = None) -> CallResult:
        """Run `op` against `path`, retrying as the options' policy allows."""
        if not path or not path.strip():
            raise ArgumentError("path is required")
        if body is not None and not op.requires_body:
            raise ArgumentError(f"{op.name} does not take a request body")

        options = options if options is not None else CallOptions()
        policy = options.retry_policy if options.retry_policy is not None else NoRetryPolicy()
        base_id = options.request_id or str(uuid.uuid4())
        size = len(body) if body is not None else 0

        result = CallResult()
        retry_count = 0
        while True:
            attempt_id = f"{base_id}.{retry_count}"
            start = time.monotonic()
            result = self._single_call(op, path, params, body, options.timeout, attempt_id)
            result.last_call_latency = int((time.monotonic() - start) * 1000)
            result.num_retries = retry_count

            if is_successful(result, op):
                result.successful = True
                self.tracker.add_latency(attempt_id, retry_count, result.last_call_latency, op.name,
                                         size + result.response_content_length, self.client_id)
                log.info("HTTPRequest,Succeeded,%s,%d,%d,,%s,%d,%s", attempt_id, retry_count,
                         result.last_call_latency, op.name, result.response_content_length,
                         result.request_id)
                return result

            result.successful = False
            if result.error is not None:
                error_code = type(result.error).__name__
            else:
                error_code = f"HTTP{result.status_code}"
            self.tracker.add_error(attempt_id, retry_count, result.last_call_latency, error_code,
                                   op.name, size, self.client_id)
            log.info("HTTPRequest,Failed,%s,%d,%d,%s,%s,%d,%s,%s", attempt_id, retry_count,
                     result.last_call_latency, error_code, op.name, result.response_content_length,
                     result.request_id,
                     summarize(result.remote_exception_message or result.message or "", 200))

            if not policy.should_retry(retry_count, result.status_code, result.error):
                return result
            retry_count += 1

    def _single_call(self, op: Operation, path: str, params: Optional[QueryParams],
                     body: Optional[bytes], timeout: float, attempt_id: str) -> CallResult:
        result = CallResult()

        query = [("op", op.name), ("api-version", API_VERSION)]
        if params:
            query.extend(params)

        headers = {
            "Authorization": f"Bearer {self.token_provider.get_token()}",
            "User-Agent": self.user_agent,
            HEADER_CLIENT_REQUEST_ID: attempt_id,
        }
        latency_header = self.tracker.drain()
        if latency_header:
            headers[HEADER_CLIENT_LATENCY] = latency_header

        # The server wants a Content-Length even when there is nothing to send.
        data = body if body is not None else (None if op.method == "GET" else b"")

        try:
            response = self.session.request(op.method, self.url_for(op, path), params=query,
                                            data=data, headers=headers, timeout=timeout,
                                            stream=op.returns_body, allow_redirects=False)
        except requests.RequestException as e:
            result.error = e
            result.message = f"{op.name} request failed: {e}"
            return result

        result.status_code = response.status_code
        result.status_message = response.reason
        result.request_id = response.headers.get(HEADER_REQUEST_ID)
        result.response_content_length = int(response.headers.get("Content-Length") or 0)
        result.response_chunked = response.headers.get("Transfer-Encoding", "").lower() == "chunked"

        if response.status_code >= 400:
            try:
                if result.response_content_length > 0 or result.response_chunked:
                    _parse_error_body(response, result)
            except requests.RequestException as e:
                result.error = e
            finally:
                response.close()
            return result

        if op.returns_body and is_successful(result, op):
            result.body = response
        else:
            response.close()
        return result
