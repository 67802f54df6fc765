"""Shared fixtures: an in-memory WebHDFS server behind pytest-httpserver."""

import json
import re
from collections import defaultdict
from typing import Dict, List, Optional

import pytest
import requests
from pytest_httpserver import HTTPServer
from werkzeug import Request, Response

from adlstore.core import retry
from adlstore.core.latency import LatencyTracker
from adlstore.protocol.dispatcher import RequestDispatcher

_URI = re.compile(r"^/(webhdfs/v1|WebHdfsExt)(/.*)?$")


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] or "/"


def _remote_error(status: int, exception: str, message: str = "") -> Response:
    body = {"RemoteException": {
        "exception": exception,
        "message": message or exception,
        "javaClassName": f"org.apache.hadoop.fs.{exception}",
    }}
    return Response(json.dumps(body), status=status, content_type="application/json")


def _json(obj) -> Response:
    return Response(json.dumps(obj), status=200, content_type="application/json")


class FakeStore:
    """Just enough of a WebHDFS account to exercise the client end to end."""

    def __init__(self):
        self.files: Dict[str, bytearray] = {}
        self.dirs = {"/"}
        self.meta: Dict[str, dict] = defaultdict(lambda: {
            "owner": "owner", "group": "group", "permission": "770",
            "accessTime": 1_600_000_000_000, "modificationTime": 1_600_000_000_000,
        })
        self.acls: Dict[str, List[str]] = defaultdict(list)
        self.denied = set()
        self.requests: List[dict] = []
        self._faults: Dict[str, List[Response]] = defaultdict(list)

    # --- test controls ---

    def fail_next(self, op: str, status: int, exception: str = "RuntimeException", count: int = 1):
        """Answer the next `count` calls of `op` with an error instead of running them."""
        for _ in range(count):
            self._faults[op].append(_remote_error(status, exception))

    def respond_next(self, op: str, status: int, payload):
        """Answer the next call of `op` with `payload` serialised as JSON."""
        self._faults[op].append(Response(json.dumps(payload), status=status, content_type="application/json"))

    def ops(self, name: Optional[str] = None) -> List[dict]:
        return [r for r in self.requests if name is None or r["op"] == name]

    def put_file(self, path: str, data: bytes):
        self._mkdirs(_parent(path))
        self.files[path] = bytearray(data)

    # --- helpers ---

    def _mkdirs(self, path: str):
        while path not in self.dirs:
            self.dirs.add(path)
            path = _parent(path)

    def _children(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        names = {p[len(prefix):].split("/", 1)[0] for p in list(self.files) + list(self.dirs)
                 if p.startswith(prefix) and p != prefix}
        return sorted(names)

    def _status(self, path: str, suffix: str = "") -> dict:
        is_file = path in self.files
        node = {
            "pathSuffix": suffix,
            "length": len(self.files[path]) if is_file else 0,
            "type": "FILE" if is_file else "DIRECTORY",
        }
        node.update(self.meta[path])
        return node

    def _exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    # --- request handling ---

    def handle(self, request: Request) -> Response:
        path = request.path.split("/", 3)[3] if request.path.startswith("/webhdfs/v1") \
            else request.path[len("/WebHdfsExt"):]
        path = "/" + path.strip("/")
        op = request.args.get("op", "")
        body = request.get_data()
        self.requests.append({
            "op": op, "path": path, "method": request.method, "args": dict(request.args),
            "body": body, "headers": {k.lower(): v for k, v in request.headers.items()},
        })
        if self._faults[op]:
            return self._faults[op].pop(0)

        handler = getattr(self, f"_op_{op.lower()}", None)
        if handler is None:
            return _remote_error(400, "IllegalArgumentException", f"unknown op {op}")
        return handler(path, request.args, body)

    def _op_open(self, path, args, body):
        if path not in self.files:
            return _remote_error(404, "FileNotFoundException", path)
        data = self.files[path]
        offset = int(args.get("offset", 0))
        length = int(args.get("length", len(data)))
        if offset >= len(data):
            return _remote_error(416, "BadOffsetException", "offset past end of file")
        return Response(bytes(data[offset:offset + length]), status=200,
                        content_type="application/octet-stream")

    def _op_msgetfilestatus(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        return _json({"FileStatus": self._status(path)})

    _op_getfilestatus = _op_msgetfilestatus

    def _op_msliststatus(self, path, args, body):
        if path not in self.dirs:
            return _remote_error(404, "FileNotFoundException", path)
        names = self._children(path)
        if args.get("listAfter"):
            names = [n for n in names if n > args["listAfter"]]
        if args.get("listBefore"):
            names = [n for n in names if n < args["listBefore"]]
        if args.get("listSize"):
            names = names[:int(args["listSize"])]
        base = path.rstrip("/")
        statuses = [self._status(f"{base}/{name}", name) for name in names]
        return _json({"FileStatuses": {"FileStatus": statuses}})

    _op_liststatus = _op_msliststatus

    def _op_getcontentsummary(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        prefix = path.rstrip("/") + "/"
        files = [p for p in self.files if p.startswith(prefix) or p == path]
        dirs = [d for d in self.dirs if d.startswith(prefix)]
        length = sum(len(self.files[p]) for p in files)
        return _json({"ContentSummary": {
            "length": length, "directoryCount": len(dirs), "fileCount": len(files), "spaceConsumed": length,
        }})

    def _op_getaclstatus(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        meta = self.meta[path]
        return _json({"AclStatus": {
            "entries": self.acls[path], "owner": meta["owner"], "group": meta["group"],
            "permission": meta["permission"],
        }})

    def _op_checkaccess(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        if path in self.denied:
            return _remote_error(403, "AccessControlException", f"{args.get('fsaction')} denied on {path}")
        return Response(status=200)

    def _op_create(self, path, args, body):
        if self._exists(path) and args.get("overwrite") != "true":
            return _remote_error(403, "FileAlreadyExistsException", f"{path} already exists")
        self.put_file(path, body)
        if args.get("permission"):
            self.meta[path]["permission"] = args["permission"]
        return Response(status=201)

    def _op_append(self, path, args, body):
        if path not in self.files:
            return _remote_error(404, "FileNotFoundException", path)
        self.files[path].extend(body)
        return Response(status=200)

    def _op_concurrentappend(self, path, args, body):
        if path not in self.files:
            if args.get("appendMode") != "autocreate":
                return _remote_error(404, "FileNotFoundException", path)
            self.put_file(path, b"")
        self.files[path].extend(body)
        return _json({})

    def _op_mkdirs(self, path, args, body):
        if path in self.files:
            return _json({"boolean": False})
        self._mkdirs(path)
        if args.get("permission"):
            self.meta[path]["permission"] = args["permission"]
        return _json({"boolean": True})

    def _op_rename(self, path, args, body):
        dest = "/" + args["destination"].strip("/")
        if not self._exists(path) or self._exists(dest):
            return _json({"boolean": False})
        prefix = path.rstrip("/") + "/"
        for p in [p for p in self.files if p == path or p.startswith(prefix)]:
            self.put_file(dest + p[len(path):], self.files.pop(p))
        for d in [d for d in self.dirs if d == path or d.startswith(prefix)]:
            self.dirs.discard(d)
            self._mkdirs(dest + d[len(path):])
        return _json({"boolean": True})

    def _op_delete(self, path, args, body):
        if not self._exists(path) or path == "/":
            return _json({"boolean": False})
        if path in self.dirs and self._children(path) and args.get("recursive") != "true":
            return _remote_error(403, "PathIsNotEmptyDirectoryException", f"{path} is non empty")
        prefix = path.rstrip("/") + "/"
        for p in [p for p in self.files if p == path or p.startswith(prefix)]:
            del self.files[p]
        for d in [d for d in self.dirs if d == path or d.startswith(prefix)]:
            self.dirs.discard(d)
        return _json({"boolean": True})

    def _op_msconcat(self, path, args, body):
        sources = body.decode("utf-8")[len("sources="):].split(",")
        missing = [s for s in sources if s not in self.files]
        if missing:
            return _remote_error(404, "FileNotFoundException", ",".join(missing))
        joined = bytearray()
        for s in sources:
            joined.extend(self.files.pop(s))
        self.put_file(path, joined)
        return Response(status=200)

    def _op_setowner(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        for key in ("owner", "group"):
            if key in args:
                self.meta[path][key] = args[key]
        return Response(status=200)

    def _op_setpermission(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        self.meta[path]["permission"] = args["permission"]
        return Response(status=200)

    def _op_settimes(self, path, args, body):
        if not self._exists(path):
            return _remote_error(404, "FileNotFoundException", path)
        if "accesstime" in args:
            self.meta[path]["accessTime"] = int(args["accesstime"])
        if "modificationtime" in args:
            self.meta[path]["modificationTime"] = int(args["modificationtime"])
        return Response(status=200)

    def _op_setacl(self, path, args, body):
        self.acls[path] = args["aclspec"].split(",")
        return Response(status=200)

    def _op_modifyaclentries(self, path, args, body):
        for entry in args["aclspec"].split(","):
            key = entry.rsplit(":", 1)[0]
            self.acls[path] = [e for e in self.acls[path] if e.rsplit(":", 1)[0] != key] + [entry]
        return Response(status=200)

    def _op_removeaclentries(self, path, args, body):
        keys = set(args["aclspec"].split(","))
        self.acls[path] = [e for e in self.acls[path] if e.rsplit(":", 1)[0] not in keys]
        return Response(status=200)

    def _op_removedefaultacl(self, path, args, body):
        self.acls[path] = [e for e in self.acls[path] if not e.startswith("default:")]
        return Response(status=200)

    def _op_removeacl(self, path, args, body):
        self.acls[path] = []
        return Response(status=200)


class FlakySession(requests.Session):
    """Session that loses the response of selected operations.

    With `after_send` the request reaches the server before the error is
    raised, as when a connection drops while the reply is in flight.
    """

    def __init__(self, ops, after_send: bool = True, count: int = 1):
        super().__init__()
        self.ops = set(ops)
        self.after_send = after_send
        self.remaining = count
        self.attempts: List[str] = []

    def request(self, method, url, params=None, **kwargs):
        op = dict(params or []).get("op")
        self.attempts.append(op)
        if op in self.ops and self.remaining > 0:
            self.remaining -= 1
            if self.after_send:
                super().request(method, url, params=params, **kwargs).close()
            raise requests.ConnectionError(f"connection dropped during {op}")
        return super().request(method, url, params=params, **kwargs)


@pytest.fixture
def store():
    fake = FakeStore()
    server = HTTPServer(host="127.0.0.1", port=0)
    server.expect_request(_URI).respond_with_handler(fake.handle)
    server.start()
    fake.account = f"127.0.0.1:{server.port}"
    yield fake
    server.clear()
    server.stop()


@pytest.fixture
def tracker():
    return LatencyTracker()


@pytest.fixture
def dispatcher(store, tracker):
    d = RequestDispatcher(store.account, _Token(), user_agent="adlstore-test", client_id=7,
                          scheme="http", tracker=tracker)
    yield d
    d.session.close()


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff waits instead of sleeping."""
    waits: List[float] = []
    monkeypatch.setattr(retry, "sleep", waits.append)
    return waits


class _Token:
    def get_token(self) -> str:
        return "secret-token"
