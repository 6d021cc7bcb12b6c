"""Bridge between Python and the Node.js bundler worker."""
from __future__ import annotations

import asyncio
import json
import pathlib
import subprocess
from typing import Any, Dict, List, Optional, Sequence

from ..errors import BundlepadError, EngineError
from ..loggingx import logger
from ..protocol import BuildRequest, FileResolver, OutputChunk, OutputOptions

DEFAULT_WORKER = pathlib.Path(__file__).resolve().parents[2] / "workers" / "rolldown" / "index.mjs"

# JSON-RPC error codes used when answering worker callbacks.
NOT_FOUND = -32004
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class RolldownWorker:
    """Wrapper around the Node.js worker that runs the bundler.

    The worker is started lazily and kept alive between builds. While a
    ``build`` call is pending the worker calls back into the host with
    ``resolveId`` and ``load`` requests, answered from the request's resolver.
    Callback ids carry the build's request id, so callbacks left over from an
    abandoned build are refused instead of being served another snapshot.
    """

    def __init__(self, command: Sequence[str] | None = None, cwd: pathlib.Path | None = None) -> None:
        self._command = list(command) if command else ["node", str(DEFAULT_WORKER)]
        self._cwd = cwd
        self._proc: subprocess.Popen[str] | None = None
        self._msg_id = 0

    async def build(self, request: BuildRequest) -> Any:
        result = await asyncio.to_thread(self._rpc, "build", request.to_params(), request.resolver)
        return result.get("handle")

    async def generate(self, handle: Any, options: OutputOptions) -> List[OutputChunk]:
        params = {"handle": handle, **options.to_params()}
        result = await asyncio.to_thread(self._rpc, "generate", params)
        return [OutputChunk.from_dict(item) for item in result.get("output", [])]

    def close(self) -> None:
        if self._proc and self._proc.poll() is None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                self._proc.kill()
        self._proc = None

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass

    # Internal helpers -------------------------------------------------

    def _rpc(self, method: str, params: Dict[str, object], resolver: Optional[FileResolver] = None) -> Dict[str, Any]:
        proc = self._ensure_proc()
        self._msg_id += 1
        msg_id = self._msg_id
        self._send({"jsonrpc": "2.0", "id": msg_id, "method": method, "params": params})
        assert proc.stdout
        while True:
            line = proc.stdout.readline()
            if not line:
                raise EngineError("Bundler worker exited unexpectedly")
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except ValueError:
                payload = None
            if not isinstance(payload, dict):
                logger.debug("Ignoring non-protocol worker output %r", line)
                continue
            if "method" in payload:
                self._answer(payload, resolver if _belongs_to(payload, msg_id) else None)
                continue
            if payload.get("id") != msg_id:
                logger.debug("Ignoring stray worker message %s", payload)
                continue
            if "error" in payload:
                raise EngineError(_error_message(payload["error"]))
            return payload.get("result") or {}

    def _answer(self, request: Dict[str, Any], resolver: Optional[FileResolver]) -> None:
        method = request.get("method")
        params = request.get("params") or {}
        reply: Dict[str, object] = {"jsonrpc": "2.0", "id": request.get("id")}
        try:
            if resolver is None:
                raise EngineError(f"Stale {method} callback {request.get('id')}: no such build in progress")
            if method == "resolveId":
                reply["result"] = {"id": resolver.resolve(str(params["id"]), params.get("importer"))}
            elif method == "load":
                reply["result"] = {"content": resolver.load(str(params["id"]))}
            else:
                reply["error"] = {"code": METHOD_NOT_FOUND, "message": f"Unknown callback {method}"}
        except BundlepadError as exc:
            reply["error"] = {"code": NOT_FOUND, "message": str(exc)}
        except (KeyError, TypeError) as exc:
            reply["error"] = {"code": INVALID_PARAMS, "message": f"Bad {method} params: {exc}"}
        self._send(reply)

    def _send(self, message: Dict[str, object]) -> None:
        assert self._proc and self._proc.stdin
        self._proc.stdin.write(json.dumps(message) + "\n")
        self._proc.stdin.flush()

    def _ensure_proc(self) -> subprocess.Popen[str]:
        if self._proc and self._proc.poll() is None:
            return self._proc
        logger.debug("Starting bundler worker: %s", " ".join(self._command))
        try:
            self._proc = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                cwd=self._cwd,
            )
        except FileNotFoundError as exc:
            raise EngineError(
                f"Cannot start bundler worker ({exc}). Install Node.js and run "
                "`npm --prefix workers/rolldown install` first."
            ) from exc
        self._msg_id = 0
        return self._proc


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _belongs_to(request: Dict[str, Any], msg_id: int) -> bool:
    # Callback ids are "<build request id>:<n>".
    return str(request.get("id", "")).startswith(f"{msg_id}:")
