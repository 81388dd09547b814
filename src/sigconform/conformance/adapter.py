"""Boundary between a SigningRequest and the signer under test.

Every adapter makes exactly one attempt per request: the signer's
accept/reject decision is itself under test, so nothing is retried.
A bounded timeout resolves a single call to ``Rejected(Timeout)`` without
touching sibling cases; cancellation of the surrounding task propagates and
tears the call down.

Request surface handed to the signer:
  private-key, headers (joined by the configured delimiter), algorithm,
  key-type, keyId, created / expires (omitted unless set)
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Sequence, runtime_checkable

import httpx

from ..config import HEADER_DELIMITER, SIGNER_TIMEOUT_SEC
from ..crypto.alg_registry import AlgorithmRegistry, default_registry
from ..crypto.sign import key_type_of, load_private_key, sign_message
from ..errors import SignerUnavailable, SigningRefused
from ..obs.prom import observe_signer_call
from ..utils.logging import get_logger
from .models import Rejected, SignatureOutcome, Signed, SignerError, SigningRequest, Timeout
from .vectors import build_signing_string, load_vector, parse_http_message

log = get_logger("adapter")


@runtime_checkable
class SignerAdapter(Protocol):
    async def generate(self, vector: str, request: SigningRequest) -> SignatureOutcome: ...


def signer_args(request: SigningRequest, delimiter: str = HEADER_DELIMITER) -> Dict[str, str]:
    args = {
        "private-key": request.private_key,
        "headers": delimiter.join(request.headers),
        "algorithm": request.algorithm,
        "key-type": request.key_type,
        "keyId": request.key_id,
    }
    if request.created is not None:
        args["created"] = str(request.created)
    if request.expires is not None:
        args["expires"] = str(request.expires)
    return args


def _record(adapter: str, start: float, outcome: SignatureOutcome) -> SignatureOutcome:
    if isinstance(outcome, Signed):
        label = "signed"
    elif outcome.timed_out:
        label = "timeout"
    else:
        label = "rejected"
    observe_signer_call(adapter=adapter, outcome=label, latency_ms=(time.monotonic() - start) * 1000.0)
    return outcome


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()


@dataclass
class SubprocessSignerAdapter:
    """Runs the signer CLI once per request, raw HTTP message on stdin.

    argv: <command...> sign --private-key P --headers H --algorithm A
          --key-type T --keyId K [--created N] [--expires N]
    """

    command: Sequence[str]
    timeout: float = SIGNER_TIMEOUT_SEC
    vectors_dir: Optional[str] = None
    header_delimiter: str = HEADER_DELIMITER

    def argv(self, request: SigningRequest) -> list[str]:
        argv = [*self.command, "sign"]
        for k, v in signer_args(request, self.header_delimiter).items():
            argv += [f"--{k}", v]
        return argv

    async def generate(self, vector: str, request: SigningRequest) -> SignatureOutcome:
        if not self.command:
            raise SignerUnavailable("no signer command configured")
        stdin = load_vector(vector, self.vectors_dir).encode()
        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.argv(request),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise SignerUnavailable(f"cannot start signer {self.command[0]!r}") from e
        try:
            out, err = await asyncio.wait_for(proc.communicate(stdin), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _terminate(proc)
            log.warning("signer timed out after %ss (%s)", self.timeout, request.algorithm)
            return _record("subprocess", start, Rejected(Timeout(self.timeout)))
        except asyncio.CancelledError:
            await _terminate(proc)
            raise
        if proc.returncode != 0:
            reason = err.decode(errors="replace").strip() or out.decode(errors="replace").strip() or "signer error"
            return _record("subprocess", start, Rejected(SignerError(reason, exit_code=proc.returncode)))
        return _record("subprocess", start, Signed(out.decode(errors="replace").strip()))


@dataclass
class HttpSignerAdapter:
    """POSTs the request surface as JSON to ``{base_url}/sign``.

    2xx -> Signed(response text); any other status -> Rejected.
    """

    base_url: str
    timeout: float = SIGNER_TIMEOUT_SEC
    vectors_dir: Optional[str] = None
    client: Optional[httpx.AsyncClient] = None
    header_delimiter: str = HEADER_DELIMITER

    def payload(self, vector: str, request: SigningRequest) -> Dict[str, object]:
        body: Dict[str, object] = {"vector": load_vector(vector, self.vectors_dir)}
        body.update(signer_args(request, self.header_delimiter))
        return body

    async def _post(self, client: httpx.AsyncClient, body: Dict[str, object]) -> httpx.Response:
        return await client.post(f"{self.base_url.rstrip('/')}/sign", json=body, timeout=self.timeout)

    async def _call(self, body: Dict[str, object]) -> httpx.Response:
        if self.client is not None:
            return await self._post(self.client, body)
        async with httpx.AsyncClient() as client:
            return await self._post(client, body)

    async def generate(self, vector: str, request: SigningRequest) -> SignatureOutcome:
        body = self.payload(vector, request)
        start = time.monotonic()
        try:
            # httpx timeouts are per phase; the call as a whole is bounded here
            resp = await asyncio.wait_for(self._call(body), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            log.warning("signer timed out after %ss (%s)", self.timeout, request.algorithm)
            return _record("http", start, Rejected(Timeout(self.timeout)))
        except httpx.ConnectError as e:
            raise SignerUnavailable(f"cannot reach signer at {self.base_url}") from e
        except httpx.TransportError as e:
            return _record("http", start, Rejected(SignerError(f"transport: {e}")))
        if resp.is_success:
            return _record("http", start, Signed(resp.text.strip()))
        return _record("http", start, Rejected(SignerError(resp.text.strip() or resp.reason_phrase, exit_code=resp.status_code)))


@dataclass
class ReferenceSignerAdapter:
    """In-process conforming signer (DEV-ONLY).

    Enforces the registry, deprecation, key metadata and temporal rules the
    way a compliant implementation must, then signs the draft-cavage signing
    string with pyca/cryptography. Useful as a known-good baseline.
    """

    registry: AlgorithmRegistry = field(default_factory=default_registry)
    clock: Callable[[], float] = time.time
    vectors_dir: Optional[str] = None
    timeout: float = SIGNER_TIMEOUT_SEC

    def sign(self, vector: str, request: SigningRequest) -> str:
        scheme = self.registry.get(request.algorithm)
        if scheme is None:
            raise SigningRefused(f"algorithm {request.algorithm!r} not in registry")
        if scheme.deprecated:
            raise SigningRefused(f"algorithm {scheme.name!r} is deprecated")
        try:
            sk = load_private_key(Path(request.private_key).read_bytes())
        except (OSError, ValueError, TypeError) as e:
            raise SigningRefused(f"cannot load private key: {e}") from e
        actual = key_type_of(sk)
        if request.key_type.lower() != actual:
            raise SigningRefused(f"key-type {request.key_type!r} differs from key metadata ({actual})")
        if not scheme.accepts_key_type(actual):
            raise SigningRefused(f"algorithm {scheme.name!r} cannot be used with a {actual} key")
        now = int(self.clock())
        if request.created is not None and request.created > now:
            raise SigningRefused("created timestamp is in the future")
        if request.expires is not None and request.expires < now:
            raise SigningRefused("expires timestamp is in the past")
        try:
            msg = parse_http_message(load_vector(vector, self.vectors_dir))
            signing_string = build_signing_string(msg, request.headers, request.created, request.expires)
            sig_b64 = sign_message(scheme.name, sk, signing_string)
        except ValueError as e:
            raise SigningRefused(str(e)) from e
        params = [f'keyId="{request.key_id}"', f'algorithm="{scheme.name}"']
        if request.created is not None:
            params.append(f"created={request.created}")
        if request.expires is not None:
            params.append(f"expires={request.expires}")
        params.append(f'headers="{" ".join(h.lower() for h in request.headers)}"')
        params.append(f'signature="{sig_b64}"')
        return ",".join(params)

    async def generate(self, vector: str, request: SigningRequest) -> SignatureOutcome:
        start = time.monotonic()
        try:
            artifact = await asyncio.wait_for(asyncio.to_thread(self.sign, vector, request), timeout=self.timeout)
        except asyncio.TimeoutError:
            return _record("reference", start, Rejected(Timeout(self.timeout)))
        except SigningRefused as e:
            log.debug("reference signer refused: %s", e)
            return _record("reference", start, Rejected(SignerError(str(e))))
        return _record("reference", start, Signed(artifact))


__all__ = [
    "SignerAdapter",
    "SubprocessSignerAdapter",
    "HttpSignerAdapter",
    "ReferenceSignerAdapter",
    "signer_args",
]
