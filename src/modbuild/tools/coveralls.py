from __future__ import annotations

import hashlib
import json
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import httpx
from pydantic import TypeAdapter
from pydantic.dataclasses import dataclass as pydantic_dataclass

from ..config import Settings
from ..errors import UploadError
from ..logging import get_logger

_BACKOFF_MS: Final[int] = 500


@dataclass(frozen=True)
class LcovRecord:
    source: str
    hits: dict[int, int]


@pydantic_dataclass(frozen=True)
class SourceFile:
    name: str
    source_digest: str
    coverage: list[int | None]


@pydantic_dataclass(frozen=True)
class CoverallsJob:
    service_name: str
    source_files: list[SourceFile]
    repo_token: str | None = None
    service_job_id: str | None = None


_JOB_ADAPTER: Final[TypeAdapter[CoverallsJob]] = TypeAdapter(CoverallsJob)


def parse_lcov(text: str) -> list[LcovRecord]:
    """Parse the ``SF``/``DA``/``end_of_record`` subset of an lcov trace file."""
    out: list[LcovRecord] = []
    source: str | None = None
    hits: dict[int, int] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("SF:"):
            source = line[3:]
            hits = {}
        elif line.startswith("DA:") and source is not None:
            parts = line[3:].split(",")
            if len(parts) < 2 or not parts[0].isdigit() or not parts[1].lstrip("-").isdigit():
                raise ValueError(f"malformed lcov line: {line}")
            hits[int(parts[0])] = max(0, int(parts[1]))
        elif line == "end_of_record" and source is not None:
            out.append(LcovRecord(source=source, hits=hits))
            source = None
            hits = {}
    return out


def _relative_name(source: str, root: Path) -> str:
    p = Path(source)
    if p.is_absolute():
        try:
            return p.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            return p.as_posix()
    return p.as_posix()


def build_source_file(record: LcovRecord, root: Path) -> SourceFile:
    name = _relative_name(record.source, root)
    path = Path(record.source) if Path(record.source).is_absolute() else root / record.source
    content = path.read_bytes()
    n_lines = len(content.decode("utf-8", errors="replace").splitlines())
    # Lines the tracer never saw are not relevant, not uncovered
    n_lines = max([n_lines, *record.hits.keys()])
    cov: list[int | None] = [record.hits.get(i) for i in range(1, n_lines + 1)]
    return SourceFile(
        name=name,
        source_digest=hashlib.md5(content).hexdigest(),
        coverage=cov,
    )


def build_job(records: list[LcovRecord], root: Path, env: Mapping[str, str]) -> CoverallsJob:
    token = env.get("COVERALLS_REPO_TOKEN") or None
    job_id = env.get("TRAVIS_JOB_ID") or None
    service = env.get("COVERALLS_SERVICE_NAME") or ("travis-ci" if job_id else "modbuild")
    if token is None and job_id is None:
        raise UploadError("COVERALLS_REPO_TOKEN is required outside of Travis CI")
    return CoverallsJob(
        service_name=service,
        source_files=[build_source_file(r, root) for r in records],
        repo_token=token,
        service_job_id=job_id,
    )


def encode_job(job: CoverallsJob) -> bytes:
    data = _JOB_ADAPTER.dump_python(job, mode="json")
    payload = {k: v for k, v in data.items() if v is not None}
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _decode_preview(b: bytes, limit: int = 256) -> str:
    s = b.decode("utf-8", errors="replace")
    return s[:limit]


def upload_lcov(
    settings: Settings,
    lcov_file: Path,
    *,
    env: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Send ``lcov_file`` to the Coveralls jobs API and return the HTTP status."""
    log = get_logger()
    if not lcov_file.is_file():
        raise UploadError(f"coverage report not found: {lcov_file.as_posix()}")
    try:
        records = parse_lcov(lcov_file.read_text(encoding="utf-8"))
        job = build_job(records, settings.paths.root, os.environ if env is None else env)
    except (OSError, ValueError) as exc:
        raise UploadError(f"cannot prepare coverage upload: {exc}") from exc
    body = encode_job(job)
    files = {"json_file": ("coveralls.json", body, "application/json")}
    url = settings.coveralls.endpoint
    retries = max(1, settings.coveralls.max_retries)
    timeout_s = float(settings.coveralls.timeout_seconds)
    log.info(
        "coveralls_upload_prepare files=%d bytes=%d service=%s",
        len(job.source_files),
        len(body),
        job.service_name,
    )

    attempt = 0
    while True:
        attempt += 1
        try:
            with httpx.Client(timeout=timeout_s, transport=transport) as client:
                r = client.post(url, files=files)
                status = int(r.status_code)
                resp = r.content
        except (httpx.TimeoutException, httpx.RequestError):
            log.info("coveralls_upload_http_error attempt=%d", attempt)
            status = 0
            resp = b""
        if 200 <= status < 300:
            log.info("coveralls_upload_success status=%d bytes=%d", status, len(resp))
            return status
        if attempt >= retries:
            log.error(
                "coveralls_upload_failed status=%d attempts=%d resp_preview=%s",
                status,
                attempt,
                _decode_preview(resp).replace(" ", "_"),
            )
            raise UploadError(f"coverage upload failed status={status}", status=status or None)
        sleep(float(_BACKOFF_MS) / 1000.0)
