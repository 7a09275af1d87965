from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path

import httpx
import pytest

from modbuild.config import CoverallsConfig, PathsConfig, Settings
from modbuild.errors import UploadError
from modbuild.tools.coveralls import (
    LcovRecord,
    build_job,
    build_source_file,
    encode_job,
    parse_lcov,
    upload_lcov,
)

_SOURCE = "import os\n\n\ndef f():\n    return os.sep\n"
_LCOV = """TN:
SF:packages/core/lib/a.py
DA:1,1
DA:4,1
DA:5,0
LF:3
LH:2
end_of_record
"""


def _project(root: Path) -> Settings:
    src = root / "packages/core/lib/a.py"
    src.parent.mkdir(parents=True)
    src.write_text(_SOURCE, encoding="utf-8")
    lcov = root / "target/lcov.info"
    lcov.parent.mkdir(parents=True)
    lcov.write_text(_LCOV, encoding="utf-8")
    return replace(
        Settings.defaults(),
        paths=PathsConfig(root=root),
        coveralls=CoverallsConfig(endpoint="https://coveralls.test/api/v1/jobs", max_retries=2),
    )


def test_parse_lcov_records() -> None:
    recs = parse_lcov(_LCOV + "SF:other.py\nDA:2,-1\nend_of_record\n")
    assert recs == [
        LcovRecord(source="packages/core/lib/a.py", hits={1: 1, 4: 1, 5: 0}),
        LcovRecord(source="other.py", hits={2: 0}),
    ]


def test_parse_lcov_malformed() -> None:
    with pytest.raises(ValueError):
        parse_lcov("SF:a.py\nDA:x,1\nend_of_record\n")


def test_build_source_file_marks_irrelevant_lines(tmp_path: Path) -> None:
    _project(tmp_path)
    sf = build_source_file(parse_lcov(_LCOV)[0], tmp_path)
    assert sf.name == "packages/core/lib/a.py"
    assert sf.coverage == [1, None, None, 1, 0]
    assert sf.source_digest == hashlib.md5(_SOURCE.encode("utf-8")).hexdigest()


def test_build_job_requires_token_outside_ci(tmp_path: Path) -> None:
    _project(tmp_path)
    recs = parse_lcov(_LCOV)
    with pytest.raises(UploadError):
        build_job(recs, tmp_path, {})
    travis = build_job(recs, tmp_path, {"TRAVIS_JOB_ID": "42"})
    assert travis.service_name == "travis-ci" and travis.service_job_id == "42"
    assert travis.repo_token is None


def test_encode_job_drops_missing_fields_keeps_nulls(tmp_path: Path) -> None:
    _project(tmp_path)
    job = build_job(parse_lcov(_LCOV), tmp_path, {"COVERALLS_REPO_TOKEN": "tok"})
    obj = json.loads(encode_job(job))
    assert obj["repo_token"] == "tok"
    assert obj["service_name"] == "modbuild"
    assert "service_job_id" not in obj
    assert obj["source_files"][0]["coverage"] == [1, None, None, 1, 0]


def test_upload_success(tmp_path: Path) -> None:
    s = _project(tmp_path)
    seen: list[bytes] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert str(request.url) == "https://coveralls.test/api/v1/jobs"
        seen.append(request.read())
        return httpx.Response(200, json={"message": "Job #1.1", "url": "https://x"})

    status = upload_lcov(
        s,
        tmp_path / "target/lcov.info",
        env={"COVERALLS_REPO_TOKEN": "tok"},
        transport=httpx.MockTransport(_handler),
    )
    assert status == 200
    assert len(seen) == 1
    assert b'name="json_file"' in seen[0] and b'"repo_token": "tok"' in seen[0]


def test_upload_retries_then_fails(tmp_path: Path) -> None:
    s = _project(tmp_path)
    attempts: list[int] = []
    sleeps: list[float] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(422, text="bad token")

    with pytest.raises(UploadError) as ei:
        upload_lcov(
            s,
            tmp_path / "target/lcov.info",
            env={"COVERALLS_REPO_TOKEN": "tok"},
            transport=httpx.MockTransport(_handler),
            sleep=sleeps.append,
        )
    assert len(attempts) == 2
    assert sleeps == [0.5]
    assert ei.value.status == 422


def test_upload_missing_report(tmp_path: Path) -> None:
    s = replace(Settings.defaults(), paths=PathsConfig(root=tmp_path))
    with pytest.raises(UploadError):
        upload_lcov(s, tmp_path / "target/lcov.info", env={"COVERALLS_REPO_TOKEN": "t"})
