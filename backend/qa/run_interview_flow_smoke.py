import asyncio
import json
import os
import socket
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path

import httpx
import websockets

ROOT = Path(__file__).resolve().parents[1]
HOST = "127.0.0.1"
PORT = int(os.getenv("SMOKE_PORT", "9120"))
BASE_URL = f"http://{HOST}:{PORT}"
WS_URL = f"ws://{HOST}:{PORT}/ws/interview"
TOKEN = os.getenv("API_BEARER_TOKEN", "eyJhbGciOiJub25lIn0.eyJzdWIiOiJzbW9rZS11c2VyIn0.")
REPORT_DIR = ROOT / "qa" / "reports"
REPORT_PATH = REPORT_DIR / "interview_flow_smoke_report.json"


@dataclass
class StepResult:
    name: str
    ok: bool
    detail: str


def _wait_port(host: str, port: int, timeout_sec: float = 20.0) -> bool:
    end_at = time.time() + timeout_sec
    while time.time() < end_at:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(0.5)
            if sock.connect_ex((host, port)) == 0:
                return True
        time.sleep(0.2)
    return False


def _start_backend() -> subprocess.Popen:
    env = dict(os.environ)
    env["QA_MODE"] = "true"
    env["ENV"] = "development"
    env["ALLOW_UNVERIFIED_JWT_DEV"] = "true"
    # no credentials: every AI call takes the fallback path, so the flow is deterministic
    for name in ("AI_API_KEYS", "AI_API_KEY", "GEMINI_API_KEYS", "GEMINI_API_KEY", "OPENAI_API_KEY"):
        env[name] = ""

    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "interview_engine.main:app",
        "--host",
        HOST,
        "--port",
        str(PORT),
    ]
    return subprocess.Popen(
        cmd,
        cwd=str(ROOT),
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def _stop_process(proc: subprocess.Popen) -> None:
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=6)
    except subprocess.TimeoutExpired:
        proc.kill()


async def _recv_until(ws, wanted_types: set[str], timeout_sec: float = 12.0):
    loop = asyncio.get_running_loop()
    end_at = loop.time() + timeout_sec
    seen = []
    while loop.time() < end_at:
        remaining = max(0.1, end_at - loop.time())
        try:
            msg = await asyncio.wait_for(ws.recv(), timeout=remaining)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            break
        data = json.loads(msg)
        event_type = str(data.get("type") or "")
        seen.append(event_type)
        if event_type in wanted_types:
            return data, seen
    return None, seen


async def _run_smoke() -> list[StepResult]:
    results: list[StepResult] = []
    headers = {"Authorization": f"Bearer {TOKEN}"}

    async with httpx.AsyncClient(base_url=BASE_URL, headers=headers, timeout=30.0) as client:
        response = await client.post("/api/interviews/start", json={"interview_type": "technical", "total_questions": 2})
        started = response.json() if response.status_code == 201 else {}
        session_id = str(started.get("session_id") or "")
        question = (started.get("current_question") or {}).get("question")
        results.append(
            StepResult(
                name="start_interview",
                ok=bool(session_id and question),
                detail=f"status={response.status_code}, notice={started.get('provider_notice') is not None}",
            )
        )
        if not session_id:
            return results

        async with websockets.connect(f"{WS_URL}?token={TOKEN}") as ws:
            await ws.send(json.dumps({"type": "join-interview", "session_id": session_id}))
            joined, seen = await _recv_until(ws, {"interview-joined"})
            results.append(StepResult(name="join_interview", ok=joined is not None, detail=f"seen={seen}"))

            await ws.send(json.dumps({"type": "submit-answer", "answer": "A stack is LIFO and a queue is FIFO."}))
            next_question, seen = await _recv_until(ws, {"next-question", "interview-complete"})
            results.append(
                StepResult(
                    name="first_answer",
                    ok=bool(next_question and next_question.get("type") == "next-question"),
                    detail=f"seen={seen}",
                )
            )

            await ws.send(json.dumps({"type": "submit-answer", "answer": "SQL favours consistency, NoSQL favours scale."}))
            complete, seen = await _recv_until(ws, {"interview-complete"})
            overall = ((complete or {}).get("overall_scores") or {}).get("overall")
            results.append(
                StepResult(name="interview_complete", ok=overall == 65, detail=f"overall={overall}, seen={seen}")
            )

            await ws.send(json.dumps({"type": "join-interview", "session_id": session_id}))
            terminal, seen = await _recv_until(ws, {"interview-already-complete", "interview-joined"}, timeout_sec=5.0)
            results.append(
                StepResult(
                    name="rejoin_completed",
                    ok=bool(terminal and terminal.get("type") == "interview-already-complete"),
                    detail=f"seen={seen}",
                )
            )

        response = await client.get(f"/api/interviews/{session_id}/report")
        report = response.json() if response.status_code == 200 else {}
        results.append(
            StepResult(
                name="report",
                ok=(report.get("progress") or {}).get("questions_answered") == 2,
                detail=f"status={response.status_code}, level={report.get('performance_level')}",
            )
        )
    return results


def main() -> None:
    REPORT_DIR.mkdir(parents=True, exist_ok=True)
    started = time.time()
    proc = _start_backend()

    try:
        if not _wait_port(HOST, PORT, timeout_sec=25):
            report = {
                "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                "duration_sec": round(time.time() - started, 2),
                "all_pass": False,
                "error": "Backend did not become ready",
            }
            REPORT_PATH.write_text(json.dumps(report, indent=2), encoding="utf-8")
            print(json.dumps(report, indent=2))
            sys.exit(1)

        results = asyncio.run(_run_smoke())
    finally:
        _stop_process(proc)

    report = {
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "base_url": BASE_URL,
        "duration_sec": round(time.time() - started, 2),
        "all_pass": bool(results) and all(item.ok for item in results),
        "steps": [asdict(item) for item in results],
    }
    REPORT_PATH.write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(json.dumps(report, indent=2))

    if not report["all_pass"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
