#!/usr/bin/env python3
"""
Smoke script for a running RuleBot API: several users, each with a short
conversation kept in one session.
Run with: python smoke_chat_api.py [BASE_URL]
Default BASE_URL: http://localhost:8000
"""
import json
import sys
import urllib.error
import urllib.request

BASE_URL = "http://localhost:8000"
NUM_USERS = 3
MESSAGES_PER_USER = 3


def request(method: str, path: str, body: dict = None) -> tuple[int, object]:
    url = f"{BASE_URL.rstrip('/')}{path}"
    data = json.dumps(body).encode("utf-8") if body else None
    req = urllib.request.Request(url, data=data, method=method)
    req.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(req, timeout=60) as resp:
            return resp.status, json.loads(resp.read().decode())
    except urllib.error.HTTPError as e:
        body = e.read().decode()
        try:
            return e.code, json.loads(body)
        except json.JSONDecodeError:
            return e.code, {"detail": body}
    except urllib.error.URLError as e:
        print(f"Connection error: {e}")
        sys.exit(1)


def main():
    global BASE_URL
    if len(sys.argv) > 1:
        BASE_URL = sys.argv[1]
    print(f"Checking RuleBot API at {BASE_URL}")

    status, data = request("GET", "/api/diag/ping")
    if status != 200:
        print(f"   FAIL ping: {status} {data}")
        sys.exit(1)
    print(f"   ping OK: {data}\n")

    messages = [
        "Hello! What can you help me with?",
        "Can you summarize that in one sentence?",
        "Thanks, what did I ask first?",
    ]

    sessions = []
    for user_idx in range(NUM_USERS):
        user_name = f"user_{user_idx + 1}"
        session_id = None
        print(f"--- {user_name} ---")

        for idx, text in enumerate(messages[:MESSAGES_PER_USER]):
            payload = {"userMessage": text}
            if session_id is not None:
                payload["sessionId"] = session_id

            status, data = request("POST", "/api/chat", payload)
            if status != 200:
                detail = data.get("detail", data) if isinstance(data, dict) else data
                print(f"   FAIL M{idx + 1}: status {status} -> {str(detail)[:300]}")
                sys.exit(1)

            if session_id is not None and data["sessionId"] != session_id:
                print(f"   FAIL M{idx + 1}: sessionId changed ({session_id} -> {data['sessionId']})")
                sys.exit(1)

            session_id = data["sessionId"]
            preview = (data["botMessage"] or "")[:80].replace("\n", " ")
            print(f"   M{idx + 1} OK | sessionId: {session_id[:8]}... | reply: {preview}")

        status, rows = request("GET", f"/api/history/{session_id}")
        expected = 2 * MESSAGES_PER_USER
        if status != 200 or len(rows) != expected:
            print(f"   FAIL history: status {status}, {len(rows)} rows (expected {expected})")
            sys.exit(1)
        sessions.append((user_name, session_id))
        print(f"   history OK: {len(rows)} rows\n")

    assert len({sid for _, sid in sessions}) == NUM_USERS, "Session IDs must be unique per user"
    print("All checks passed.")
    for name, sid in sessions:
        print(f"    {name}: {sid}")


if __name__ == "__main__":
    main()
