"""Walk the guardian and mentor flows against a running server.

Needs an admin created with scripts/create_admin.py:
    python scripts/create_admin.py admin@example.com admin 'Admin123!'
"""
import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"
ADMIN = {"email": "admin@example.com", "password": "Admin123!"}
client = httpx.Client(timeout=15)
run = uuid.uuid4().hex[:6]


def register(name: str, role: str) -> tuple[str, dict]:
    r = client.post(f"{BASE}/auth/register", json={
        "email": f"{name}-{run}@example.com",
        "username": f"{name}_{run}",
        "password": "Secret123!",
        "role": role,
    })
    if r.status_code != 201:
        print(f"Register {name}: {r.status_code} {r.text}")
        sys.exit(1)
    data = r.json()
    return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}


def check(label: str, r: httpx.Response, expected: int) -> None:
    mark = "ok" if r.status_code == expected else "FAIL"
    print(f"[{mark}] {label}: {r.status_code}")
    if r.status_code != expected:
        print(f"  Body: {r.text}")


r = client.post(f"{BASE}/auth/login", json=ADMIN)
if r.status_code != 200:
    print(f"Admin login: {r.status_code} {r.text}")
    sys.exit(1)
admin = {"Authorization": f"Bearer {r.json()['access_token']}"}

alice, alice_h = register("alice", "parent")
bob, bob_h = register("bob", "student")
carol, carol_h = register("carol", "mentor")
dave, _ = register("dave", "student")

# Guardian flow
check("alice reads bob before link", client.get(f"{BASE}/parents/{alice}/children/{bob}/progress", headers=alice_h), 403)
check("alice links bob (no view)", client.post(f"{BASE}/parents/{alice}/children", json={"child_id": bob, "can_view_progress": False}, headers=alice_h), 200)
check("alice reads bob without capability", client.get(f"{BASE}/parents/{alice}/children/{bob}/progress", headers=alice_h), 403)
check("alice re-links bob (view)", client.post(f"{BASE}/parents/{alice}/children", json={"child_id": bob}, headers=alice_h), 200)
check("alice reads bob", client.get(f"{BASE}/parents/{alice}/children/{bob}/progress", headers=alice_h), 200)
check("bob lists alice's children", client.get(f"{BASE}/parents/{alice}/children", headers=bob_h), 403)

# Mentor flow
check("carol links dave", client.post(f"{BASE}/mentors/{carol}/students", json={"student_id": dave}, headers=carol_h), 200)
check("carol reads dave", client.get(f"{BASE}/mentors/{carol}/students/{dave}/progress", headers=carol_h), 200)
check("admin ends mentorship", client.put(f"{BASE}/mentors/{carol}/students/{dave}", json={"status": "ended"}, headers=admin), 200)
check("carol reads dave after end", client.get(f"{BASE}/mentors/{carol}/students/{dave}/progress", headers=carol_h), 403)

# Audit trail
r = client.get(f"{BASE}/admin/activity-logs", params={"action": "unauthorized_access_attempt", "limit": 10}, headers=admin)
check("denials recorded", r, 200)
if r.status_code == 200:
    print(f"  Denials on record: {r.json()['total']}")
