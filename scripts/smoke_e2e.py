#!/usr/bin/env python3
"""
Smoke E2E test: one autopilot run end to end against a running backend.

Needs the backend configured with PERPLEXITY_API_KEY and LOVABLE_API_KEY
(FIRECRAWL_API_KEY optional) and a super_admin row in platform_user_roles.
Publishing is simulated, no social network account is touched.

Env vars:
  BASE_URL       (default http://localhost:8000)
  TENANT_ID      (default smoke)
  PLATFORM       (default linkedin)
"""
from __future__ import annotations

import json
import os
import sys
import time
from urllib.request import Request, urlopen
from urllib.error import HTTPError, URLError

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")
TENANT_ID = os.environ.get("TENANT_ID", "smoke")
PLATFORM = os.environ.get("PLATFORM", "linkedin")

# A run makes several LLM calls plus one image call per TikTok scene
RUN_TIMEOUT_SEC = 600

# ── Helpers ──────────────────────────────────────────────────

class SmokeError(Exception):
    pass


def _req(method: str, path: str, body: dict | None = None, expect: int = 200, timeout: int = 30) -> dict:
    url = f"{BASE_URL}{path}"
    data = json.dumps(body).encode() if body is not None else None
    req = Request(url, data=data, headers={"Content-Type": "application/json"}, method=method)
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode()
            return json.loads(raw) if raw else {}
    except HTTPError as e:
        raw = e.read().decode()[:500]
        if e.code == expect:
            return json.loads(raw) if raw else {}
        raise SmokeError(f"{method} {path} → {e.code}: {raw}")
    except URLError as e:
        raise SmokeError(f"{method} {path} → URLError: {e}")


def GET(path: str) -> dict:
    return _req("GET", path)


def autopilot(action: str, timeout: int = 30, **fields) -> dict:
    return _req("POST", "/functions/v1/content-autopilot", {"action": action, "tenant_id": TENANT_ID, **fields}, timeout=timeout)


def social(action: str, payload: dict, expect: int = 200) -> dict:
    return _req("POST", "/functions/v1/social-media", {"action": action, "tenant_id": TENANT_ID, "payload": payload}, expect=expect)


def step(name: str):
    print(f"\n{'='*60}")
    print(f"  STEP: {name}")
    print(f"{'='*60}")


def ok(msg: str):
    print(f"  ✅ {msg}")


def fail(msg: str):
    print(f"  ❌ {msg}")
    raise SmokeError(msg)


# ── Steps ────────────────────────────────────────────────────

def step1_health():
    step("1. Health check")
    if GET("/ping").get("status") != "ok":
        fail("Backend did not answer /ping")
    ok("Backend is up")


def step2_settings():
    step("2. Configure autopilot")
    autopilot("update-settings", topics=["EdTech", "Formation professionnelle"], tone="professionnel",
              require_approval=True, auto_publish_enabled=False)
    res = autopilot("toggle", enabled=False)
    if res.get("autopilot_enabled") is not False:
        fail(f"Toggle failed: {res}")
    blocked = autopilot("run")
    if blocked.get("error") != "Emergency stop is active":
        fail(f"Emergency stop did not block the run: {blocked}")
    ok("Emergency stop blocks runs")


def step3_run() -> dict:
    step("3. Forced run")
    started = time.time()
    res = autopilot("run", force=True, timeout=RUN_TIMEOUT_SEC)
    if not res.get("success"):
        fail(f"Run failed: {res.get('error')}")
    ok(f"Run #{res['runId']} in {time.time() - started:.0f}s: article #{res['articleId']}, "
       f"{res['socialPostsGenerated']} social posts, topic={res['topic']!r}")
    return res


def step4_review(article_id: int) -> int:
    step("4. Review generated posts")
    posts = autopilot("get-social-posts", article_id=article_id).get("posts", [])
    if not posts:
        fail("No social post attached to the article")
    for p in posts:
        ok(f"{p['platform']:<10} {p['content_type']:<13} approval={p['approval_status']} media={len(p.get('media_urls') or [])}")
    target = next((p for p in posts if p["platform"] == PLATFORM), posts[0])
    approved = autopilot("approve-post", post_id=target["id"], approved=True)
    if approved["post"]["approval_status"] != "approved":
        fail(f"Approval failed: {approved}")
    ok(f"Post #{target['id']} approved")
    return target["id"]


def step5_publish(post_id: int) -> str:
    step("5. Simulated publish")
    post_platform = None
    for p in GET(f"/api/social/posts?tenant_id={TENANT_ID}"):
        if p["id"] == post_id:
            post_platform = p["platform"]
    _req("PUT", f"/api/social/connections?tenant_id={TENANT_ID}", {"platform": post_platform, "account_name": "Smoke"})
    res = social("publish-post", {"post_id": post_id})
    if not res.get("success"):
        fail(f"Publish failed: {res}")
    ok(f"Published as {res['data']['external_post_id']} (simulated={res.get('simulated')})")
    _req("POST", f"/api/social/connections/{post_platform}/disconnect?tenant_id={TENANT_ID}")
    return res["data"]["external_post_id"]


def step6_report(run: dict, post_id: int, external_id: str):
    step("6. Final Report")
    stats = GET(f"/api/blog/stats?tenant_id={TENANT_ID}")
    print(f"""
  ┌─────────────────────────────────────────────┐
  │  SMOKE TEST REPORT                          │
  ├─────────────────────────────────────────────┤
  │  Run ID:         {run['runId']:<27}│
  │  Article ID:     {run['articleId']:<27}│
  │  Post ID:        {post_id:<27}│
  │  External ID:    {external_id[:27]:<27}│
  │  Articles:       {stats['total']:<27}│
  │                                             │
  │  RESULT:  ✅ PASS                           │
  └─────────────────────────────────────────────┘
""")


# ── Main ─────────────────────────────────────────────────────

def main():
    print(f"\n🔬 Autopilot smoke test: {BASE_URL} (tenant={TENANT_ID})\n")

    try:
        step1_health()
        step2_settings()
        run = step3_run()
        post_id = step4_review(run["articleId"])
        external_id = step5_publish(post_id)
        step6_report(run, post_id, external_id)

    except SmokeError as e:
        print(f"\n{'='*60}")
        print(f"  ❌ FAIL: {e}")
        print(f"{'='*60}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n  ⏹ Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
