#!/usr/bin/env python3
"""
Benchmark Script for Email Tracker API

Registers emails and links, then replays pixel and click traffic
"""

import sys
import time
import requests
import statistics

BASE_URL = "http://localhost:8000"
USER_EMAIL = "benchmark@example.com"


def register(base_url: str, count: int):
    """Register emails with one tracked link each"""
    pairs = []

    for i in range(count):
        response = requests.post(
            f"{base_url}/api/emails",
            json={"subject": f"Benchmark {i}", "recipient": f"r{i}@example.com", "userEmail": USER_EMAIL},
            timeout=10
        )
        response.raise_for_status()
        email_id = response.json()["emailId"]

        response = requests.post(
            f"{base_url}/api/links",
            json={"emailId": email_id, "originalUrl": f"https://example.com/{i}"},
            timeout=10
        )
        response.raise_for_status()
        pairs.append((email_id, response.json()["linkId"]))

    return pairs


def time_requests(label: str, urls: list, **kwargs):
    """Fire GETs sequentially and print latency figures"""
    timings = []
    errors = 0

    start_time = time.time()
    for url in urls:
        request_start = time.time()
        try:
            response = requests.get(url, timeout=10, **kwargs)
            if response.status_code not in (200, 302):
                errors += 1
        except requests.RequestException as e:
            print(f"Error requesting {url}: {e}")
            errors += 1
        timings.append((time.time() - request_start) * 1000)
    total_time = time.time() - start_time

    print(f"\n{'=' * 60}")
    print(f"{label}")
    print(f"{'=' * 60}")
    print(f"Requests:            {len(urls):,}")
    print(f"Errors:              {errors:,}")
    print(f"Requests/sec:        {len(urls) / total_time:,.0f}")
    print(f"Avg latency:         {statistics.mean(timings):.2f}ms")
    print(f"Median latency:      {statistics.median(timings):.2f}ms")
    print(f"Max latency:         {max(timings):.2f}ms")
    print(f"{'=' * 60}")


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else BASE_URL
    emails = 200
    hits_per_email = 5

    print("\n" + "=" * 60)
    print("EMAIL TRACKER API - BENCHMARK")
    print("=" * 60)
    print(f"Target: {base_url}")
    print("=" * 60)

    try:
        response = requests.get(f"{base_url}/health", timeout=5)
        if response.status_code != 200:
            print("Error: API is not healthy")
            sys.exit(1)
    except requests.RequestException as e:
        print(f"Error: Cannot connect to API: {e}")
        sys.exit(1)

    pairs = register(base_url, emails)

    pixel_urls = [f"{base_url}/t/{email_id}.png" for email_id, _ in pairs] * hits_per_email
    click_urls = [f"{base_url}/c/{link_id}" for _, link_id in pairs] * hits_per_email

    time_requests("OPENS (pixel)", pixel_urls)
    time_requests("CLICKS (redirect)", click_urls, allow_redirects=False)
    time_requests("STATS", [f"{base_url}/api/stats?userEmail={USER_EMAIL}"] * 20)

    print("\n" + "=" * 60)
    print("BENCHMARK COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    main()
