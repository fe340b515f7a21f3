"""
Tests for the chapter dashboard API.
"""

import json
from dataclasses import replace

import pytest

from chapter_dashboard.exceptions import PayloadTooLargeError

API = "/api/v1/chapters"


def create(client, headers, chapters):
    return client.post(API, json=chapters, headers=headers)


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Chapter Performance Dashboard API"
    assert data["endpoints"]["chapters"] == API


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Chapter Performance Dashboard API is running"
    assert body["timestamp"].endswith("Z")


def test_chapters_health_reports_dependencies(client, chapter_store, cache_store):
    cache_store.available = False
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["data"] == {"database": "connected", "cache": "disconnected"}

    chapter_store.available = False
    response = client.get(f"{API}/health")
    assert response.status_code == 503
    assert response.json()["status"] == "error"


def test_unknown_route(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json()["message"] == "Route /api/v1/nothing-here not found"


# Bulk create


def test_create_single_chapter(client, admin_headers, chapter_factory):
    """A valid chapter is saved and reported."""
    response = create(client, admin_headers, [chapter_factory()])

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["savedCount"] == 1
    assert body["data"]["failedCount"] == 0
    assert body["message"] == "1 chapters saved successfully"
    saved = body["data"]["savedChapters"][0]
    assert saved["subject"] == "Math"
    assert saved["class"] == "Class 10"
    assert "failedChapters" not in body["data"]


def test_create_duplicate_is_reported_as_failure(client, admin_headers, chapter_factory):
    """Repeating the same chapter violates the unique key."""
    create(client, admin_headers, [chapter_factory()])
    response = create(client, admin_headers, [chapter_factory()])

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["data"]["savedCount"] == 0
    assert body["data"]["failedCount"] == 1
    failure = body["data"]["failedChapters"][0]
    assert failure["index"] == 0
    assert failure["errors"][0]["field"] == "document"
    assert failure["errors"][0]["code"] == 11000


def test_create_partial_success(client, admin_headers, chapter_factory):
    response = create(
        client,
        admin_headers,
        [chapter_factory(), chapter_factory(chapter="Geometry", status="Unknown")],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["savedCount"] == 1
    assert body["data"]["failedCount"] == 1
    assert body["message"] == "1 chapters saved successfully, 1 chapters failed"
    failure = body["data"]["failedChapters"][0]
    assert failure["index"] == 1
    assert failure["chapter"]["chapter"] == "Geometry"
    assert [error["field"] for error in failure["errors"]] == ["status"]


def test_create_requires_array(client, admin_headers, chapter_factory):
    response = create(client, admin_headers, chapter_factory())
    assert response.status_code == 400
    assert response.json()["message"] == "Expected an array of chapters"


def test_create_empty_array(client, admin_headers):
    response = create(client, admin_headers, [])
    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["data"]["savedCount"] == 0


def test_create_invalid_json_body(client, admin_headers):
    response = client.post(
        API,
        content=b"[{not json",
        headers={**admin_headers, "content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid JSON payload"


def test_create_from_uploaded_file(client, admin_headers, chapter_factory):
    content = json.dumps([chapter_factory(), chapter_factory(chapter="Geometry")]).encode()
    response = client.post(
        API,
        files={"chapters": ("chapters.json", content, "application/json")},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["data"]["savedCount"] == 2


def test_upload_rejects_non_json_file(client, admin_headers):
    response = client.post(
        API,
        files={"chapters": ("chapters.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Only JSON files are allowed"


def test_upload_rejects_malformed_json(client, admin_headers):
    response = client.post(
        API,
        files={"chapters": ("chapters.json", b"[{", "application/json")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid JSON file format"


def test_upload_requires_chapters_field(client, admin_headers):
    response = client.post(
        API,
        files={"other": ("chapters.json", b"[]", "application/json")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["status"] == "error"


@pytest.fixture
def small_upload_client(client_factory, settings):
    return client_factory(replace(settings, max_upload_bytes=64))


def test_upload_over_size_limit(small_upload_client, admin_headers, chapter_factory):
    content = json.dumps([chapter_factory(), chapter_factory(chapter="Geometry")]).encode()
    assert len(content) > 64
    response = small_upload_client.post(
        API,
        files={"chapters": ("chapters.json", content, "application/json")},
        headers=admin_headers,
    )

    assert response.status_code == 413
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "File too large, maximum size is 64 bytes"


def test_json_body_over_size_limit(small_upload_client, admin_headers, chapter_factory):
    response = create(small_upload_client, admin_headers, [chapter_factory()])

    assert response.status_code == 413
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Request body too large, maximum size is 64 bytes"


def test_size_limit_message_units():
    assert PayloadTooLargeError.for_limit("File", 50 * 1024 * 1024).message == "File too large, maximum size is 50MB"
    assert PayloadTooLargeError.for_limit("File", 1000).message == "File too large, maximum size is 1000 bytes"


# Admin authentication


def test_create_without_credentials(client, chapter_factory):
    response = create(client, {}, [chapter_factory()])
    assert response.status_code == 401
    assert response.json()["message"].startswith("Admin authentication required")


def test_create_with_wrong_key(client, chapter_factory):
    response = create(client, {"x-admin-key": "wrong"}, [chapter_factory()])
    assert response.status_code == 403
    assert response.json()["message"] == "Invalid admin credentials"


def test_create_with_bearer_token(client, chapter_factory):
    response = create(client, {"Authorization": "Bearer test-admin-key"}, [chapter_factory()])
    assert response.status_code == 201


def test_mutations_require_admin(client):
    assert client.put(f"{API}/abc", json={}).status_code == 401
    assert client.patch(f"{API}/abc", json={}).status_code == 401
    assert client.delete(f"{API}/abc").status_code == 401


# Reads


def test_list_with_no_matches(client):
    response = client.get(API, params={"class": "Class 11", "page": 1, "limit": 5})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["chapters"] == []
    assert data["pagination"]["totalCount"] == 0
    assert data["pagination"]["hasNextPage"] is False
    assert data["filters"]["applied"]["className"] == "Class 11"


def test_list_filters_and_paginates(client, admin_headers, chapter_factory):
    create(
        client,
        admin_headers,
        [
            chapter_factory(chapter="Algebra"),
            chapter_factory(chapter="Geometry", isWeakChapter=True),
            chapter_factory(chapter="Optics", subject="Physics", **{"class": "Class 11"}),
        ],
    )

    response = client.get(API, params={"subject": "math", "limit": 1, "sortBy": "chapter", "sortOrder": "asc"})
    data = response.json()["data"]
    assert [chapter["chapter"] for chapter in data["chapters"]] == ["Algebra"]
    assert data["pagination"]["totalCount"] == 2
    assert data["pagination"]["totalPages"] == 2
    assert data["pagination"]["hasNextPage"] is True
    assert data["pagination"]["nextPage"] == 2
    assert data["filters"]["available"]["subjects"] == ["Math", "Physics"]
    assert data["sort"] == {"sortBy": "chapter", "sortOrder": "asc"}

    response = client.get(API, params={"weakChapters": "true"})
    chapters = response.json()["data"]["chapters"]
    assert [chapter["chapter"] for chapter in chapters] == ["Geometry"]


def test_list_rejects_bad_query(client):
    response = client.get(API, params={"limit": 500})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid query parameters"
    assert body["errors"][0]["field"] == "limit"


def test_get_chapter(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory(questionSolved=2)])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.get(f"{API}/{chapter_id}")
    assert response.status_code == 200
    chapter = response.json()["data"]["chapter"]
    assert chapter["id"] == chapter_id
    assert chapter["yearWiseQuestionCount"]["2024"] == 5
    assert chapter["yearWiseQuestionCount"]["2019"] == 0
    assert chapter["totalQuestions"] == 5
    assert chapter["completionPercentage"] == 40


def test_get_missing_chapter(client):
    response = client.get(f"{API}/000000000000000000000000")
    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "Chapter not found"


def test_statistics(client, admin_headers, chapter_factory):
    create(
        client,
        admin_headers,
        [
            chapter_factory(),
            chapter_factory(
                chapter="Optics",
                subject="Physics",
                yearWiseQuestionCount={"2023": 10, "2024": 10},
                questionSolved=5,
                status="In Progress",
                isWeakChapter=True,
            ),
        ],
    )

    response = client.get(f"{API}/stats")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["overview"] == {
        "totalChapters": 2,
        "totalQuestionsSolved": 5,
        "weakChapters": 1,
        "averageCompletionRate": 13,
    }
    assert data["distributions"]["status"] == {"Not Started": 1, "In Progress": 1}
    assert data["distributions"]["subject"] == {"Math": 1, "Physics": 1}


# Caching


def test_reads_are_cached_until_a_write(client, admin_headers, chapter_factory, cache_store):
    first = client.get(API, params={"page": 1, "limit": 5})
    assert "cached" not in first.json()

    # Same parameters in a different order share the cache entry
    second = client.get(API, params={"limit": 5, "page": 1})
    assert second.json()["cached"] is True
    assert second.json()["data"] == first.json()["data"]
    assert len(cache_store.keys("chapters:*")) == 1

    create(client, admin_headers, [chapter_factory()])
    assert cache_store.keys("chapters:*") == []

    third = client.get(API, params={"page": 1, "limit": 5})
    assert "cached" not in third.json()
    assert third.json()["data"]["pagination"]["totalCount"] == 1


def test_failed_write_keeps_cache(client, admin_headers, chapter_factory, cache_store):
    create(client, admin_headers, [chapter_factory()])
    client.get(f"{API}/stats")
    assert len(cache_store.keys("chapters:*")) == 1

    create(client, admin_headers, [chapter_factory()])
    assert len(cache_store.keys("chapters:*")) == 1


def test_not_found_is_not_cached(client, cache_store):
    client.get(f"{API}/000000000000000000000000")
    assert cache_store.keys("chapters:*") == []


def test_reads_work_without_cache(client, cache_store):
    cache_store.available = False
    response = client.get(API)
    assert response.status_code == 200
    assert "RateLimit-Limit" not in response.headers


# Single-record mutations


def test_replace_chapter(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory()])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.put(
        f"{API}/{chapter_id}",
        json=chapter_factory(questionSolved=5, status="Completed"),
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Chapter updated successfully"
    assert body["data"]["chapter"]["status"] == "Completed"
    assert body["data"]["chapter"]["completionPercentage"] == 100


def test_replace_requires_full_record(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory()])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.put(f"{API}/{chapter_id}", json={"subject": "Math"}, headers=admin_headers)
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"chapter", "class", "unit", "status"} <= fields


def test_patch_chapter(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory()])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.patch(
        f"{API}/{chapter_id}",
        json={"questionSolved": 3, "yearWiseQuestionCount": {"2023": 5}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    chapter = response.json()["data"]["chapter"]
    assert chapter["questionSolved"] == 3
    assert chapter["yearWiseQuestionCount"]["2023"] == 5
    assert chapter["yearWiseQuestionCount"]["2024"] == 5
    assert chapter["totalQuestions"] == 10


def test_patch_rejects_invalid_values(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory()])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.patch(f"{API}/{chapter_id}", json={"questionSolved": -1}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "questionSolved"


def test_patch_missing_chapter(client, admin_headers):
    response = client.patch(f"{API}/000000000000000000000000", json={"questionSolved": 1}, headers=admin_headers)
    assert response.status_code == 404


def test_patch_into_duplicate_conflicts(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory(), chapter_factory(chapter="Geometry")])
    chapter_id = created.json()["data"]["savedChapters"][1]["id"]

    response = client.patch(f"{API}/{chapter_id}", json={"chapter": "Algebra"}, headers=admin_headers)
    assert response.status_code == 409


def test_delete_chapter(client, admin_headers, chapter_factory):
    created = create(client, admin_headers, [chapter_factory()])
    chapter_id = created.json()["data"]["savedChapters"][0]["id"]

    response = client.delete(f"{API}/{chapter_id}", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Chapter deleted successfully"
    assert body["data"]["deletedChapter"]["id"] == chapter_id

    assert client.get(f"{API}/{chapter_id}").status_code == 404
    assert client.delete(f"{API}/{chapter_id}", headers=admin_headers).status_code == 404


def test_store_outage_is_503(client, chapter_store):
    chapter_store.available = False
    response = client.get(API)
    assert response.status_code == 503
    assert response.json()["message"] == "Database is unavailable"


# Rate limiting


def test_general_rate_limit(client):
    for _ in range(30):
        response = client.get(API)
        assert response.status_code == 200

    assert response.headers["RateLimit-Limit"] == "30"
    assert response.headers["RateLimit-Remaining"] == "0"

    response = client.get(API)
    assert response.status_code == 429
    body = response.json()
    assert body["status"] == "error"
    assert 1 <= body["retryAfter"] <= 60
    assert 1 <= int(response.headers["Retry-After"]) <= 60

    # Liveness stays reachable
    assert client.get("/health").status_code == 200


def test_admin_and_general_counters_are_separate(client, admin_headers, chapter_factory, cache_store):
    create(client, admin_headers, [chapter_factory()])
    client.get(API)
    client.get(API)

    assert cache_store.values["ratelimit:testclient"] == 3
    assert cache_store.values["ratelimit:admin_testclient"] == 1


def test_admin_rate_limit_applies_before_auth(strict_admin_client, chapter_factory):
    assert create(strict_admin_client, {}, [chapter_factory()]).status_code == 401
    assert create(strict_admin_client, {}, [chapter_factory()]).status_code == 401

    response = create(strict_admin_client, {}, [chapter_factory()])
    assert response.status_code == 429
    assert response.json()["message"] == "Too many admin requests from this IP, please try again after a minute."

    # General budget is untouched by the admin ceiling
    assert strict_admin_client.get(API).status_code == 200
