from skillforge.models.course import CourseLevel


def titles(response):
    return [course["title"] for course in response.json()["data"]]


# ==================== Catalog ====================


def test_pagination_over_published_courses(client, instructor, create_course):
    for i in range(1, 26):
        create_course(instructor, title=f"Course number {i:02d}")
    create_course(instructor, title="Unpublished draft", published=False)

    response = client.get(
        "/api/courses",
        params={"page": 2, "limit": 12, "sortBy": "createdAt", "sortOrder": "asc"},
    )

    assert response.status_code == 200
    body = response.json()
    assert titles(response) == [f"Course number {i:02d}" for i in range(13, 25)]
    assert body["pagination"] == {
        "page": 2,
        "limit": 12,
        "total": 25,
        "totalPages": 3,
        "hasNext": True,
        "hasPrev": True,
    }


def test_default_listing_is_newest_first(client, instructor, create_course):
    create_course(instructor, title="Older course")
    create_course(instructor, title="Newer course")

    response = client.get("/api/courses")

    assert titles(response) == ["Newer course", "Older course"]
    assert response.json()["pagination"]["limit"] == 12


def test_listing_visibility(client, instructor, admin, student, create_course):
    create_course(instructor, title="Published course")
    create_course(instructor, title="Draft course", published=False)

    assert titles(client.get("/api/courses")) == ["Published course"]
    assert titles(client.get("/api/courses", headers=student.headers)) == [
        "Published course"
    ]
    assert set(titles(client.get("/api/courses", headers=instructor.headers))) == {
        "Published course",
        "Draft course",
    }
    assert len(titles(client.get("/api/courses", headers=admin.headers))) == 2


def test_filters(client, instructor, create_course):
    create_course(instructor, title="Cheap beginner", price=10, level=CourseLevel.BEGINNER)
    create_course(
        instructor,
        title="Pricey advanced",
        price=200,
        level=CourseLevel.ADVANCED,
        category="Design",
        tags=["figma"],
        rating=4.7,
    )

    assert titles(client.get("/api/courses", params={"level": "advanced"})) == [
        "Pricey advanced"
    ]
    assert titles(client.get("/api/courses", params={"category": "Design"})) == [
        "Pricey advanced"
    ]
    assert titles(client.get("/api/courses", params={"priceMax": 50})) == ["Cheap beginner"]
    assert titles(client.get("/api/courses", params={"priceMin": 50})) == [
        "Pricey advanced"
    ]
    assert titles(client.get("/api/courses", params={"tags": "FIGMA"})) == [
        "Pricey advanced"
    ]
    assert titles(client.get("/api/courses", params={"rating": 4.5})) == [
        "Pricey advanced"
    ]
    assert titles(client.get("/api/courses", params={"instructorId": instructor.id})) == [
        "Pricey advanced",
        "Cheap beginner",
    ]


def test_inverted_price_range_is_rejected(client):
    response = client.get("/api/courses", params={"priceMin": 100, "priceMax": 10})

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_invalid_query_parameters(client):
    assert client.get("/api/courses", params={"sortBy": "author"}).status_code == 400
    assert client.get("/api/courses", params={"page": 0}).status_code == 400
    assert client.get("/api/courses", params={"limit": 101}).status_code == 400
    assert client.get("/api/courses", params={"level": "expert"}).status_code == 400


def test_sorting_by_price(client, instructor, create_course):
    for price in (30, 10, 20):
        create_course(instructor, title=f"Costs {price}", price=price)

    response = client.get("/api/courses", params={"sortBy": "price", "sortOrder": "asc"})

    assert titles(response) == ["Costs 10", "Costs 20", "Costs 30"]


def test_search(client, instructor, create_course):
    create_course(instructor, title="Machine Learning Basics", tags=["ml"])
    create_course(instructor, title="Watercolour Painting", tags=["art"])

    response = client.get("/api/courses/search", params={"q": "machine"})
    assert titles(response) == ["Machine Learning Basics"]

    by_tag = client.get("/api/courses/search", params={"q": "art"})
    assert titles(by_tag) == ["Watercolour Painting"]

    assert client.get("/api/courses/search").status_code == 400


def test_get_course_details(client, instructor, create_course):
    course = create_course(instructor)

    response = client.get(f"/api/courses/{course.id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == course.id
    assert data["instructorName"] == "Ada Lovelace"
    assert data["isEnrolled"] is False
    assert data["progress"] is None


def test_get_unknown_course(client):
    response = client.get("/api/courses/course_missing")

    assert response.status_code == 404
    assert response.json()["error"] == "Course not found"


def test_unknown_route(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Route not found"}


# ==================== Authoring ====================


def test_create_course_as_draft(client, instructor, course_payload):
    response = client.post("/api/courses", json=course_payload(), headers=instructor.headers)

    assert response.status_code == 200
    course = response.json()["data"]
    assert course["isPublished"] is False
    assert course["instructorName"] == "Ada Lovelace"
    assert course["currency"] == "USD"
    assert course["thumbnail"]
    assert course["enrollmentCount"] == 0
    assert course["rating"] == 0


def test_create_course_validation(client, instructor, course_payload):
    response = client.post(
        "/api/courses",
        json=course_payload(title="Py", price=-5),
        headers=instructor.headers,
    )

    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"title", "price"} <= fields


def test_update_course_is_partial(client, instructor, create_course):
    course = create_course(instructor)

    response = client.put(
        f"/api/courses/{course.id}",
        json={"price": 19.5, "tags": ["python"]},
        headers=instructor.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 19.5
    assert data["tags"] == ["python"]
    assert data["title"] == course.title
    assert data["description"] == course.description


def test_publish_is_idempotent(client, instructor, create_course):
    course = create_course(instructor, published=False)

    first = client.post(f"/api/courses/{course.id}/publish", headers=instructor.headers)
    second = client.post(f"/api/courses/{course.id}/publish", headers=instructor.headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["data"]["isPublished"] is True
    assert first.json()["data"]["updatedAt"] == second.json()["data"]["updatedAt"]


def test_delete_course(client, instructor, create_course):
    course = create_course(instructor)

    response = client.delete(f"/api/courses/{course.id}", headers=instructor.headers)

    assert response.status_code == 200
    assert client.get(f"/api/courses/{course.id}").status_code == 404
    assert client.delete(f"/api/courses/{course.id}", headers=instructor.headers).status_code == 404


def test_instructor_courses_include_drafts(client, instructor, admin, create_course):
    create_course(instructor, title="Mine published")
    create_course(instructor, title="Mine draft", published=False)
    create_course(admin, title="Someone else's")

    response = client.get("/api/courses/instructor/courses", headers=instructor.headers)

    assert response.status_code == 200
    assert set(titles(response)) == {"Mine published", "Mine draft"}


def test_upload_thumbnail(client, instructor, create_course, storage):
    course = create_course(instructor)

    response = client.post(
        f"/api/courses/{course.id}/thumbnail",
        files={"thumbnail": ("cover.png", b"\x89PNG fake image", "image/png")},
        headers=instructor.headers,
    )

    assert response.status_code == 200
    url = response.json()["data"]["thumbnail"]
    assert url == storage.uploaded[0].url
    assert response.json()["data"]["signedUrl"].startswith(f"{url}?expires=3600")
    assert storage.uploaded[0].key.startswith(f"thumbnails/{course.id}/")
    assert client.get(f"/api/courses/{course.id}").json()["data"]["thumbnail"] == url
    assert storage.loop_calls == []


def test_upload_thumbnail_rejects_non_images(client, instructor, create_course, storage):
    course = create_course(instructor)

    response = client.post(
        f"/api/courses/{course.id}/thumbnail",
        files={"thumbnail": ("notes.txt", b"plain text", "text/plain")},
        headers=instructor.headers,
    )

    assert response.status_code == 400
    assert storage.uploaded == []
