from skillforge.models.user import UserRole


def enroll(client, account, course_id):
    response = client.post(f"/api/courses/{course_id}/enroll", headers=account.headers)
    assert response.status_code == 200, response.json()


# ==================== Profile ====================


def test_get_profile(client, student):
    response = client.get("/api/users/profile", headers=student.headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == student.id
    assert data["preferences"]["notifications"]["email"] is True
    assert "password" not in data


def test_update_profile_merges_preferences(client, student):
    response = client.put(
        "/api/users/profile",
        json={
            "bio": "Learning every day",
            "skills": ["python"],
            "preferences": {"notifications": {"marketing": True}},
        },
        headers=student.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["bio"] == "Learning every day"
    assert data["skills"] == ["python"]
    assert data["firstName"] == student.user.first_name
    notifications = data["preferences"]["notifications"]
    assert notifications["marketing"] is True
    assert notifications["email"] is True
    assert data["preferences"]["privacy"]["profileVisibility"] == "public"


def test_update_profile_validation(client, student):
    response = client.put(
        "/api/users/profile", json={"bio": "x" * 501}, headers=student.headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "bio"


def test_upload_avatar_replaces_previous(client, student, storage):
    first = client.post(
        "/api/users/avatar",
        files={"avatar": ("me.jpg", b"jpeg bytes", "image/jpeg")},
        headers=student.headers,
    )
    second = client.post(
        "/api/users/avatar",
        files={"avatar": ("me2.webp", b"webp bytes", "image/webp")},
        headers=student.headers,
    )

    assert first.status_code == 200
    assert second.status_code == 200
    assert storage.deleted == [first.json()["data"]["avatar"]]
    profile = client.get("/api/users/profile", headers=student.headers).json()["data"]
    assert profile["avatar"] == second.json()["data"]["avatar"]
    assert storage.loop_calls == []


# ==================== Progress ====================


def test_progress_tracking(client, student, instructor, create_course):
    course = create_course(instructor, price=0, duration=120)
    enroll(client, student, course.id)

    response = client.put(
        f"/api/users/progress/{course.id}",
        json={"completedModules": ["m1"], "currentModule": "m2", "progressPercentage": 50},
        headers=student.headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["completedModules"] == ["m1"]

    response = client.put(
        f"/api/users/progress/{course.id}",
        json={"completedModules": ["m1", "m2"], "progressPercentage": 100},
        headers=student.headers,
    )
    data = response.json()["data"]
    assert data["completedModules"] == ["m1", "m2"]
    assert data["currentModule"] == "m2"
    assert data["certificateEarned"] is True

    progress = client.get("/api/users/progress", headers=student.headers).json()["data"]
    assert progress[0]["courseTitle"] == course.title
    assert progress[0]["progressPercentage"] == 100


def test_progress_for_unenrolled_course(client, student, instructor, create_course):
    course = create_course(instructor, price=0)

    response = client.put(
        f"/api/users/progress/{course.id}",
        json={"progressPercentage": 10},
        headers=student.headers,
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Not enrolled in this course"


def test_progress_percentage_bounds(client, student, instructor, create_course):
    course = create_course(instructor, price=0)
    enroll(client, student, course.id)

    response = client.put(
        f"/api/users/progress/{course.id}",
        json={"progressPercentage": 120},
        headers=student.headers,
    )

    assert response.status_code == 400


def test_learning_stats(client, student, instructor, create_course):
    finished = create_course(instructor, title="Finished", price=0, duration=120)
    started = create_course(instructor, title="Started", price=0, duration=240)
    create_course(instructor, title="Untouched", price=0)
    for course in (finished, started):
        enroll(client, student, course.id)

    client.put(
        f"/api/users/progress/{finished.id}",
        json={"progressPercentage": 100},
        headers=student.headers,
    )
    client.put(
        f"/api/users/progress/{started.id}",
        json={"progressPercentage": 50},
        headers=student.headers,
    )

    stats = client.get("/api/users/stats", headers=student.headers).json()["data"]

    assert stats == {
        "totalCourses": 2,
        "completedCourses": 1,
        "inProgressCourses": 1,
        "totalHoursLearned": 4,
        "certificatesEarned": 1,
    }


def test_enrolled_courses(client, student, instructor, create_course, db):
    kept = create_course(instructor, title="Kept course", price=0)
    removed = create_course(instructor, title="Removed course", price=0)
    enroll(client, student, kept.id)
    enroll(client, student, removed.id)
    db.courses.delete(removed.id)

    response = client.get("/api/users/courses", headers=student.headers)

    assert response.status_code == 200
    courses = response.json()["data"]
    assert [c["title"] for c in courses] == ["Kept course"]
    assert courses[0]["instructorName"] == "Ada Lovelace"
    assert response.json()["pagination"]["total"] == 1


def test_user_payment_history(client, student, instructor, create_course, purchase):
    course = create_course(instructor, title="Paid course", price=25)
    purchase(student, course.id)

    response = client.get("/api/users/payments", headers=student.headers)

    assert response.status_code == 200
    assert [p["courseTitle"] for p in response.json()["data"]] == ["Paid course"]


# ==================== Admin & account ====================


def test_admin_lists_users_with_filters(client, create_account, admin):
    create_account(UserRole.STUDENT, first_name="Grace", last_name="Hopper")
    create_account(UserRole.INSTRUCTOR, first_name="Alan", last_name="Turing")

    instructors = client.get(
        "/api/users", params={"role": "instructor"}, headers=admin.headers
    ).json()["data"]
    assert [u["firstName"] for u in instructors] == ["Alan"]

    found = client.get("/api/users", params={"search": "hopp"}, headers=admin.headers)
    assert [u["lastName"] for u in found.json()["data"]] == ["Hopper"]
    assert found.json()["pagination"]["total"] == 1


def test_delete_account(client, student, db):
    response = client.delete("/api/users/account", headers=student.headers)

    assert response.status_code == 200
    assert db.users.find_by_id(student.id) is None
    assert client.get("/api/users/profile", headers=student.headers).status_code == 404
