from conftest import auth_header, get_task


def test_should_create_task_for_user(client, user_one):
    response = client.post(
        "/tasks",
        headers=auth_header(user_one["token"]),
        json={"description": "  From my test  "},
    )
    assert response.status_code == 201

    task = get_task(response.json()["id"])
    assert task.description == "From my test"
    assert task.completed is False
    assert task.owner_id == user_one["id"]


def test_create_task_requires_description(client, user_one):
    response = client.post("/tasks", headers=auth_header(user_one["token"]), json={"description": ""})
    assert response.status_code == 400


def test_task_routes_require_authentication(client, task_one):
    assert client.get("/tasks").status_code == 401
    assert client.post("/tasks", json={"description": "x"}).status_code == 401
    assert client.get(f"/tasks/{task_one['id']}").status_code == 401


def test_list_only_own_tasks(client, user_one, user_two, task_one):
    client.post("/tasks", headers=auth_header(user_two["token"]), json={"description": "Other task"})

    response = client.get("/tasks", headers=auth_header(user_one["token"]))
    assert response.status_code == 200
    assert [task["id"] for task in response.json()] == [task_one["id"]]


def test_list_filters_and_paginates(client, user_one):
    headers = auth_header(user_one["token"])
    for index in range(4):
        client.post("/tasks", headers=headers, json={"description": f"Task {index}", "completed": index % 2 == 1})

    done = client.get("/tasks", headers=headers, params={"completed": "true"}).json()
    assert [task["description"] for task in done] == ["Task 1", "Task 3"]

    page = client.get("/tasks", headers=headers, params={"limit": 2, "skip": 1}).json()
    assert [task["description"] for task in page] == ["Task 1", "Task 2"]

    newest_first = client.get("/tasks", headers=headers, params={"order": "desc"}).json()
    assert newest_first[0]["description"] == "Task 3"


def test_other_users_task_is_not_found(client, user_two, task_one):
    headers = auth_header(user_two["token"])
    assert client.get(f"/tasks/{task_one['id']}", headers=headers).status_code == 404
    assert client.patch(f"/tasks/{task_one['id']}", headers=headers, json={"completed": True}).status_code == 404
    assert client.delete(f"/tasks/{task_one['id']}", headers=headers).status_code == 404
    assert get_task(task_one["id"]).completed is False


def test_update_task(client, user_one, task_one):
    response = client.patch(
        f"/tasks/{task_one['id']}",
        headers=auth_header(user_one["token"]),
        json={"completed": True},
    )
    assert response.status_code == 200
    assert response.json()["completed"] is True


def test_update_task_with_invalid_field(client, user_one, task_one):
    response = client.patch(
        f"/tasks/{task_one['id']}",
        headers=auth_header(user_one["token"]),
        json={"completed": True, "owner_id": 42},
    )
    assert response.status_code == 400
    task = get_task(task_one["id"])
    assert task.completed is False
    assert task.owner_id == user_one["id"]


def test_delete_task(client, user_one, task_one):
    response = client.delete(f"/tasks/{task_one['id']}", headers=auth_header(user_one["token"]))
    assert response.status_code == 200
    assert response.json()["id"] == task_one["id"]
    assert get_task(task_one["id"]) is None


def test_deleting_user_deletes_their_tasks(client, user_one, user_two, task_one):
    other = client.post("/tasks", headers=auth_header(user_two["token"]), json={"description": "Keep me"})

    client.delete("/users/me", headers=auth_header(user_one["token"]))

    assert get_task(task_one["id"]) is None
    assert get_task(other.json()["id"]) is not None


def test_malformed_or_out_of_range_task_id_is_not_found(client, user_one, task_one):
    headers = auth_header(user_one["token"])
    for task_id in ("abc", "0", "-5", "99999999999999999999"):
        assert client.get(f"/tasks/{task_id}", headers=headers).status_code == 404, task_id
        assert client.patch(f"/tasks/{task_id}", headers=headers, json={"completed": True}).status_code == 404
        assert client.delete(f"/tasks/{task_id}", headers=headers).status_code == 404
    assert get_task(task_one["id"]).completed is False
