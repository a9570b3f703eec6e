
def test_add_registered_member(client, auth_headers, make_user, group_id):
    make_user("other@example.com", full_name="Other User")

    response = client.post(
        f"/groups/{group_id}/members",
        headers=auth_headers,
        json={"email": "other@example.com"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["full_name"] == "Other User"
    assert data["role"] == "member"

    # Verify member is in group
    details_resp = client.get(f"/groups/{group_id}", headers=auth_headers)
    members = details_resp.json()["members"]
    assert len(members) == 2
    assert any(m["email"] == "other@example.com" for m in members)

def test_member_without_name_shows_email(client, auth_headers, make_user, group_id):
    make_user("noname@example.com")
    response = client.post(f"/groups/{group_id}/members", headers=auth_headers, json={"email": "noname@example.com"})
    assert response.json()["full_name"] == "noname@example.com"

def test_add_unknown_user(client, auth_headers, group_id):
    response = client.post(f"/groups/{group_id}/members", headers=auth_headers, json={"email": "ghost@example.com"})
    assert response.status_code == 404

def test_add_existing_member(client, auth_headers, group_id):
    response = client.post(f"/groups/{group_id}/members", headers=auth_headers, json={"email": "test@example.com"})
    assert response.status_code == 400

def test_only_members_can_add(client, group_id, make_user, headers_for):
    outsider = make_user("outsider@example.com")
    make_user("friend@example.com")
    response = client.post(
        f"/groups/{group_id}/members",
        headers=headers_for(outsider),
        json={"email": "friend@example.com"}
    )
    assert response.status_code == 403
