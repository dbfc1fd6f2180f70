def test_read_profile(client, test_record):
    test_record.city = "Lucknow"

    response = client.get("/api/v1/me/profile")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["display_name"] == "Asha Verma"
    assert data["city"] == "Lucknow"
    assert data["role"] == "student"


def test_update_profile_saves_contact_fields(client, fake_db, test_record):
    response = client.patch(
        "/api/v1/me/profile",
        json={"display_name": " Asha V ", "phone": "9876501234", "zip_code": "226010", "address": ""},
    )

    assert response.status_code == 200
    assert fake_db.committed is True
    assert test_record.display_name == "Asha V"
    assert test_record.phone == "9876501234"
    assert test_record.address is None
    assert response.json()["data"]["zip_code"] == "226010"


def test_update_profile_rejects_bad_phone(client, fake_db):
    response = client.patch("/api/v1/me/profile", json={"phone": "12345"})

    assert response.status_code == 422
    assert "Phone number must be 10 digits" in response.json()["message"]
    assert fake_db.committed is False


def test_profile_cannot_change_role_or_email(client, test_record):
    response = client.patch("/api/v1/me/profile", json={"role": "admin", "email": "x@example.com"})

    assert response.status_code == 422
    assert test_record.role == "student"
