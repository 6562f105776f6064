"""
사용자 API + 캐시 일관성 테스트
"""
import asyncio

from conftest import register_and_login, test_session_factory
from repository import user_repo


def test_ID로_조회(client, auth_user):
    user_id = auth_user["user"]["id"]
    response = client.get(f"/users/{user_id}", headers=auth_user["headers"])
    assert response.status_code == 200

    body = response.json()
    assert body["success"] is True
    assert body["message"] == "User retrieved successfully"
    assert body["data"]["id"] == user_id
    assert "timestamp" in body


def test_없는_사용자_조회시_404(client, auth_headers):
    response = client.get("/users/9999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


def test_username으로_조회(client, auth_user):
    username = auth_user["user"]["username"]
    response = client.get(f"/users/username/{username}", headers=auth_user["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["username"] == username


def test_수정_후_조회하면_최신값(client, auth_user):
    """조회로 캐시를 채운 뒤 수정 → 다시 조회하면 수정된 값"""
    user_id = auth_user["user"]["id"]
    username = auth_user["user"]["username"]
    headers = auth_user["headers"]

    client.get(f"/users/{user_id}", headers=headers)
    client.get(f"/users/username/{username}", headers=headers)

    response = client.put(f"/users/{user_id}", headers=headers, json={
        "firstName": "Alice",
        "lastName": "Kim",
        "phoneNumber": "+82 10-1234-5678",
    })
    assert response.status_code == 200
    assert response.json()["data"]["firstName"] == "Alice"

    assert client.get(f"/users/{user_id}", headers=headers).json()["data"]["lastName"] == "Kim"
    assert client.get(f"/users/username/{username}", headers=headers).json()["data"]["firstName"] == "Alice"


def test_빈_값은_수정하지_않음(client, auth_user):
    user_id = auth_user["user"]["id"]
    headers = auth_user["headers"]
    client.put(f"/users/{user_id}", headers=headers, json={"firstName": "Alice"})

    response = client.put(f"/users/{user_id}", headers=headers, json={"firstName": "  ", "lastName": "Lee"})
    data = response.json()["data"]
    assert data["firstName"] == "Alice"
    assert data["lastName"] == "Lee"


def test_비활성화_후_조회하면_반영(client, auth_user):
    user_id = auth_user["user"]["id"]
    headers = auth_user["headers"]
    assert client.get(f"/users/{user_id}", headers=headers).json()["data"]["isActive"] is True

    response = client.delete(f"/users/{user_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] is None

    # 소프트 삭제: 레코드는 남아 있음
    response = client.get(f"/users/{user_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False


def test_존재_여부_확인은_인증_불필요(client):
    assert client.get("/users/exists/username/nobody").json()["data"] is False
    assert client.get("/users/exists/email/nobody@example.com").json()["data"] is False


def test_가입하면_존재_여부_캐시도_갱신(client):
    # 가입 전 조회로 "없음"이 캐시됨
    assert client.get("/users/exists/username/erin").json()["data"] is False

    register_and_login(client, "erin")

    assert client.get("/users/exists/username/erin").json()["data"] is True
    assert client.get("/users/exists/email/erin@example.com").json()["data"] is True


def test_캐시를_꺼도_결과는_동일(client, auth_user):
    client.app.state.cache.enabled = False
    user_id = auth_user["user"]["id"]
    headers = auth_user["headers"]

    client.put(f"/users/{user_id}", headers=headers, json={"firstName": "NoCache"})
    response = client.get(f"/users/{user_id}", headers=headers)
    assert response.json()["data"]["firstName"] == "NoCache"
    assert client.get("/cache/stats/user-by-id").json()["data"]["size"] == 0


def test_이메일로_사용자_조회(client):
    register_and_login(client, "grace")

    async def lookup(email):
        async with test_session_factory() as db:
            return await user_repo.find_by_email(db, email)

    assert asyncio.run(lookup("grace@example.com")).username == "grace"
    assert asyncio.run(lookup("nobody@example.com")) is None
