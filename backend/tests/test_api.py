"""Integration tests for the HTTP API."""
import pytest


class TestRootEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["games"] == 0

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestAuth:

    def test_signup_sets_cookie_and_returns_token(self, client):
        response = client.post("/api/auth/signup", json={"username": "alice", "password": "secret-password"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["account"]["username"] == "alice"
        assert "access_token" in response.cookies

    @pytest.mark.parametrize("password", ["x" * 80, "é" * 40])
    def test_signup_rejects_password_over_bcrypt_limit(self, client, password):
        response = client.post("/api/auth/signup", json={"username": "alice", "password": password})

        assert response.status_code == 422
        me = client.get("/api/auth/me")
        assert me.status_code == 401

    def test_duplicate_signup_conflicts(self, client, signup):
        signup("alice")
        response = client.post("/api/auth/signup", json={"username": "ALICE", "password": "secret-password"})

        assert response.status_code == 409
        assert response.json()["error"] == "ACCOUNT_EXISTS"

    def test_login_with_wrong_password(self, client, signup):
        signup("alice")
        response = client.post("/api/auth/login", json={"username": "alice", "password": "wrong-password"})

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_CREDENTIALS"

    def test_login_and_me_with_bearer_token(self, client, signup):
        signup("alice")
        client.cookies.clear()
        token = client.post(
            "/api/auth/login", json={"username": "Alice", "password": "secret-password"}
        ).json()["access_token"]
        client.cookies.clear()

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["username"] == "alice"

    def test_me_requires_login(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_logout_clears_cookie(self, client, signup):
        signup("alice")
        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert client.get("/api/auth/me").status_code == 401


class TestLanguages:

    def test_catalog(self, client):
        body = client.get("/api/languages").json()

        names = {language["name"] for language in body["languages"]}
        assert {"HTML", "CSS", "JavaScript"} <= names
        classic = next(game_type for game_type in body["game_types"] if game_type["name"] == "Classic")
        assert classic["languages"] == [1, 2, 3]


class TestGames:

    def test_create_anonymous_game_with_streams(self, client):
        response = client.post("/api/games", json={"streams": [{"language": 1, "value": "<p>"}, {"language": 2}]})

        assert response.status_code == 201
        game = response.json()
        assert game["owner_id"] is None
        assert [(stream["id"], stream["language"]) for stream in game["streams"]] == [(1, 1), (2, 2)]
        assert game["streams"][0]["value"] == "<p>"
        assert game["streams"][0]["sequence"] == 1

    def test_create_game_from_type_sets_owner(self, client, signup):
        account = signup("alice")["account"]

        game = client.post("/api/games", json={"game_type": 1}).json()

        assert game["owner_id"] == account["id"]
        assert [stream["language"] for stream in game["streams"]] == [1, 2, 3]

    def test_create_game_requires_exactly_one_source(self, client):
        assert client.post("/api/games", json={}).status_code == 422
        assert client.post("/api/games", json={"streams": [], "game_type": 1}).status_code == 422

    def test_unknown_language(self, client):
        response = client.post("/api/games", json={"streams": [{"language": 99}]})
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_LANGUAGE"

    def test_unknown_game_type(self, client):
        response = client.post("/api/games", json={"game_type": 42})
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_GAME_TYPE"

    def test_get_and_list(self, client):
        guid = client.post("/api/games", json={"game_type": 2}).json()["guid"]

        assert client.get(f"/api/games/{guid}").json()["guid"] == guid
        listed = client.get("/api/games").json()
        assert [game["guid"] for game in listed] == [guid]
        assert listed[0]["streams"][0]["value"] is None

    def test_get_unknown_game(self, client):
        response = client.get("/api/games/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "UNKNOWN_GAME_OR_STREAM"


class TestAssignPlayer:

    def test_requires_login(self, client):
        guid = client.post("/api/games", json={"game_type": 2}).json()["guid"]
        response = client.put(f"/api/games/{guid}/streams/1/player", json={"player": "bob"})
        assert response.status_code == 401

    def test_assign_by_username(self, client, signup):
        bob = signup("bob")["account"]
        signup("alice")
        guid = client.post("/api/games", json={"game_type": 1}).json()["guid"]

        response = client.put(f"/api/games/{guid}/streams/2/player", json={"player": "bob"})

        assert response.status_code == 200
        assert response.json()["player_id"] == bob["id"]
        assert client.get(f"/api/games/{guid}").json()["streams"][1]["player_id"] == bob["id"]

    def test_clear_assignment(self, client, signup):
        alice = signup("alice")["account"]
        guid = client.post("/api/games", json={"game_type": 2}).json()["guid"]
        client.put(f"/api/games/{guid}/streams/1/player", json={"player": alice["id"]})

        response = client.put(f"/api/games/{guid}/streams/1/player", json={"player": None})

        assert response.json()["player_id"] is None

    def test_unknown_account(self, client, signup):
        signup("alice")
        guid = client.post("/api/games", json={"game_type": 2}).json()["guid"]

        response = client.put(f"/api/games/{guid}/streams/1/player", json={"player": "nobody"})

        assert response.status_code == 404
        assert response.json()["error"] == "ACCOUNT_NOT_FOUND"

    def test_unknown_stream(self, client, signup):
        signup("alice")
        guid = client.post("/api/games", json={"game_type": 2}).json()["guid"]

        response = client.put(f"/api/games/{guid}/streams/9/player", json={"player": "alice"})

        assert response.status_code == 404
