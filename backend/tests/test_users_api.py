# Overview: Pytest coverage for login and the usuarios endpoints.

from canonjet.extensions import db
from canonjet.models import User
from canonjet.services.user_service import verify_password

from conftest import make_user


class TestLogin:
    def test_login_success(self, client, manager):
        response = client.post("/api/login", json={"usuario": "gestor", "password": "123"})

        assert response.status_code == 200
        assert response.json["id"] == manager.id
        assert response.json["rol"] == "gestor"
        assert "password" not in response.json
        assert "password_hash" not in response.json

    def test_wrong_password(self, client, manager):
        response = client.post("/api/login", json={"usuario": "gestor", "password": "x"})
        assert response.status_code == 401

    def test_unknown_user(self, client, db_session):
        response = client.post("/api/login", json={"usuario": "nadie", "password": "123"})
        assert response.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/login", json={"usuario": "gestor"}).status_code == 400


class TestUserEndpoints:
    def test_create(self, client, db_session):
        response = client.post("/api/usuarios", json={
            "usuario": "carla",
            "password": "secreto",
            "rol": "repartidor",
            "telefono": "5551111",
            "tarjeta": "9999",
        })

        assert response.status_code == 201
        usuario = response.json["usuario"]
        assert usuario["usuario"] == "carla"
        assert usuario["rol"] == "repartidor"
        assert usuario["push_habilitado"] is False

        stored = db.session.query(User).filter_by(username="carla").one()
        assert stored.password_hash != "secreto"
        assert verify_password("secreto", stored.password_hash)

    def test_create_validates(self, client, db_session):
        assert client.post("/api/usuarios", json={"usuario": "x", "rol": "gestor"}).status_code == 400
        assert client.post(
            "/api/usuarios", json={"usuario": "x", "password": "1", "rol": "jefe"}
        ).status_code == 400

    def test_duplicate_username(self, client, manager):
        response = client.post("/api/usuarios", json={"usuario": "gestor", "password": "1", "rol": "gestor"})
        assert response.status_code == 409

    def test_list_by_role(self, client, manager, company, courier):
        everyone = client.get("/api/usuarios").json["usuarios"]
        assert {u["usuario"] for u in everyone} == {"gestor", "empresa", "repartidor"}

        couriers = client.get("/api/usuarios?rol=repartidor").json["usuarios"]
        assert [u["id"] for u in couriers] == [courier.id]

    def test_get(self, client, manager):
        assert client.get(f"/api/usuarios/{manager.id}").json["usuario"] == "gestor"
        assert client.get("/api/usuarios/999").status_code == 404

    def test_update_and_change_password(self, client, manager):
        response = client.put(
            f"/api/usuarios/{manager.id}",
            json={"telefono": "5559999", "password": "nueva"},
        )

        assert response.status_code == 200
        assert response.json["telefono"] == "5559999"
        login = client.post("/api/login", json={"usuario": "gestor", "password": "nueva"})
        assert login.status_code == 200

    def test_rename_to_taken_username(self, client, manager, company):
        response = client.put(f"/api/usuarios/{manager.id}", json={"usuario": "empresa"})
        assert response.status_code == 409

    def test_delete(self, client, db_session):
        user = make_user("temporal", "gestor")
        assert client.delete(f"/api/usuarios/{user.id}").status_code == 200
        assert client.get(f"/api/usuarios/{user.id}").status_code == 404

    def test_register_push_token(self, client, db_session):
        user = make_user("telefono", "empresa")

        response = client.post(f"/api/usuarios/{user.id}/token", json={"token": "ExponentPushToken[abc]"})

        assert response.status_code == 200
        assert response.json["usuario"]["push_habilitado"] is True
        db.session.expire_all()
        assert db.session.get(User, user.id).push_token == "ExponentPushToken[abc]"

        cleared = client.post(f"/api/usuarios/{user.id}/token", json={"token": ""})
        assert cleared.json["usuario"]["push_habilitado"] is False
