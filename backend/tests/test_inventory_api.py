# Overview: Pytest coverage for the inventario HTTP endpoints (items, images, CSV/Excel exchange).

import csv
import io
import os

from canonjet.extensions import db
from canonjet.models import InventoryItem
from canonjet.services import order_service
from canonjet.services.order_service import LineRequest

from conftest import make_item, stock_of


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _form(**fields):
    data = {"nombre": "Sarten", "descripcion": "Antiadherente", "precio_base": "12.50", "cantidad": "4"}
    data.update(fields)
    return data


def _post_item(client, image=True, **fields):
    data = _form(**fields)
    if image:
        data["imagen"] = (io.BytesIO(PNG_BYTES), "sarten.png")
    return client.post("/api/inventario", data=data, content_type="multipart/form-data")


class TestInventoryCrud:
    def test_create_with_image(self, app, client, db_session):
        response = _post_item(client)

        assert response.status_code == 201
        producto = response.json["producto"]
        assert producto["nombre"] == "Sarten"
        assert producto["precio_base"] == 12.5
        assert producto["cantidad"] == 4
        assert producto["imagen"].startswith("img_")
        assert producto["imagen"].endswith(".png")
        assert os.path.exists(os.path.join(app.config["IMAGES_DIR"], producto["imagen"]))

        served = client.get(f"/images/{producto['imagen']}")
        assert served.status_code == 200
        assert served.data == PNG_BYTES

    def test_create_requires_image(self, client, db_session):
        response = _post_item(client, image=False)
        assert response.status_code == 400
        assert db.session.query(InventoryItem).count() == 0

    def test_create_rejects_other_file_types(self, client, db_session):
        data = _form()
        data["imagen"] = (io.BytesIO(b"#!/bin/sh"), "script.sh")
        response = client.post("/api/inventario", data=data, content_type="multipart/form-data")
        assert response.status_code == 400

    def test_create_validates_fields(self, client, db_session):
        assert _post_item(client, cantidad="-1").status_code == 400
        assert _post_item(client, precio_base="barato").status_code == 400
        assert _post_item(client, nombre="").status_code == 400
        assert db.session.query(InventoryItem).count() == 0

    def test_list_and_get(self, client, item):
        listed = client.get("/api/inventario").json["productos"]
        assert [p["id"] for p in listed] == [item.id]

        response = client.get(f"/api/inventario/{item.id}")
        assert response.status_code == 200
        assert response.json["precio_base"] == 6.0
        assert client.get("/api/inventario/999").status_code == 404

    def test_update_json(self, client, item):
        response = client.put(f"/api/inventario/{item.id}", json={"precio_base": 7, "cantidad": 25})

        assert response.status_code == 200
        assert response.json["precio_base"] == 7.0
        assert response.json["cantidad"] == 25
        assert stock_of(item.id) == 25

    def test_update_replaces_image(self, app, client, db_session):
        created = _post_item(client).json["producto"]
        old_path = os.path.join(app.config["IMAGES_DIR"], created["imagen"])

        response = client.put(
            f"/api/inventario/{created['id']}",
            data={"nombre": "Sarten grande", "imagen": (io.BytesIO(PNG_BYTES), "nueva.jpg")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.json["nombre"] == "Sarten grande"
        assert response.json["imagen"].endswith(".jpg")
        assert not os.path.exists(old_path)

    def test_update_keeps_current_image(self, client, db_session):
        created = _post_item(client).json["producto"]
        response = client.put(
            f"/api/inventario/{created['id']}",
            data={"descripcion": "", "imagen_actual": created["imagen"]},
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        assert response.json["imagen"] == created["imagen"]
        assert response.json["descripcion"] is None

    def test_delete(self, client, item):
        response = client.delete(f"/api/inventario/{item.id}")
        assert response.status_code == 200
        assert client.get(f"/api/inventario/{item.id}").status_code == 404

    def test_delete_blocked_by_open_order(self, client, manager, item):
        order_service.create_order(
            manager_id=manager.id,
            order_kind="local",
            lines=[LineRequest(product_id=item.id, quantity=1, unit_price_cents=900)],
        )
        response = client.delete(f"/api/inventario/{item.id}")
        assert response.status_code == 409

    def test_movements(self, client, manager, item):
        order_service.create_order(
            manager_id=manager.id,
            order_kind="local",
            lines=[LineRequest(product_id=item.id, quantity=2, unit_price_cents=900)],
        )
        response = client.get(f"/api/inventario/{item.id}/movimientos")

        assert response.status_code == 200
        kinds = [m["kind"] for m in response.json["movimientos"]]
        assert kinds == ["reserve", "adjust"]
        assert response.json["movimientos"][0]["stock_after"] == 8


class TestInventoryExchange:
    def test_export_csv(self, client, db_session):
        make_item(name="Olla", base_cost_cents=1599, stock_count=3)

        response = client.get("/api/inventario/export")

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
        assert rows[0] == ["id", "nombre", "descripcion", "precio_base", "cantidad", "imagen", "fecha_creacion"]
        assert rows[1][1:5] == ["Olla", "", "15.99", "3"]

    def test_import_csv_creates_and_updates(self, client, item):
        content = (
            "id,nombre,descripcion,precio_base,cantidad,imagen,fecha_creacion\n"
            f"{item.id},Cuchillo,Acero,6.50,12,,\n"
            ",Cuchara,,2,30,,\n"
        )
        response = client.post(
            "/api/inventario/import",
            data={"archivo": (io.BytesIO(content.encode("utf-8")), "inventario.csv")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 201
        assert response.json == {"creados": 1, "actualizados": 1}
        assert stock_of(item.id) == 12
        spoon = db.session.query(InventoryItem).filter_by(name="Cuchara").one()
        assert spoon.base_cost_cents == 200
        assert stock_of(spoon.id) == 30

    def test_import_is_all_or_nothing(self, client, item):
        content = (
            "nombre,precio_base,cantidad\n"
            "Taza,3,10\n"
            "Vaso,2,-4\n"
        )
        response = client.post(
            "/api/inventario/import",
            data={"archivo": (io.BytesIO(content.encode("utf-8")), "inventario.csv")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        assert response.json["details"]["fila"] == 2
        assert db.session.query(InventoryItem).count() == 1

    def test_import_xlsx(self, client, db_session):
        from openpyxl import Workbook

        wb = Workbook()
        ws = wb.active
        ws.append(["nombre", "descripcion", "precio_base", "cantidad"])
        ws.append(["Jarra", "Vidrio", 4.25, 6])
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)

        response = client.post(
            "/api/inventario/import",
            data={"archivo": (buffer, "inventario.xlsx")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 201
        jar = db.session.query(InventoryItem).filter_by(name="Jarra").one()
        assert jar.base_cost_cents == 425
        assert stock_of(jar.id) == 6

    def test_import_requires_file(self, client, db_session):
        response = client.post("/api/inventario/import", data={}, content_type="multipart/form-data")
        assert response.status_code == 400

    def test_import_rejects_unknown_format(self, client, db_session):
        response = client.post(
            "/api/inventario/import",
            data={"archivo": (io.BytesIO(b"{}"), "inventario.json")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
