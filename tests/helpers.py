PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def png(name="shirt.png", content=PNG_BYTES, mimetype="image/png"):
    return ("images", (name, content, mimetype))


def make_product(client, data=None, files=None):
    fields = {"name": "Linen Shirt", "description": "Breathable summer shirt", "price": "25", "category": "Shirts"}
    fields.update(data or {})
    resp = client.post("/products", data=fields, files=files)
    assert resp.status_code == 201, resp.text
    return resp.json()
