async def register(client, username, email, password):
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def upload(client, token, name="notes.txt", content=b"x" * 100, content_type="text/plain"):
    return await client.post(
        "/api/files/upload",
        files={"file": (name, content, content_type)},
        headers=bearer(token),
    )
