"""Request helpers shared by the API flow tests."""

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

PASSWORD = "secret-pass"


class Account:
    """A signed-in user: profile as returned by the API plus auth headers."""

    def __init__(self, token: str, user: dict):
        self.token = token
        self.user = user
        self.id = user["id"]
        self.headers = {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, role: str, name: str, **extra) -> Account:
    response = await client.post(
        "/api/auth/register",
        json={
            "name": name,
            "email": f"{name.lower().replace(' ', '.')}@example.com",
            "password": PASSWORD,
            "role": role,
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return Account(body["access_token"], body["user"])


def donation_payload(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "food_name": "Vegetable Biryani",
        "food_type": "vegetarian",
        "quantity": 60,
        "unit": "servings",
        "location": {
            "address": "Connaught Place, New Delhi",
            "coordinates": {"lat": 28.6315, "lng": 77.2167},
        },
        "expiry_time": (now + timedelta(hours=6)).isoformat(),
        "available_time_slot": {
            "start": now.isoformat(),
            "end": (now + timedelta(hours=3)).isoformat(),
        },
        "freshness": "freshly-cooked",
        "food_health_score": 9,
    }
    payload.update(overrides)
    return payload
