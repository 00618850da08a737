"""Tests for wishlist endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_add_to_wishlist(client: AsyncClient, auth_headers: dict, restaurant: dict) -> None:
    response = await client.post(
        "/api/wishlist",
        json={"restaurantId": str(restaurant["id"]), "notes": "Go early"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["restaurantId"] == str(restaurant["id"])
    assert data["notes"] == "Go early"
    assert data["restaurant"]["name"] == restaurant["name"]


@pytest.mark.asyncio
async def test_duplicate_wishlist_item(client: AsyncClient, auth_headers: dict, restaurant: dict) -> None:
    payload = {"restaurantId": str(restaurant["id"])}
    first = await client.post("/api/wishlist", json=payload, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/wishlist", json=payload, headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["error"] == "ALREADY_IN_WISHLIST"


@pytest.mark.asyncio
async def test_add_unknown_restaurant(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.post("/api/wishlist", json={"restaurantId": str(uuid4())}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "RESTAURANT_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_newest_first(
    client: AsyncClient,
    auth_headers: dict,
    make_restaurant,
) -> None:
    first = await make_restaurant(name="Uchi", cuisine="Japanese")
    second = await make_restaurant(name="Suerte", cuisine="Mexican")
    await client.post("/api/wishlist", json={"restaurantId": str(first["id"])}, headers=auth_headers)
    await client.post("/api/wishlist", json={"restaurantId": str(second["id"])}, headers=auth_headers)

    response = await client.get("/api/wishlist", headers=auth_headers)
    assert response.status_code == 200
    names = [item["restaurant"]["name"] for item in response.json()["data"]]
    assert names == ["Suerte", "Uchi"]


@pytest.mark.asyncio
async def test_wishlists_are_per_user(
    client: AsyncClient,
    auth_headers: dict,
    other_headers: dict,
    restaurant: dict,
) -> None:
    await client.post("/api/wishlist", json={"restaurantId": str(restaurant["id"])}, headers=auth_headers)

    response = await client.get("/api/wishlist", headers=other_headers)
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_remove_from_wishlist(client: AsyncClient, auth_headers: dict, restaurant: dict) -> None:
    await client.post("/api/wishlist", json={"restaurantId": str(restaurant["id"])}, headers=auth_headers)

    response = await client.delete(f"/api/wishlist/{restaurant['id']}", headers=auth_headers)
    assert response.status_code == 200

    response = await client.delete(f"/api/wishlist/{restaurant['id']}", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "WISHLIST_ITEM_NOT_FOUND"
