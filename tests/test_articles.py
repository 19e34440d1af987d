"""
Article endpoint tests: the CRUD lifecycle, ownership rules, slug
collisions, favorites, list filters, the feed and the tag list.

Each test creates the users and articles it needs through the API, so
test order does not matter.
"""
import pytest
from httpx import AsyncClient


def _article(title: str = "How to train your dragon", tags=None) -> dict:
    body = {"article": {
        "title": title,
        "description": "Ever wonder how?",
        "body": "You have to believe",
    }}
    if tags is not None:
        body["article"]["tagList"] = tags
    return body


@pytest.fixture
def publish(async_client: AsyncClient, auth):
    """Return a coroutine that creates an article as *user* and returns it."""

    async def _publish(user: dict, title: str = "How to train your dragon", tags=None) -> dict:
        resp = await async_client.post("/api/articles", headers=auth(user), json=_article(title, tags))
        assert resp.status_code == 201, resp.text
        return resp.json()["article"]

    return _publish


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient):
    resp = await async_client.get("/api/articles", headers={"X-Request-Id": "abc123"})
    assert resp.headers["x-request-id"] == "abc123"
    assert "x-response-time-ms" in resp.headers
    assert int(resp.headers["x-query-count"]) >= 0


# ---------------------------------------------------------------------------
# Create + get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article(async_client: AsyncClient, register, auth):
    jake = await register("jake")
    resp = await async_client.post(
        "/api/articles", headers=auth(jake), json=_article(tags=["training", "dragons"])
    )
    assert resp.status_code == 201
    article = resp.json()["article"]
    assert article["slug"] == "how-to-train-your-dragon"
    assert article["title"] == "How to train your dragon"
    assert article["tagList"] == ["dragons", "training"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 0
    assert article["author"] == {"username": "jake", "bio": "", "image": None, "following": False}
    assert article["createdAt"]
    assert article["updatedAt"] == article["createdAt"]


@pytest.mark.asyncio
async def test_create_article_requires_auth(async_client: AsyncClient):
    resp = await async_client.post("/api/articles", json=_article())
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_with_duplicate_slug_is_422(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    await publish(jake, "Same Title")
    resp = await async_client.post("/api/articles", headers=auth(jake), json=_article("same title"))
    assert resp.status_code == 422
    assert list(resp.json()["errors"]) == ["slug"]


@pytest.mark.asyncio
async def test_create_article_dedupes_tags(async_client: AsyncClient, register, publish):
    jake = await register("jake")
    article = await publish(jake, tags=["b", "a", "b", " a "])
    assert article["tagList"] == ["a", "b"]


@pytest.mark.asyncio
async def test_get_article_anonymous(async_client: AsyncClient, register, publish):
    jake = await register("jake")
    created = await publish(jake)
    resp = await async_client.get(f"/api/articles/{created['slug']}")
    assert resp.status_code == 200
    assert resp.json()["article"] == created


@pytest.mark.asyncio
async def test_get_unknown_article_is_404(async_client: AsyncClient):
    resp = await async_client.get("/api/articles/no-such-article")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_article_shows_author_following(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    fan = await register("fan")
    article = await publish(jake)
    await async_client.post("/api/profiles/jake/follow", headers=auth(fan))

    resp = await async_client.get(f"/api/articles/{article['slug']}", headers=auth(fan))
    assert resp.json()["article"]["author"]["following"] is True


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_owner_updates_title_and_slug(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    article = await publish(jake, tags=["dragons"])

    resp = await async_client.put(f"/api/articles/{article['slug']}", headers=auth(jake), json={
        "article": {"title": "Did you train your dragon?"},
    })
    assert resp.status_code == 200
    updated = resp.json()["article"]
    assert updated["title"] == "Did you train your dragon?"
    assert updated["slug"] == "did-you-train-your-dragon"
    assert updated["body"] == "You have to believe"
    assert updated["tagList"] == ["dragons"]

    assert (await async_client.get(f"/api/articles/{article['slug']}")).status_code == 404
    assert (await async_client.get("/api/articles/did-you-train-your-dragon")).status_code == 200


@pytest.mark.asyncio
async def test_owner_updates_body_keeps_slug(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    article = await publish(jake)
    resp = await async_client.put(f"/api/articles/{article['slug']}", headers=auth(jake), json={
        "article": {"body": "Believe harder"},
    })
    assert resp.status_code == 200
    updated = resp.json()["article"]
    assert updated["slug"] == article["slug"]
    assert updated["body"] == "Believe harder"
    assert updated["description"] == "Ever wonder how?"


@pytest.mark.asyncio
async def test_non_owner_update_is_403_and_changes_nothing(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    mallory = await register("mallory")
    article = await publish(jake)

    resp = await async_client.put(f"/api/articles/{article['slug']}", headers=auth(mallory), json={
        "article": {"title": "Hijacked"},
    })
    assert resp.status_code == 403

    unchanged = await async_client.get(f"/api/articles/{article['slug']}")
    assert unchanged.json()["article"]["title"] == "How to train your dragon"


@pytest.mark.asyncio
async def test_update_unknown_article_is_404(async_client: AsyncClient, register, auth):
    jake = await register("jake")
    resp = await async_client.put("/api/articles/nope", headers=auth(jake), json={"article": {"body": "x"}})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_title_onto_existing_slug_is_422(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    await publish(jake, "First Article")
    second = await publish(jake, "Second Article")

    resp = await async_client.put(f"/api/articles/{second['slug']}", headers=auth(jake), json={
        "article": {"title": "First Article"},
    })
    assert resp.status_code == 422
    assert list(resp.json()["errors"]) == ["slug"]

    still = await async_client.get("/api/articles/second-article")
    assert still.status_code == 200


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_owner_deletes_article(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    article = await publish(jake)
    resp = await async_client.delete(f"/api/articles/{article['slug']}", headers=auth(jake))
    assert resp.status_code == 204
    assert (await async_client.get(f"/api/articles/{article['slug']}")).status_code == 404


@pytest.mark.asyncio
async def test_non_owner_delete_is_403(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    mallory = await register("mallory")
    article = await publish(jake)
    resp = await async_client.delete(f"/api/articles/{article['slug']}", headers=auth(mallory))
    assert resp.status_code == 403
    assert (await async_client.get(f"/api/articles/{article['slug']}")).status_code == 200


@pytest.mark.asyncio
async def test_delete_unknown_article_is_404(async_client: AsyncClient, register, auth):
    jake = await register("jake")
    resp = await async_client.delete("/api/articles/nope", headers=auth(jake))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_is_idempotent(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    fan = await register("fan")
    article = await publish(jake)
    url = f"/api/articles/{article['slug']}/favorite"

    first = await async_client.post(url, headers=auth(fan))
    second = await async_client.post(url, headers=auth(fan))
    assert first.status_code == second.status_code == 200
    assert second.json()["article"]["favorited"] is True
    assert second.json()["article"]["favoritesCount"] == 1

    # Not favorited from the author's point of view.
    view = await async_client.get(f"/api/articles/{article['slug']}", headers=auth(jake))
    assert view.json()["article"]["favorited"] is False
    assert view.json()["article"]["favoritesCount"] == 1


@pytest.mark.asyncio
async def test_author_may_favorite_own_article(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    article = await publish(jake)
    resp = await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=auth(jake))
    assert resp.status_code == 200
    assert resp.json()["article"]["favorited"] is True


@pytest.mark.asyncio
async def test_unfavorite(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    fan = await register("fan")
    article = await publish(jake)
    url = f"/api/articles/{article['slug']}/favorite"
    await async_client.post(url, headers=auth(fan))

    resp = await async_client.delete(url, headers=auth(fan))
    assert resp.status_code == 200
    assert resp.json()["article"]["favorited"] is False
    assert resp.json()["article"]["favoritesCount"] == 0

    again = await async_client.delete(url, headers=auth(fan))
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_favorite_unknown_article_is_404(async_client: AsyncClient, register, auth):
    fan = await register("fan")
    resp = await async_client.post("/api/articles/nope/favorite", headers=auth(fan))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Listing and feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/articles")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_filters(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    anne = await register("anne")
    await publish(jake, "Dragons", tags=["dragons"])
    await publish(jake, "Knights", tags=["knights"])
    anne_post = await publish(anne, "Castles", tags=["dragons"])
    await async_client.post(f"/api/articles/{anne_post['slug']}/favorite", headers=auth(jake))

    by_tag = (await async_client.get("/api/articles", params={"tag": "dragons"})).json()
    assert by_tag["articlesCount"] == 2
    assert {a["slug"] for a in by_tag["articles"]} == {"dragons", "castles"}

    by_author = (await async_client.get("/api/articles", params={"author": "jake"})).json()
    assert {a["slug"] for a in by_author["articles"]} == {"dragons", "knights"}

    by_fav = (await async_client.get("/api/articles", params={"favorited": "jake"})).json()
    assert [a["slug"] for a in by_fav["articles"]] == ["castles"]

    combined = (await async_client.get("/api/articles", params={"tag": "dragons", "author": "anne"})).json()
    assert [a["slug"] for a in combined["articles"]] == ["castles"]


@pytest.mark.asyncio
async def test_list_count_is_total_not_page(async_client: AsyncClient, register, publish):
    jake = await register("jake")
    for i in range(3):
        await publish(jake, f"Post {i}")

    resp = await async_client.get("/api/articles", params={"limit": 2})
    data = resp.json()
    assert len(data["articles"]) == 2
    assert data["articlesCount"] == 3

    rest = (await async_client.get("/api/articles", params={"limit": 2, "offset": 2})).json()
    assert len(rest["articles"]) == 1
    seen = {a["slug"] for a in data["articles"]} | {a["slug"] for a in rest["articles"]}
    assert seen == {"post-0", "post-1", "post-2"}


@pytest.mark.asyncio
async def test_list_rejects_bad_pagination(async_client: AsyncClient):
    assert (await async_client.get("/api/articles", params={"limit": 0})).status_code == 422
    assert (await async_client.get("/api/articles", params={"offset": -1})).status_code == 422


@pytest.mark.asyncio
async def test_feed_only_followed_authors(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    anne = await register("anne")
    fan = await register("fan")
    await publish(jake, "From Jake")
    await publish(anne, "From Anne")
    await async_client.post("/api/profiles/jake/follow", headers=auth(fan))

    resp = await async_client.get("/api/articles/feed", headers=auth(fan))
    assert resp.status_code == 200
    data = resp.json()
    assert data["articlesCount"] == 1
    assert data["articles"][0]["slug"] == "from-jake"
    assert data["articles"][0]["author"]["following"] is True


@pytest.mark.asyncio
async def test_feed_requires_auth(async_client: AsyncClient):
    resp = await async_client.get("/api/articles/feed")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tags_lists_used_tags_sorted(async_client: AsyncClient, register, auth, publish):
    jake = await register("jake")
    await publish(jake, "One", tags=["zeta", "alpha"])
    doomed = await publish(jake, "Two", tags=["alpha", "orphan"])

    resp = await async_client.get("/api/tags")
    assert resp.json() == {"tags": ["alpha", "orphan", "zeta"]}

    await async_client.delete(f"/api/articles/{doomed['slug']}", headers=auth(jake))
    resp = await async_client.get("/api/tags")
    assert resp.json() == {"tags": ["alpha", "zeta"]}
