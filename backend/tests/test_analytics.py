"""
Tests for /api/analytics: the dashboard and the article report.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import delete

from admin_panel.analytics.service import DateWindow, month_key, parse_date
from admin_panel.articles.models import ArticleStatus, Comment, article_likes
from admin_panel.errors import ValidationFailed
from admin_panel.users.models import User, UserRole


def at(year, month, day=15):
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


async def like(db, article, users):
    for user in users:
        await db.execute(article_likes.insert().values(article_id=article.id, user_id=user.id))
    await db.commit()


class TestDashboard:

    async def test_empty_dashboard_has_zeroes_not_nulls(self, client, editor, auth_headers):
        response = await client.get("/api/analytics/dashboard", headers=auth_headers(editor))
        assert response.status_code == 200
        data = response.json()
        assert data["overview"] == {
            "totalArticles": 0,
            "publishedArticles": 0,
            "draftArticles": 0,
            "archivedArticles": 0,
            "totalUsers": 1,
            "activeUsers": 1,
            "totalComments": 0,
            "totalViews": 0,
            "totalLikes": 0,
        }
        assert data["charts"] == {"articlesByStatus": [], "articlesByMonth": []}
        assert data["topArticles"] == []
        assert data["recentArticles"] == []

    async def test_overview_totals(self, client, db, admin, editor, make_user, make_article, auth_headers):
        await make_user(UserRole.READER, is_active=False)
        first = await make_article(editor, views=10, status=ArticleStatus.PUBLISHED)
        second = await make_article(editor, views=5)
        await make_article(admin, views=1, status=ArticleStatus.ARCHIVED)
        db.add_all([
            Comment(article_id=first.id, content="kept"),
            Comment(article_id=second.id, content="kept"),
            Comment(article_id=second.id, content="gone", is_deleted=True),
        ])
        await db.commit()
        await like(db, first, [admin, editor])
        await like(db, second, [admin])

        data = (await client.get("/api/analytics/dashboard", headers=auth_headers(admin))).json()
        assert data["overview"] == {
            "totalArticles": 3,
            "publishedArticles": 1,
            "draftArticles": 1,
            "archivedArticles": 1,
            "totalUsers": 3,
            "activeUsers": 2,
            "totalComments": 2,
            "totalViews": 16,
            "totalLikes": 3,
        }
        by_status = {row["status"]: row["count"] for row in data["charts"]["articlesByStatus"]}
        assert by_status == {"published": 1, "draft": 1, "archived": 1}

    async def test_month_buckets_ascending(self, client, editor, make_article, auth_headers):
        await make_article(editor, created_at=at(2024, 2))
        await make_article(editor, created_at=at(2024, 1))
        await make_article(editor, created_at=at(2024, 1, 20))

        data = (await client.get("/api/analytics/dashboard", headers=auth_headers(editor))).json()
        assert data["charts"]["articlesByMonth"] == [
            {"month": "2024-01", "count": 2},
            {"month": "2024-02", "count": 1},
        ]

    async def test_month_buckets_keep_most_recent_twelve(self, client, editor, make_article, auth_headers):
        for month in range(1, 13):
            await make_article(editor, created_at=at(2023, month))
        await make_article(editor, created_at=at(2024, 1))
        await make_article(editor, created_at=at(2024, 2))

        data = (await client.get("/api/analytics/dashboard", headers=auth_headers(editor))).json()
        months = [row["month"] for row in data["charts"]["articlesByMonth"]]
        assert len(months) == 12
        assert months[0] == "2023-03"
        assert months[-1] == "2024-02"
        assert months == sorted(months)

    async def test_top_and_recent(self, client, db, admin, editor, make_article, auth_headers):
        for i in range(7):
            await make_article(editor, title=f"A{i}", views=i * 10, created_at=at(2024, i + 1))
        top = (await client.get("/api/analytics/dashboard", headers=auth_headers(admin))).json()

        assert [a["title"] for a in top["topArticles"]] == ["A6", "A5", "A4", "A3", "A2"]
        assert top["topArticles"][0]["views"] == 60
        assert top["topArticles"][0]["author"] == "editor"
        assert [a["title"] for a in top["recentArticles"]] == ["A6", "A5", "A4", "A3", "A2"]
        assert top["recentArticles"][0]["status"] == "draft"

    async def test_missing_author_is_unknown(self, client, db, admin, make_user, make_article, auth_headers):
        ghost = await make_user(UserRole.WRITER)
        await make_article(ghost, title="Orphaned", views=3)
        await db.execute(delete(User).where(User.id == ghost.id))
        await db.commit()

        data = (await client.get("/api/analytics/dashboard", headers=auth_headers(admin))).json()
        assert data["topArticles"][0]["author"] == "Unknown"

    async def test_writer_is_refused(self, client, make_user, auth_headers):
        writer = await make_user(UserRole.WRITER)
        response = await client.get("/api/analytics/dashboard", headers=auth_headers(writer))
        assert response.status_code == 403


class TestArticleAnalytics:

    async def test_report(self, client, db, admin, editor, make_article, auth_headers):
        a = await make_article(editor, title="Viewed", views=100, created_at=at(2024, 1))
        b = await make_article(editor, title="Liked", views=1, created_at=at(2024, 1))
        c = await make_article(admin, title="Middle", views=50, status=ArticleStatus.PUBLISHED,
                               created_at=at(2024, 3))
        await like(db, b, [admin, editor])
        await like(db, c, [admin])

        response = await client.get("/api/analytics/articles", headers=auth_headers(admin))
        assert response.status_code == 200
        data = response.json()

        assert data["articlesByMonth"] == [
            {"month": "2024-01", "count": 2, "totalViews": 101},
            {"month": "2024-03", "count": 1, "totalViews": 50},
        ]
        assert [x["title"] for x in data["topViewedArticles"]] == ["Viewed", "Middle", "Liked"]
        assert [x["title"] for x in data["topLikedArticles"]][:2] == ["Liked", "Middle"]
        assert data["topLikedArticles"][0]["likes"] == 2
        assert data["topViewedArticles"][0]["likes"] == 0
        assert data["topViewedArticles"][1]["status"] == "published"

        assert data["articlesByAuthor"] == [
            {"authorId": editor.id, "authorName": "editor", "authorEmail": "editor@example.com",
             "articleCount": 2, "totalViews": 101},
            {"authorId": admin.id, "authorName": "admin", "authorEmail": "admin@example.com",
             "articleCount": 1, "totalViews": 50},
        ]
        assert a.id in {x["id"] for x in data["topViewedArticles"]}

    async def test_date_window(self, client, editor, make_article, auth_headers):
        await make_article(editor, title="Jan", created_at=at(2024, 1))
        await make_article(editor, title="Feb", created_at=at(2024, 2))
        await make_article(editor, title="Mar", created_at=at(2024, 3))

        response = await client.get(
            "/api/analytics/articles",
            params={"startDate": "2024-02-01", "endDate": "2024-02-29T23:59:59Z"},
            headers=auth_headers(editor),
        )
        data = response.json()
        assert [x["title"] for x in data["topViewedArticles"]] == ["Feb"]
        assert data["articlesByMonth"] == [{"month": "2024-02", "count": 1, "totalViews": 0}]
        assert data["articlesByStatus"] == [{"status": "draft", "count": 1}]

    async def test_open_ended_window(self, client, editor, make_article, auth_headers):
        await make_article(editor, title="Jan", created_at=at(2024, 1))
        await make_article(editor, title="Mar", created_at=at(2024, 3))
        response = await client.get(
            "/api/analytics/articles", params={"startDate": "2024-02-01"}, headers=auth_headers(editor),
        )
        assert [x["title"] for x in response.json()["topViewedArticles"]] == ["Mar"]

    async def test_invalid_date(self, client, editor, auth_headers):
        response = await client.get(
            "/api/analytics/articles", params={"startDate": "last tuesday"}, headers=auth_headers(editor),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid date range"}

    async def test_empty_report(self, client, editor, auth_headers):
        data = (await client.get("/api/analytics/articles", headers=auth_headers(editor))).json()
        assert data == {
            "articlesByStatus": [],
            "articlesByMonth": [],
            "topViewedArticles": [],
            "topLikedArticles": [],
            "articlesByAuthor": [],
        }


class TestHelpers:

    def test_month_key(self):
        assert month_key(2024, 1) == "2024-01"
        assert month_key(2024.0, 12) == "2024-12"

    @pytest.mark.parametrize("raw, expected", [
        (None, None),
        ("", None),
        ("2024-03-01", datetime(2024, 3, 1, tzinfo=timezone.utc)),
        ("2024-03-01T10:30:00Z", datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)),
        ("2024-03-01T12:30:00+02:00", datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)),
    ])
    def test_parse_date(self, raw, expected):
        assert parse_date(raw) == expected

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValidationFailed):
            DateWindow.parse("2024-13-45", None)
