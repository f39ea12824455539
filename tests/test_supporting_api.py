"""
Endpoint tests for services, notifications, activities and health.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from .factories import (
    CUSTOMER_ID,
    NOTIFICATION_ID,
    OTHER_CUSTOMER_ID,
    PROVIDER_ID,
    SERVICE_ID,
    make_provider,
    notification_model,
    service_model,
)

SERVICE_CRUD = "app.routers.services.service_crud"
NOTIFICATION_CRUD = "app.routers.notifications.notification_crud"
ACTIVITY_CRUD = "app.routers.activities.activity_crud"
NOTIFICATIONS = "app.routers.notifications"


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class TestProviderServices:
    def _payload(self, **overrides) -> dict:
        base = dict(
            title="Live DJ Set",
            serviceType="entertainment",
            serviceCategory="music",
            basePrice="350.00",
        )
        return {**base, **overrides}

    def test_provider_publishes_service(self, provider_client):
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.create = AsyncMock(return_value=service_model())
            resp = provider_client.post("/providers/services", json=self._payload())
        assert resp.status_code == 201
        assert mock_crud.create.call_args.kwargs["provider_id"] == PROVIDER_ID

    def test_customer_cannot_publish(self, customer_client):
        resp = customer_client.post("/providers/services", json=self._payload())
        assert resp.status_code == 403

    def test_unknown_service_type_returns_400(self, provider_client):
        resp = provider_client.post(
            "/providers/services", json=self._payload(serviceType="fireworks")
        )
        assert resp.status_code == 400

    def test_list_own(self, provider_client):
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.list_services = AsyncMock(return_value=[service_model()])
            resp = provider_client.get("/providers/services")
        assert resp.status_code == 200
        mock_crud.list_services.assert_awaited_once_with(provider_id=PROVIDER_ID)

    def test_price_edit_only_touches_the_service(self, provider_client):
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.get = AsyncMock(return_value=service_model())
            mock_crud.update_fields = AsyncMock(
                return_value=service_model(base_price="500.00")
            )
            resp = provider_client.patch(
                f"/providers/services/{SERVICE_ID}", json={"basePrice": "500.00"}
            )
        assert resp.status_code == 200
        assert resp.json()["basePrice"] == "500.00"
        args, kwargs = mock_crud.update_fields.call_args
        assert args == (SERVICE_ID,)
        assert set(kwargs) == {"base_price"}

    def test_other_provider_cannot_edit(self, client_factory):
        client = client_factory(make_provider(999))
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.get = AsyncMock(return_value=service_model())
            resp = client.patch(
                f"/providers/services/{SERVICE_ID}", json={"title": "Mine"}
            )
        assert resp.status_code == 403


class TestMarketplace:
    def test_browse_only_available(self, customer_client):
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.list_services = AsyncMock(return_value=[service_model()])
            resp = customer_client.get("/marketplace/services")
        assert resp.status_code == 200
        mock_crud.list_services.assert_awaited_once_with(available_only=True)

    def test_unavailable_service_is_hidden(self, customer_client):
        with patch(SERVICE_CRUD) as mock_crud:
            mock_crud.get = AsyncMock(return_value=None)
            resp = customer_client.get(f"/marketplace/services/{SERVICE_ID}")
        assert resp.status_code == 404
        mock_crud.get.assert_awaited_once_with(id=SERVICE_ID, is_available=True)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotifications:
    def test_list_own(self, customer_client):
        with patch(NOTIFICATION_CRUD) as mock_crud:
            mock_crud.list_for_user = AsyncMock(return_value=[notification_model()])
            resp = customer_client.get("/notifications")
        assert resp.status_code == 200
        assert resp.json()[0]["isRead"] is False
        mock_crud.list_for_user.assert_awaited_once_with(CUSTOMER_ID)

    def test_unread_count_cache_hit(self, customer_client):
        with (
            patch(f"{NOTIFICATIONS}.get_unread_cache", new=AsyncMock(return_value=4)),
            patch(NOTIFICATION_CRUD) as mock_crud,
        ):
            mock_crud.count_unread = AsyncMock()
            resp = customer_client.get("/notifications/unread-count")
        assert resp.json() == {"count": 4}
        mock_crud.count_unread.assert_not_called()

    def test_unread_count_cache_miss(self, customer_client):
        with (
            patch(f"{NOTIFICATIONS}.get_unread_cache", new=AsyncMock(return_value=None)),
            patch(f"{NOTIFICATIONS}.set_unread_cache", new=AsyncMock()) as set_cache,
            patch(NOTIFICATION_CRUD) as mock_crud,
        ):
            mock_crud.count_unread = AsyncMock(return_value=2)
            resp = customer_client.get("/notifications/unread-count")
        assert resp.json() == {"count": 2}
        set_cache.assert_awaited_once_with(CUSTOMER_ID, 2)

    def test_mark_read(self, customer_client):
        with (
            patch(
                f"{NOTIFICATIONS}.invalidate_unread_cache", new=AsyncMock()
            ) as invalidate,
            patch(NOTIFICATION_CRUD) as mock_crud,
        ):
            mock_crud.get = AsyncMock(return_value=notification_model())
            mock_crud.mark_read = AsyncMock(
                return_value=notification_model(is_read=True)
            )
            resp = customer_client.patch(f"/notifications/{NOTIFICATION_ID}")
        assert resp.status_code == 200
        assert resp.json()["isRead"] is True
        invalidate.assert_awaited_once_with(CUSTOMER_ID)

    def test_mark_someone_elses_returns_403(self, customer_client):
        with patch(NOTIFICATION_CRUD) as mock_crud:
            mock_crud.get = AsyncMock(
                return_value=notification_model(user_id=OTHER_CUSTOMER_ID)
            )
            mock_crud.mark_read = AsyncMock()
            resp = customer_client.patch(f"/notifications/{NOTIFICATION_ID}")
        assert resp.status_code == 403
        mock_crud.mark_read.assert_not_called()

    def test_mark_missing_returns_404(self, customer_client):
        with patch(NOTIFICATION_CRUD) as mock_crud:
            mock_crud.get = AsyncMock(return_value=None)
            resp = customer_client.patch(f"/notifications/{NOTIFICATION_ID}")
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Activities / health
# ---------------------------------------------------------------------------


class TestActivities:
    def test_default_limit_is_five(self, employee_client):
        with patch(ACTIVITY_CRUD) as mock_crud:
            mock_crud.list_recent = AsyncMock(return_value=[])
            resp = employee_client.get("/activities")
        assert resp.status_code == 200
        mock_crud.list_recent.assert_awaited_once_with(5)

    def test_limit_above_max_returns_400(self, admin_client):
        resp = admin_client.get("/activities", params={"limit": 101})
        assert resp.status_code == 400

    def test_customer_gets_403(self, customer_client):
        resp = customer_client.get("/activities")
        assert resp.status_code == 403


def test_health(customer_client):
    resp = customer_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
